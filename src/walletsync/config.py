import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import walletsync.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    Wallet settings: the constants of `walletsync.settings`, with the
    whitelisted ones replaced by values saved in the overrides file.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """:param overrides_path: Overrides file to use instead of OVERRIDES_JSON_PATH."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._load_overrides()

    def _load_overrides(self) -> None:
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Ignoring unreadable overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return
        if not isinstance(overrides, dict):
            log.error(f"Ignoring overrides file '{self.OVERRIDES_JSON_PATH}': expected a JSON object.")
            return

        log.info(f"Applying wallet setting overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            self._apply_override(key, value)

    def _apply_override(self, key: str, value: Any) -> bool:
        if key not in self.MODIFIABLE_SETTINGS:
            log.warning(f"'{key}' cannot be overridden. Ignoring.")
            return False

        # Paths are stored as strings in the file
        current = getattr(self, key, None)
        setattr(self, key, Path(value) if isinstance(current, Path) else value)
        log.debug(f"Overridden setting: {key} = {value}")
        return True

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Writes the whitelisted entries of `overrides_to_save` to the overrides file.

        :param overrides_to_save: Setting names mapped to their new values.
        """
        serializable = {
            key: str(value) if isinstance(value, Path) else value
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }
        if not serializable:
            log.warning("None of the given settings can be overridden, nothing saved.")
            return

        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(serializable, f, indent=4)
        except IOError as e:
            log.error(f"Could not write overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return
        log.info(f"Saved {len(serializable)} setting overrides to {self.OVERRIDES_JSON_PATH}")


@dataclass(frozen=True)
class PathSettings:
    """File and directory locations used by the wallet engine."""

    wallet_executable: Path
    wallet_data_file: Path
    wallet_backup_dir: Path

    @property
    def wallet_data_dir(self) -> Path:
        return self.wallet_data_file.parent

    @property
    def wallet_keys_file(self) -> Path:
        return self.wallet_data_file.with_name(self.wallet_data_file.name + ".keys")

    @classmethod
    def from_config(cls, config: MergedSettings) -> "PathSettings":
        return cls(
            wallet_executable=Path(config.WALLET_EXECUTABLE_PATH),
            wallet_data_file=Path(config.WALLET_DATA_FILE),
            wallet_backup_dir=Path(config.WALLET_BACKUP_DIR),
        )


@dataclass(frozen=True)
class RpcSettings:
    """Where the daemon and wallet RPC servers listen."""

    host: str = default_settings.RPC_HOST_DEFAULT_LOCALHOST
    daemon_port: int = 18081
    wallet_port: int = 18082
    timeout: float = 20

    @property
    def is_default_host(self) -> bool:
        return self.host == default_settings.RPC_HOST_DEFAULT_LOCALHOST

    @property
    def wallet_url(self) -> str:
        return f"http://{self.host}:{self.wallet_port}/json_rpc"

    @classmethod
    def from_config(cls, config: MergedSettings) -> "RpcSettings":
        return cls(
            host=config.RPC_HOST,
            daemon_port=int(config.RPC_DAEMON_PORT),
            wallet_port=int(config.RPC_WALLET_PORT),
            timeout=config.RPC_TIMEOUT,
        )


@dataclass(frozen=True)
class TimerSettings:
    """Periods (in seconds) of every timer the supervisor and engine run."""

    ping_period: float = 1
    connection_count_query_period: float = 5
    graceful_shutdown_timeout: float = 30
    rpc_check_due_time: float = 1
    rpc_check_period: float = 1
    wallet_refresh_period: float = 10
    wallet_save_period: float = 120
    rpc_failure_threshold: int = 3

    @classmethod
    def from_config(cls, config: MergedSettings) -> "TimerSettings":
        return cls(
            ping_period=config.PROCESS_PING_PERIOD,
            connection_count_query_period=config.CONNECTION_COUNT_QUERY_PERIOD,
            graceful_shutdown_timeout=config.GRACEFUL_SHUTDOWN_TIMEOUT,
            rpc_check_due_time=config.RPC_CHECK_AVAILABILITY_DUE_TIME,
            rpc_check_period=config.RPC_CHECK_AVAILABILITY_PERIOD,
            wallet_refresh_period=config.WALLET_REFRESH_PERIOD,
            wallet_save_period=config.WALLET_SAVE_PERIOD,
            rpc_failure_threshold=int(config.RPC_FAILURE_THRESHOLD),
        )


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
