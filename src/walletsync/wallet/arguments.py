import logging
from dataclasses import dataclass
from typing import List, Tuple

from walletsync.config import PathSettings, RpcSettings

log = logging.getLogger(__name__)

DEFAULT_ARGUMENTS: Tuple[str, ...] = ("--log-level", "0")


@dataclass(frozen=True)
class WalletProcessArguments:
    """The command line of one backend launch."""

    arguments: Tuple[str, ...]
    generates_wallet: bool

    def as_list(self) -> List[str]:
        return list(self.arguments)


def build_wallet_arguments(paths: PathSettings, rpc: RpcSettings, passphrase: str) -> WalletProcessArguments:
    """
    Computes the backend arguments for the current state of the wallet files.

    An existing key file opens the wallet in RPC mode. Otherwise the backend is
    asked to generate a new wallet, and the wallet directory is created first.

    :param paths: Wallet file locations.
    :param rpc: Daemon and wallet RPC endpoints.
    :param passphrase: Passphrase of the wallet, passed on the command line.
    """
    arguments = list(DEFAULT_ARGUMENTS)
    arguments += ["--daemon-address", f"{rpc.host}:{rpc.daemon_port}"]

    generates_wallet = not paths.wallet_keys_file.exists()
    if not generates_wallet:
        arguments += ["--wallet-file", str(paths.wallet_data_file)]
        arguments += ["--rpc-bind-port", str(rpc.wallet_port)]
        if not rpc.is_default_host:
            arguments += ["--rpc-bind-ip", rpc.host]
    else:
        paths.wallet_data_dir.mkdir(parents=True, exist_ok=True)
        log.info(f"No wallet keys at {paths.wallet_keys_file}, a new wallet will be generated.")
        arguments += ["--generate-new-wallet", str(paths.wallet_data_file)]

    arguments += ["--password", passphrase]
    return WalletProcessArguments(arguments=tuple(arguments), generates_wallet=generates_wallet)
