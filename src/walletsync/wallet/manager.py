import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

from walletsync.config import PathSettings, RpcSettings, TimerSettings
from walletsync.errors import LaunchFailure, RpcCallFailure
from walletsync.events import EventDispatcher, EventKind
from walletsync.process import PeriodicTimer, ProcessSupervisor, RpcAvailabilityProbe
from walletsync.wallet.arguments import build_wallet_arguments
from walletsync.wallet.backup import backup_wallet_files
from walletsync.wallet.ledger import TransactionLedger
from walletsync.wallet.models import (
    Balance,
    EngineState,
    Transaction,
    TransactionType,
    TransferRecipient,
    TransferRequest,
    WalletState,
)

if TYPE_CHECKING:
    from walletsync.wallet.daemon import DaemonStatus
    from walletsync.wallet.rpc_client import WalletRpcClient

log = logging.getLogger(__name__)

WALLET_GENERATED_MARKER = "wallet has been generated"
ERROR_MARKER = "error"
INVALID_PASSPHRASE_MARKERS = ("signature missmatch", "signature mismatch")


class WalletSyncEngine:
    """
    Runs the wallet backend and keeps a local model of the wallet in sync with it.

    Lifecycle: Stopped -> (AwaitingPassphrase) -> Starting -> AwaitingRpc -> Syncing.
    Once the backend's RPC port accepts connections the engine queries the
    address, then polls balance and incoming transfers on the refresh timer and
    asks the backend to save the wallet on the save timer. Everything the
    caller needs to know is published through `events`.
    """

    def __init__(
        self,
        rpc_client: "WalletRpcClient",
        paths: PathSettings,
        rpc_settings: RpcSettings,
        timers: Optional[TimerSettings] = None,
        daemon: Optional["DaemonStatus"] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        events: Optional[EventDispatcher] = None,
    ) -> None:
        self.rpc_client = rpc_client
        self.paths = paths
        self.rpc_settings = rpc_settings
        self.timers = timers or TimerSettings()
        self.daemon = daemon
        self.events = events or EventDispatcher()
        self.ledger = TransactionLedger()

        self.supervisor = supervisor or ProcessSupervisor(
            name="wallet",
            ping_period=self.timers.ping_period,
            connection_count_query_period=self.timers.connection_count_query_period,
            graceful_shutdown_timeout=self.timers.graceful_shutdown_timeout,
        )
        self.supervisor.events.subscribe(EventKind.OUTPUT_LINE, self._on_output_line)
        self.supervisor.events.subscribe(EventKind.PROCESS_EXITED, self._on_process_exited)

        self.probe = RpcAvailabilityProbe(
            rpc_settings.host,
            rpc_settings.wallet_port,
            self._on_rpc_available,
            due_time=self.timers.rpc_check_due_time,
            period=self.timers.rpc_check_period,
        )
        self._refresh_timer = PeriodicTimer("wallet-refresh", self._request_refresh, self.timers.wallet_refresh_period)
        self._save_timer = PeriodicTimer("wallet-save", self._request_save_wallet, self.timers.wallet_save_period)
        self._backup_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wallet-backup")

        self._state = EngineState.STOPPED
        self._state_lock = threading.Lock()
        self._health_lock = threading.Lock()
        self._address: Optional[str] = None
        self._balance = Balance()
        self._rpc_available = False
        self._passphrase = ""
        self._is_start_forced = False
        self._is_transaction_received_enabled = False
        self._consecutive_rpc_failures = 0
        self._is_healthy = True
        self._is_disposed = False

    def __enter__(self) -> "WalletSyncEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    #* --- Observable state ---
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def balance(self) -> Balance:
        return self._balance

    @property
    def is_rpc_available(self) -> bool:
        return self._rpc_available

    @property
    def is_healthy(self) -> bool:
        return self._is_healthy

    @property
    def transactions(self) -> List[Transaction]:
        """A copy of the ledger, in first-seen order."""
        return self.ledger.snapshot()

    @property
    def wallet_state(self) -> WalletState:
        return WalletState(address=self._address, balance=self._balance, rpc_available=self._rpc_available)

    @property
    def passphrase(self) -> str:
        return self._passphrase

    @passphrase.setter
    def passphrase(self, value: str) -> None:
        self._passphrase = value
        self.restart()

    def set_passphrase(self, value: str) -> None:
        """Stores a new passphrase and restarts the backend with it."""
        self.passphrase = value

    #* --- Lifecycle ---
    def start(self) -> None:
        """
        Starts the backend, or asks for a passphrase first if no wallet exists yet.

        :raises LaunchFailure: If the backend executable cannot be spawned.
        """
        if self._is_start_forced or self.paths.wallet_keys_file.exists():
            self._is_start_forced = False
            self._start_internal()
        else:
            # The next start proceeds without a key file and generates the wallet.
            self._is_start_forced = True
            self._set_state(EngineState.AWAITING_PASSPHRASE)
            self._request_passphrase(True)

    def stop(self) -> None:
        """Stops every wallet timer, waits for a running refresh and shuts the backend down."""
        self._stop_timers()
        self._wait_for_refresh()
        self.supervisor.stop()
        self._rpc_available = False
        self._set_state(EngineState.STOPPED)

    def restart(self) -> None:
        """
        Stops the backend and starts it again with freshly computed arguments.

        :raises LaunchFailure: If the backend executable cannot be spawned.
        """
        self.stop()
        self._start_internal()

    def dispose(self) -> None:
        """
        Shuts everything down without risking the wallet data. Idempotent.

        Wallet timers are cancelled first so no new call is issued. If the RPC
        server is up the backend is asked to exit over RPC, so it can flush the
        wallet to disk, before the supervisor tears the process down.
        """
        if self._is_disposed:
            return
        self._is_disposed = True

        self._stop_timers()
        if self._rpc_available:
            log.info("Requesting wallet backend exit over RPC...")
            self._rpc(self.rpc_client.request_exit)

        self.supervisor.dispose()
        self._rpc_available = False
        self._set_state(EngineState.STOPPED)
        self._backup_executor.shutdown(wait=False)

    def _start_internal(self) -> None:
        if self._is_disposed:
            raise RuntimeError("Wallet engine has been disposed.")

        arguments = build_wallet_arguments(self.paths, self.rpc_settings, self._passphrase)

        # A refresh left over from the previous process must not reconcile into the new ledger.
        self._stop_timers()
        self._wait_for_refresh()
        self.ledger.clear()
        self._is_transaction_received_enabled = False
        self._address = None
        self._set_balance(Balance())

        self._set_state(EngineState.STARTING)
        try:
            self.supervisor.start(self.paths.wallet_executable, arguments.arguments)
        except LaunchFailure:
            self._set_state(EngineState.STOPPED)
            raise

        self._set_state(EngineState.AWAITING_RPC)
        self.probe.start()

    def _stop_timers(self) -> None:
        self.probe.stop()
        self._refresh_timer.stop()
        self._save_timer.stop()

    def _wait_for_refresh(self) -> None:
        """Blocks until a cancelled refresh has returned. Its RPC calls are bounded by their own timeout."""
        self._refresh_timer.join()

    def _set_state(self, state: EngineState) -> None:
        with self._state_lock:
            if self._state is state:
                return
            previous, self._state = self._state, state
        log.debug(f"Wallet engine state: {previous.value} -> {state.value}")
        self.events.emit(EventKind.STATE_CHANGED, state)

    #* --- Process events ---
    def _on_output_line(self, line: str) -> None:
        data_lower = line.lower()

        if WALLET_GENERATED_MARKER in data_lower:
            log.info("New wallet generated. Restarting the backend in RPC mode.")
            threading.Thread(target=self._restart_after_generation, daemon=True, name="wallet-restart").start()

        if ERROR_MARKER in data_lower and any(marker in data_lower for marker in INVALID_PASSPHRASE_MARKERS):
            log.warning("The wallet backend rejected the passphrase.")
            self._request_passphrase(False)

    def _restart_after_generation(self) -> None:
        try:
            self.restart()
        except LaunchFailure as e:
            log.error(f"Restart after wallet generation failed: {e}")

    def _on_process_exited(self, returncode: int, expected: bool) -> None:
        self._rpc_available = False
        self._stop_timers()
        if not expected:
            log.error(f"Wallet backend exited unexpectedly with code {returncode}. Wallet state will go stale.")
            self._set_state(EngineState.STOPPED)

    def _on_rpc_available(self) -> None:
        self._rpc_available = True
        self._set_state(EngineState.SYNCING)
        self._query_address()
        self._refresh_timer.start_immediately()
        self._save_timer.start()

    def _request_passphrase(self, is_first_time: bool) -> None:
        self.events.emit(EventKind.PASSPHRASE_REQUESTED, is_first_time)

    #* --- Polling ---
    def _request_refresh(self) -> None:
        if self._address is None:
            self._query_address()
        self._query_balance()
        self._query_incoming_transfers()

    def _request_save_wallet(self) -> None:
        log.debug("Asking the wallet backend to save the wallet.")
        self._rpc(self.rpc_client.save_wallet)

    def _query_address(self) -> None:
        address = self._rpc(self.rpc_client.query_address)
        if address is None:
            return
        self._address = address
        self.events.emit(EventKind.ADDRESS_RECEIVED, address)

    def _query_balance(self) -> None:
        balance = self._rpc(self.rpc_client.query_balance)
        if balance is None:
            return
        self._set_balance(balance)
        if self.daemon is not None:
            self.daemon.mark_blockchain_savable()

    def _query_incoming_transfers(self) -> None:
        fetched = self._rpc(self.rpc_client.query_incoming_transfers)
        if fetched is None:
            return

        result = self.ledger.reconcile(fetched)
        if self._is_transaction_received_enabled:
            for transaction in result.appended:
                self.events.emit(EventKind.TRANSACTION_RECEIVED, transaction)
        # Armed by the first successful fetch only, not by the first attempt: a failed
        # first poll must not make the transactions loaded with the wallet look new.
        self._is_transaction_received_enabled = True

        if result.changed or result.stale_count:
            self.events.emit(EventKind.LEDGER_CHANGED, result)

    def _set_balance(self, balance: Balance) -> None:
        self.events.emit(EventKind.BALANCE_CHANGING, balance)
        self._balance = balance

    def _rpc(self, call: Callable[..., Any], *args: Any) -> Any:
        """Runs one RPC call, mapping RpcCallFailure to None."""
        try:
            value = call(*args)
        except RpcCallFailure as e:
            log.warning(f"{e}. Will retry on the next poll.")
            self._record_rpc_failure()
            return None
        self._record_rpc_success()
        return value

    def _record_rpc_failure(self) -> None:
        with self._health_lock:
            self._consecutive_rpc_failures += 1
            became_unhealthy = self._is_healthy and self._consecutive_rpc_failures >= self.timers.rpc_failure_threshold
            if became_unhealthy:
                self._is_healthy = False
        if became_unhealthy:
            log.error(f"Wallet RPC failed {self._consecutive_rpc_failures} times in a row.")
            self.events.emit(EventKind.HEALTH_CHANGED, False)

    def _record_rpc_success(self) -> None:
        with self._health_lock:
            self._consecutive_rpc_failures = 0
            recovered = not self._is_healthy
            self._is_healthy = True
        if recovered:
            log.info("Wallet RPC recovered.")
            self.events.emit(EventKind.HEALTH_CHANGED, True)

    #* --- Operations ---
    def send_transfer_split(
        self,
        recipients: Sequence[TransferRecipient],
        payment_id: Optional[str] = None,
        mix_count: int = 0,
        fee: int = 0,
    ) -> bool:
        """
        Sends funds to one or more recipients in a single split transfer.

        On success a local SEND transaction is announced for the summed amount
        and the refresh timer fires immediately so the ledger catches up.

        :return: False if there is no recipient or the RPC call failed.
        """
        if not recipients:
            return False

        request = TransferRequest.build(recipients, payment_id, mix_count, fee)
        tx_hashes = self._rpc(self.rpc_client.send_transfer_split, request)
        if tx_hashes is None:
            return False

        log.info(f"Transfer of {request.total_amount} sent to {len(request.recipients)} recipients: {tx_hashes}")
        self.events.emit(
            EventKind.TRANSACTION_RECEIVED,
            Transaction(amount=request.total_amount, type=TransactionType.SEND, payment_id=payment_id),
        )
        self._refresh_timer.trigger()
        return True

    def backup(self, target: Optional[Path] = None) -> "Future[Path]":
        """
        Copies the wallet files to `target`, or to today's backup directory.

        The copy runs on a background thread. The returned future resolves to
        the directory the files were copied to.
        """
        return self._backup_executor.submit(
            backup_wallet_files, self.paths.wallet_data_file, self.paths.wallet_backup_dir, target
        )
