"""Shared fixtures and fakes for the walletsync tests."""

import socket
import time
from typing import Callable, List, Optional

import pytest

from walletsync.config import PathSettings, RpcSettings, TimerSettings
from walletsync.errors import LaunchFailure, RpcCallFailure
from walletsync.events import EventDispatcher, EventKind
from walletsync.wallet.daemon import DaemonStatus
from walletsync.wallet.manager import WalletSyncEngine
from walletsync.wallet.models import Balance, Transaction, TransactionType


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Polls a predicate until it is true or the timeout expires."""
    return _wait_for


@pytest.fixture
def free_port() -> int:
    """A TCP port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_transactions(count: int, start: int = 0) -> List[Transaction]:
    return [
        Transaction(
            amount=(i + 1) * 100,
            type=TransactionType.RECEIVE,
            raw={"amount": (i + 1) * 100, "tx_hash": f"<hash{i}>", "spent": False},
        )
        for i in range(start, start + count)
    ]


class FakeSupervisor:
    """Stands in for ProcessSupervisor, recording calls into a shared log."""

    def __init__(self, calls: List[str]) -> None:
        self.events = EventDispatcher()
        self.calls = calls
        self.starts: List[tuple] = []
        self.launch_error: Optional[LaunchFailure] = None
        self._alive = False
        self.pid: Optional[int] = None

    @property
    def is_alive(self) -> bool:
        return self._alive

    def start(self, executable_path, arguments) -> None:
        self.calls.append("supervisor.start")
        if self.launch_error is not None:
            raise self.launch_error
        self.starts.append((executable_path, tuple(arguments)))
        self._alive = True

    def stop(self) -> None:
        self.calls.append("supervisor.stop")
        if self._alive:
            self._alive = False
            self.events.emit(EventKind.PROCESS_EXITED, 0, True)

    def dispose(self) -> None:
        self.calls.append("supervisor.dispose")
        self.stop()

    def crash(self, returncode: int = 1) -> None:
        self._alive = False
        self.events.emit(EventKind.PROCESS_EXITED, returncode, False)

    def emit_output(self, line: str) -> None:
        self.events.emit(EventKind.OUTPUT_LINE, line)


class FakeRpcClient:
    """Stands in for WalletRpcClient. Set `failing` to make every call fail."""

    def __init__(self, calls: List[str]) -> None:
        self.calls = calls
        self.address = "4AdUndXHHZ6cfufTMvppY6JwXNouMBzSkbLYfpAV5Usx3skxNgYeYTRj5UzqtReoS44qo9mtmXCqY45DJ852K5Jv2684Rge"
        self.balance = Balance(available=500, total=700)
        self.transfers: List[Transaction] = []
        self.tx_hashes = ["<txhash>"]
        self.failing = False
        self.transfer_requests = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.failing:
            raise RpcCallFailure(name, "connection refused")

    def query_address(self) -> str:
        self._record("query_address")
        return self.address

    def query_balance(self) -> Balance:
        self._record("query_balance")
        return self.balance

    def query_incoming_transfers(self) -> List[Transaction]:
        self._record("query_incoming_transfers")
        return list(self.transfers)

    def send_transfer_split(self, request) -> List[str]:
        self._record("send_transfer_split")
        self.transfer_requests.append(request)
        return self.tx_hashes

    def save_wallet(self) -> None:
        self._record("save_wallet")

    def request_exit(self) -> None:
        self._record("request_exit")


@pytest.fixture
def calls() -> List[str]:
    return []


@pytest.fixture
def fake_supervisor(calls) -> FakeSupervisor:
    return FakeSupervisor(calls)


@pytest.fixture
def fake_rpc(calls) -> FakeRpcClient:
    return FakeRpcClient(calls)


@pytest.fixture
def paths(tmp_path) -> PathSettings:
    return PathSettings(
        wallet_executable=tmp_path / "bin" / "simplewallet",
        wallet_data_file=tmp_path / "wallets" / "wallet.bin",
        wallet_backup_dir=tmp_path / "backups",
    )


@pytest.fixture
def keys_file(paths) -> None:
    """Creates the wallet key file so that the engine starts in RPC mode."""
    paths.wallet_data_dir.mkdir(parents=True, exist_ok=True)
    paths.wallet_data_file.write_bytes(b"wallet")
    paths.wallet_keys_file.write_bytes(b"keys")


@pytest.fixture
def daemon() -> DaemonStatus:
    return DaemonStatus()


@pytest.fixture
def engine(fake_rpc, fake_supervisor, paths, daemon, free_port):
    """An engine whose probe and timers never fire on their own during a test."""
    timers = TimerSettings(
        rpc_check_due_time=60,
        rpc_check_period=60,
        wallet_refresh_period=60,
        wallet_save_period=60,
        rpc_failure_threshold=3,
    )
    engine = WalletSyncEngine(
        rpc_client=fake_rpc,
        paths=paths,
        rpc_settings=RpcSettings(host="127.0.0.1", daemon_port=18081, wallet_port=free_port, timeout=1),
        timers=timers,
        daemon=daemon,
        supervisor=fake_supervisor,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def recorded(engine):
    """Records every engine event as (kind, args)."""
    events = []
    for kind in EventKind:
        engine.events.subscribe(kind, lambda *args, _kind=kind: events.append((_kind, args)))
    return events


def events_of(recorded, kind: EventKind) -> list:
    return [args for recorded_kind, args in recorded if recorded_kind is kind]


@pytest.fixture
def of_kind():
    return events_of


@pytest.fixture
def make_txs():
    return make_transactions
