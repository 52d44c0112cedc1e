import socket
import logging
import threading
from typing import Callable

from walletsync.process.timers import PeriodicTimer

log = logging.getLogger(__name__)


def is_port_reachable(host: str, port: int, timeout: float = 1) -> bool:
    """Whether something accepts TCP connections on host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class RpcAvailabilityProbe:
    """
    Polls a TCP port until the backend's RPC server accepts connections.

    `on_available` is called exactly once per `start()`: the probe stops
    itself before signalling and ignores any later tick of the same cycle.
    """

    def __init__(
        self,
        host: str,
        port: int,
        on_available: Callable[[], None],
        due_time: float = 1,
        period: float = 1,
    ) -> None:
        self.host = host
        self.port = port
        self.due_time = due_time
        self._on_available = on_available
        self._lock = threading.Lock()
        self._signalled = False
        self._timer = PeriodicTimer(f"rpc-probe-{port}", self._check, period)

    @property
    def is_polling(self) -> bool:
        return self._timer.is_running

    @property
    def has_signalled(self) -> bool:
        return self._signalled

    def start(self) -> None:
        """Begins a new probe cycle."""
        with self._lock:
            self._signalled = False
        log.info(f"Waiting for RPC server at {self.host}:{self.port}...")
        self._timer.start(due_time=self.due_time)

    def stop(self) -> None:
        self._timer.stop()

    def _check(self) -> None:
        if not is_port_reachable(self.host, self.port):
            return

        with self._lock:
            if self._signalled:
                return
            self._signalled = True
        self._timer.stop()

        log.info(f"RPC server at {self.host}:{self.port} is up and listening.")
        self._on_available()
