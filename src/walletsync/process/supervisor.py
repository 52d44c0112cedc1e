import psutil
import logging
import threading
import subprocess
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from walletsync.errors import LaunchFailure
from walletsync.events import EventDispatcher, EventKind
from walletsync.process import shutdown
from walletsync.process.process_utils import (
    get_executable_path,
    get_popen_creation_flags,
    get_process_from_pid,
    redact_arguments,
    start_output_readers,
)
from walletsync.process.timers import PeriodicTimer

log = logging.getLogger(__name__)

PING_COMMAND = ""
CONNECTION_COUNT_COMMAND = "print_cn"


@dataclass
class ManagedProcess:
    """One running backend: the OS handle, its pipes and the threads serving them."""

    name: str
    popen: subprocess.Popen
    handle: Optional[psutil.Process]
    readers: List[threading.Thread] = field(default_factory=list)
    watcher: Optional[threading.Thread] = None
    stop_requested: bool = False

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def alive(self) -> bool:
        return self.popen.poll() is None


class ProcessSupervisor:
    """
    Owns a single child process and its standard streams.

    Output is read on two background threads and published as OUTPUT_LINE and
    ERROR_LINE events; termination is published as PROCESS_EXITED with the
    return code and whether the exit was requested through `stop()`. While the
    process runs, two heartbeat timers write a keep-alive line and a
    connection-count query to its input.
    """

    def __init__(
        self,
        name: str = "process",
        ping_period: float = 1,
        connection_count_query_period: float = 5,
        graceful_shutdown_timeout: float = 30,
        events: Optional[EventDispatcher] = None,
    ) -> None:
        self.name = name
        self.events = events or EventDispatcher()
        self.graceful_shutdown_timeout = graceful_shutdown_timeout

        self._process: Optional[ManagedProcess] = None
        self._lock = threading.RLock()
        self._stdin_lock = threading.Lock()
        self._is_disposed = False

        self._ping_timer = PeriodicTimer(f"{name}-ping", lambda: self.send(PING_COMMAND), ping_period)
        self._connection_count_timer = PeriodicTimer(
            f"{name}-cn-query", lambda: self.send(CONNECTION_COUNT_COMMAND), connection_count_query_period
        )

    def __enter__(self) -> "ProcessSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    @property
    def is_alive(self) -> bool:
        managed = self._process
        return managed is not None and managed.alive

    @property
    def pid(self) -> Optional[int]:
        managed = self._process
        return managed.pid if managed is not None else None

    @property
    def is_disposed(self) -> bool:
        return self._is_disposed

    def start(self, executable_path: Path, arguments: Sequence[str]) -> None:
        """
        Launches the executable with redirected streams, replacing any previous process.

        :param executable_path: Path of the backend binary.
        :param arguments: Arguments passed through unchanged.
        :raises LaunchFailure: If the executable cannot be spawned.
        """
        with self._lock:
            if self._is_disposed:
                raise RuntimeError(f"Supervisor '{self.name}' has been disposed.")
            if self._process is not None:
                self._shutdown_locked()

            executable = str(get_executable_path(Path(executable_path)))
            command = [executable, *arguments]
            log.info(f"Starting process: {self.name} -> {' '.join(redact_arguments(command))}")
            try:
                popen = subprocess.Popen(
                    command,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    **get_popen_creation_flags(),
                )
            except (OSError, ValueError) as e:
                log.critical(f"Failed to start process '{self.name}': {e}")
                raise LaunchFailure(executable, str(e)) from e

            try:
                handle = get_process_from_pid(popen.pid)
            except psutil.Error:
                handle = None

            managed = ManagedProcess(name=self.name, popen=popen, handle=handle)
            self._process = managed

            managed.watcher = threading.Thread(
                target=self._watch_exit, args=(managed,), daemon=True, name=f"{self.name}-exit-watcher"
            )
            managed.watcher.start()
            managed.readers = start_output_readers(
                popen,
                self.name,
                lambda line: self.events.emit(EventKind.OUTPUT_LINE, line),
                lambda line: self.events.emit(EventKind.ERROR_LINE, line),
            )

            self._ping_timer.start()
            self._connection_count_timer.start()
            log.info(f"{self.name.capitalize()} started successfully with PID: {popen.pid}")

    def send(self, line: str) -> None:
        """Writes one line to the process's input. Does nothing if the process is not alive."""
        managed = self._process
        if managed is None or not managed.alive or managed.popen.stdin is None:
            return

        with self._stdin_lock:
            try:
                managed.popen.stdin.write((line + "\n").encode("utf-8"))
                managed.popen.stdin.flush()
            except (OSError, ValueError) as e:
                log.debug(f"Could not write to {self.name} (PID {managed.pid}): {e}")

    def stop(self) -> None:
        """Shuts the current process down. Repeated calls are no-ops."""
        with self._lock:
            self._shutdown_locked()

    def dispose(self) -> None:
        """Stops the process and makes the supervisor unusable. Idempotent, never raises."""
        with self._lock:
            if self._is_disposed:
                return
            self._is_disposed = True
            self._shutdown_locked()
            self._cancel_heartbeats()

    def _cancel_heartbeats(self) -> None:
        self._ping_timer.stop()
        self._connection_count_timer.stop()

    def _shutdown_locked(self) -> None:
        managed = self._process
        if managed is None or managed.stop_requested:
            return

        managed.stop_requested = True
        self._cancel_heartbeats()
        shutdown.graceful_shutdown_sequence(managed, self.send, self.graceful_shutdown_timeout)

        self._release(managed)
        self._process = None

    def _release(self, managed: ManagedProcess) -> None:
        current = threading.current_thread()
        for thread in [managed.watcher, *managed.readers]:
            if thread is not None and thread is not current:
                thread.join(timeout=5)

        if managed.popen.stdin is not None:
            try:
                managed.popen.stdin.close()
            except OSError:
                pass

    def _watch_exit(self, managed: ManagedProcess) -> None:
        returncode = managed.popen.wait()
        if managed.stop_requested:
            log.info(f"{self.name.capitalize()} (PID {managed.pid}) exited with code {returncode}.")
        else:
            log.warning(f"{self.name.capitalize()} (PID {managed.pid}) exited unexpectedly with code {returncode}.")
            if self._process is managed:
                self._cancel_heartbeats()
        self.events.emit(EventKind.PROCESS_EXITED, returncode, managed.stop_requested)
