import logging
import threading
from typing import Callable, Optional

log = logging.getLogger(__name__)


class PeriodicTimer:
    """
    Runs a callback on a background thread, first after a due time and then
    every `period` seconds.

    Each start spawns a single worker thread, so the callback never overlaps
    with itself: the next period is only measured once the callback has
    returned. `trigger()` wakes the worker immediately, which is how a caller
    forces the next run without waiting for the period to elapse.
    """

    def __init__(self, name: str, callback: Callable[[], None], period: float) -> None:
        """
        :param name: Thread name, used in logs.
        :param callback: The work to run on every tick.
        :param period: Seconds between the end of one run and the start of the next.
        """
        self.name = name
        self.period = period
        self._callback = callback
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._wake_event: Optional[threading.Event] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return (
                self._thread is not None
                and self._thread.is_alive()
                and not self._stop_event.is_set()
            )

    def start(self, due_time: Optional[float] = None, one_shot: bool = False) -> None:
        """
        (Re)starts the timer. An already running schedule is cancelled first.

        :param due_time: Seconds before the first run. Defaults to one period.
        :param one_shot: Run the callback once and stop.
        """
        delay = self.period if due_time is None else due_time
        with self._lock:
            self._cancel_locked()
            stop_event = threading.Event()
            wake_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event, wake_event, delay, one_shot),
                daemon=True,
                name=self.name,
            )
            self._thread, self._stop_event, self._wake_event = thread, stop_event, wake_event
            thread.start()

    def start_immediately(self) -> None:
        self.start(due_time=0)

    def start_once(self, delay: Optional[float] = None) -> None:
        self.start(due_time=delay, one_shot=True)

    def trigger(self) -> None:
        """Makes a running timer fire now. Starts a stopped timer immediately."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set():
                self._wake_event.set()
                return
        self.start_immediately()

    def stop(self) -> None:
        """Cancels the schedule. Safe to call repeatedly and from inside the callback."""
        with self._lock:
            self._cancel_locked()

    def join(self, timeout: Optional[float] = None) -> None:
        """Waits for the worker thread of the last schedule to finish."""
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _cancel_locked(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._wake_event.set()

    def _run(self, stop_event: threading.Event, wake_event: threading.Event, delay: float, one_shot: bool) -> None:
        while not stop_event.is_set():
            wake_event.wait(delay)
            if stop_event.is_set():
                break
            wake_event.clear()

            try:
                self._callback()
            except Exception as e:
                log.error(f"Timer '{self.name}' callback raised: {e}", exc_info=True)

            if one_shot:
                stop_event.set()
                break
            delay = self.period
