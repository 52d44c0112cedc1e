import enum
import logging
import threading
from typing import Any, Callable, Dict, List

log = logging.getLogger(__name__)


class EventKind(enum.Enum):
    """Every notification the supervisor and the wallet engine can raise."""

    # Process supervisor
    OUTPUT_LINE = "output_line"
    ERROR_LINE = "error_line"
    PROCESS_EXITED = "process_exited"

    # Wallet engine
    PASSPHRASE_REQUESTED = "passphrase_requested"
    ADDRESS_RECEIVED = "address_received"
    BALANCE_CHANGING = "balance_changing"
    TRANSACTION_RECEIVED = "transaction_received"
    LEDGER_CHANGED = "ledger_changed"
    HEALTH_CHANGED = "health_changed"
    STATE_CHANGED = "state_changed"


class EventDispatcher:
    """
    A fixed dispatch table of callbacks, one list per EventKind.

    Handlers run synchronously on the emitting thread. A handler that raises
    is logged and does not prevent the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: Dict[EventKind, List[Callable[..., Any]]] = {kind: [] for kind in EventKind}
        self._lock = threading.Lock()

    def subscribe(self, kind: EventKind, handler: Callable[..., Any]) -> None:
        """Registers a handler for one event kind."""
        with self._lock:
            self._handlers[kind].append(handler)

    def unsubscribe(self, kind: EventKind, handler: Callable[..., Any]) -> None:
        with self._lock:
            try:
                self._handlers[kind].remove(handler)
            except ValueError:
                pass

    def emit(self, kind: EventKind, *args: Any) -> None:
        """Calls every handler registered for `kind` with `args`."""
        with self._lock:
            handlers = list(self._handlers[kind])

        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                log.error(f"Handler for '{kind.value}' raised: {e}", exc_info=True)
