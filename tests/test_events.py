"""Tests for the EventDispatcher."""

from walletsync.events import EventDispatcher, EventKind


class TestEventDispatcher:

    def test_handlers_receive_arguments(self):
        events = EventDispatcher()
        received = []
        events.subscribe(EventKind.PROCESS_EXITED, lambda code, expected: received.append((code, expected)))

        events.emit(EventKind.PROCESS_EXITED, 1, False)

        assert received == [(1, False)]

    def test_only_matching_kind_is_called(self):
        events = EventDispatcher()
        received = []
        events.subscribe(EventKind.OUTPUT_LINE, received.append)

        events.emit(EventKind.ERROR_LINE, "boom")

        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        """Test an exception in one handler is logged and the next still runs."""
        events = EventDispatcher()
        received = []

        def failing(line):
            raise RuntimeError("handler bug")

        events.subscribe(EventKind.OUTPUT_LINE, failing)
        events.subscribe(EventKind.OUTPUT_LINE, received.append)

        events.emit(EventKind.OUTPUT_LINE, "hello")

        assert received == ["hello"]

    def test_unsubscribe(self):
        events = EventDispatcher()
        received = []
        events.subscribe(EventKind.OUTPUT_LINE, received.append)
        events.unsubscribe(EventKind.OUTPUT_LINE, received.append)
        events.unsubscribe(EventKind.OUTPUT_LINE, received.append)

        events.emit(EventKind.OUTPUT_LINE, "hello")

        assert received == []

    def test_handler_may_subscribe_during_emit(self):
        """Test a handler registering another handler does not affect the current dispatch."""
        events = EventDispatcher()
        late = []

        def register(line):
            events.subscribe(EventKind.OUTPUT_LINE, late.append)

        events.subscribe(EventKind.OUTPUT_LINE, register)
        events.emit(EventKind.OUTPUT_LINE, "first")

        assert late == []
