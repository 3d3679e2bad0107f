"""Unit tests for the diagnostic error event bus."""

import unittest
from unittest.mock import Mock

from app.events import (
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)


def _event(category=ErrorCategory.REGISTRATION, severity=ErrorSeverity.WARNING, message="Test"):
    return ErrorEvent(category=category, severity=severity, message=message, source="Test")


class TestErrorEvent(unittest.TestCase):
    """Test ErrorEvent dataclass."""

    def test_error_event_creation(self):
        event = ErrorEvent(
            category=ErrorCategory.REGISTRATION,
            severity=ErrorSeverity.ERROR,
            message="Test error",
            source="TestSource",
            exception=ValueError("test"),
            metadata={"key": "value"},
        )

        self.assertEqual(event.category, ErrorCategory.REGISTRATION)
        self.assertEqual(event.severity, ErrorSeverity.ERROR)
        self.assertEqual(event.message, "Test error")
        self.assertEqual(event.source, "TestSource")
        self.assertIsInstance(event.exception, ValueError)
        self.assertEqual(event.metadata, {"key": "value"})
        self.assertIsInstance(event.timestamp, float)

    def test_error_event_string_representation(self):
        event = ErrorEvent(
            category=ErrorCategory.SYNCHRONIZATION,
            severity=ErrorSeverity.WARNING,
            message="Left frame dropped on flush",
            source="StreamSynchronizer",
            exception=RuntimeError("boom"),
        )

        str_repr = str(event)
        self.assertIn("WARNING", str_repr)
        self.assertIn("synchronization", str_repr)
        self.assertIn("Left frame dropped on flush", str_repr)
        self.assertIn("StreamSynchronizer", str_repr)
        self.assertIn("RuntimeError", str_repr)


class TestErrorEventBus(unittest.TestCase):
    """Test ErrorEventBus functionality."""

    def setUp(self):
        self.bus = ErrorEventBus()

    def test_subscribe_to_all_errors(self):
        callback = Mock()
        self.bus.subscribe(callback)

        event = _event()
        self.bus.publish(event)

        callback.assert_called_once_with(event)

    def test_subscribe_to_specific_category(self):
        callback = Mock()
        self.bus.subscribe(callback, category=ErrorCategory.CAPTURE)

        event1 = _event(category=ErrorCategory.CAPTURE, message="Source exhausted early")
        self.bus.publish(event1)
        callback.assert_called_once_with(event1)

        self.bus.publish(_event(category=ErrorCategory.REGISTRATION))

        # Non-matching category is not delivered
        self.assertEqual(callback.call_count, 1)

    def test_multiple_subscribers(self):
        callback1 = Mock()
        callback2 = Mock()
        self.bus.subscribe(callback1, category=ErrorCategory.REGISTRATION)
        self.bus.subscribe(callback2, category=ErrorCategory.REGISTRATION)

        event = _event()
        self.bus.publish(event)

        callback1.assert_called_once_with(event)
        callback2.assert_called_once_with(event)

    def test_unsubscribe(self):
        callback = Mock()
        self.bus.subscribe(callback)
        self.bus.publish(_event(message="Test 1"))
        callback.assert_called_once()

        self.bus.unsubscribe(callback)
        self.bus.publish(_event(message="Test 2"))

        self.assertEqual(callback.call_count, 1)

    def test_unsubscribe_unknown_callback_is_noop(self):
        self.bus.unsubscribe(Mock(), category=ErrorCategory.SYSTEM)

    def test_event_history(self):
        for i in range(5):
            self.bus.publish(_event(message=f"Error {i}"))

        history = self.bus.get_history()
        self.assertEqual(len(history), 5)

        # Chronological order
        for i, event in enumerate(history):
            self.assertIn(f"Error {i}", event.message)

    def test_history_filtered_by_category(self):
        for category in [ErrorCategory.CAPTURE, ErrorCategory.REGISTRATION, ErrorCategory.CONFIGURATION]:
            self.bus.publish(_event(category=category, message=f"{category.value} error"))

        capture_history = self.bus.get_history(category=ErrorCategory.CAPTURE)
        self.assertEqual(len(capture_history), 1)
        self.assertEqual(capture_history[0].category, ErrorCategory.CAPTURE)

    def test_history_limit(self):
        for i in range(150):
            self.bus.publish(_event(category=ErrorCategory.SYSTEM, severity=ErrorSeverity.INFO, message=f"Event {i}"))

        history = self.bus.get_history()
        self.assertEqual(len(history), 100)
        self.assertIn("Event 149", history[-1].message)
        self.assertIn("Event 50", history[0].message)

    def test_custom_history_size(self):
        bus = ErrorEventBus(max_history=3)
        for i in range(5):
            bus.publish(_event(message=f"Event {i}"))

        self.assertEqual([e.message for e in bus.get_history()], ["Event 2", "Event 3", "Event 4"])
        # Counters are not bounded by the history size
        self.assertEqual(bus.count(ErrorCategory.REGISTRATION), 5)

    def test_error_counts(self):
        for _ in range(3):
            self.bus.publish(_event(category=ErrorCategory.REGISTRATION))
        for _ in range(2):
            self.bus.publish(_event(category=ErrorCategory.SYNCHRONIZATION))

        counts = self.bus.get_error_counts()
        self.assertEqual(counts[ErrorCategory.REGISTRATION], 3)
        self.assertEqual(counts[ErrorCategory.SYNCHRONIZATION], 2)
        self.assertEqual(self.bus.count(ErrorCategory.CAPTURE), 0)

    def test_clear_history(self):
        for i in range(5):
            self.bus.publish(_event(message=f"Event {i}"))

        self.bus.clear_history()

        self.assertEqual(len(self.bus.get_history()), 0)
        self.assertEqual(len(self.bus.get_error_counts()), 0)

    def test_subscriber_exception_does_not_crash(self):
        def failing_callback(event):
            raise RuntimeError("Subscriber failed")

        normal_callback = Mock()
        self.bus.subscribe(failing_callback)
        self.bus.subscribe(normal_callback)

        event = _event(severity=ErrorSeverity.ERROR)
        self.bus.publish(event)

        normal_callback.assert_called_once_with(event)


class TestGlobalErrorBus(unittest.TestCase):
    """Test global error bus functions."""

    def test_get_error_bus_singleton(self):
        self.assertIs(get_error_bus(), get_error_bus())

    def test_publish_error_convenience_function(self):
        callback = Mock()
        get_error_bus().subscribe(callback)
        try:
            event = publish_error(
                category=ErrorCategory.CONFIGURATION,
                severity=ErrorSeverity.WARNING,
                message="Test warning",
                source="TestSource",
                test_key="test_value",
            )
        finally:
            get_error_bus().unsubscribe(callback)

        callback.assert_called_once_with(event)
        self.assertEqual(event.category, ErrorCategory.CONFIGURATION)
        self.assertEqual(event.severity, ErrorSeverity.WARNING)
        self.assertEqual(event.source, "TestSource")
        self.assertEqual(event.metadata["test_key"], "test_value")

    def test_publish_error_to_explicit_bus(self):
        bus = ErrorEventBus()
        publish_error(ErrorCategory.SYSTEM, ErrorSeverity.INFO, "local", "Test", bus=bus)

        self.assertEqual(bus.count(ErrorCategory.SYSTEM), 1)


if __name__ == "__main__":
    unittest.main()
