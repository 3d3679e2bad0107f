"""Diagnostic event bus for recoverable pipeline failures.

Registration failures, cancelled submissions and configuration problems are
never fatal to the stream. They are published here so that counters and
subscribers (UI, tests, supervisors) can observe them.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = "info"  # Informational, not really an error
    WARNING = "warning"  # Degraded output, stream continues
    ERROR = "error"  # Submission rejected
    CRITICAL = "critical"  # Session unusable until reconfigured


class ErrorCategory(Enum):
    """Error categories for classification."""

    SYNCHRONIZATION = "synchronization"
    REGISTRATION = "registration"
    CONFIGURATION = "configuration"
    CAPTURE = "capture"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

Subscriber = Callable[["ErrorEvent"], None]


@dataclass
class ErrorEvent:
    """Error event with context information."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[Exception] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: {self.message}{exc_info}"


class ErrorEventBus:
    """Publish-subscribe bus with bounded history and per-category counters."""

    def __init__(self, max_history: int = 100):
        self._subscribers: Dict[ErrorCategory, List[Subscriber]] = {}
        self._all_subscribers: List[Subscriber] = []
        self._lock = threading.Lock()
        self._event_history: Deque[ErrorEvent] = deque(maxlen=max_history)
        self._error_counts: Dict[ErrorCategory, int] = {}

    def subscribe(self, callback: Subscriber, category: Optional[ErrorCategory] = None) -> None:
        """Subscribe to error events.

        Args:
            callback: Function to call when an event is published
            category: Specific category to subscribe to, or None for all events
        """
        with self._lock:
            if category is None:
                self._all_subscribers.append(callback)
            else:
                self._subscribers.setdefault(category, []).append(callback)
        callback_name = getattr(callback, "__name__", repr(callback))
        logger.debug("Subscribed %s to %s events", callback_name, category.value if category else "all")

    def unsubscribe(self, callback: Subscriber, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            targets = self._all_subscribers if category is None else self._subscribers.get(category, [])
            if callback in targets:
                targets.remove(callback)

    def publish(self, event: ErrorEvent) -> None:
        """Record the event, log it and notify subscribers.

        Subscribers run outside the lock; a failing subscriber is logged and
        does not prevent the others from being notified.
        """
        with self._lock:
            self._event_history.append(event)
            self._error_counts[event.category] = self._error_counts.get(event.category, 0) + 1
            category_subscribers = list(self._subscribers.get(event.category, []))
            all_subscribers = list(self._all_subscribers)

        logger.log(_LOG_LEVELS[event.severity], str(event), exc_info=event.exception)

        for callback in category_subscribers + all_subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Error in event subscriber %s: %s",
                    getattr(callback, "__name__", repr(callback)),
                    e,
                    exc_info=True,
                )

    def get_history(self, category: Optional[ErrorCategory] = None, limit: int = 100) -> List[ErrorEvent]:
        """Get recent events, oldest first."""
        with self._lock:
            history = list(self._event_history)

        if category is not None:
            history = [e for e in history if e.category == category]

        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        with self._lock:
            return self._error_counts.copy()

    def count(self, category: ErrorCategory) -> int:
        with self._lock:
            return self._error_counts.get(category, 0)

    def clear_history(self) -> None:
        """Clear error history and counts."""
        with self._lock:
            self._event_history.clear()
            self._error_counts.clear()
        logger.debug("Error history cleared")


# Global error event bus instance
_error_bus: Optional[ErrorEventBus] = None
_bus_lock = threading.Lock()


def get_error_bus() -> ErrorEventBus:
    """Get global error event bus instance."""
    global _error_bus
    if _error_bus is None:
        with _bus_lock:
            if _error_bus is None:
                _error_bus = ErrorEventBus()
                logger.debug("Created global error event bus")
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[Exception] = None,
    bus: Optional[ErrorEventBus] = None,
    **metadata: Any,
) -> ErrorEvent:
    """Build an ErrorEvent and publish it.

    Args:
        category: Error category
        severity: Error severity
        message: Error message
        source: Source component
        exception: Optional exception
        bus: Bus to publish on (global bus when None)
        **metadata: Additional metadata

    Returns:
        The published event
    """
    event = ErrorEvent(
        category=category,
        severity=severity,
        message=message,
        source=source,
        exception=exception,
        metadata=metadata,
    )
    (bus or get_error_bus()).publish(event)
    return event


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "get_error_bus",
    "publish_error",
]
