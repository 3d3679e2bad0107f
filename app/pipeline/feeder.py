"""Feeder threads pumping a frame source into one side of the synchronizer."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from capture import FrameSource
from contracts import Frame
from exceptions import PanographyError
from log_config.logger import get_logger
from sync import SubmitResult

logger = get_logger(__name__)


class FeederExit(str, Enum):
    EXHAUSTED = "exhausted"
    MAX_FRAMES = "max_frames"
    CANCELLED = "cancelled"
    STOPPED = "stopped"
    ERROR = "error"


class StreamFeeder:
    """Reads frames from a source and pushes them until told to stop.

    The feeder unwinds without retrying as soon as a push comes back
    CANCELLED. Errors raised by the push target are published on the error
    bus and end the feeder with ERROR; they are kept on ``error`` for the
    caller. Panography errors are CAPTURE events, anything else is SYSTEM.

    Args:
        label: Stream label ("left" or "right")
        source: Frame source to read from
        push: Callable submitting one frame, returns a SubmitResult
        max_frames: Stop after this many accepted frames (None for no limit)
        on_finished: Called with the feeder once its thread exits
        error_bus: Bus receiving CAPTURE and SYSTEM events (global bus when None)
    """

    def __init__(
        self,
        label: str,
        source: FrameSource,
        push: Callable[[Frame], SubmitResult],
        max_frames: Optional[int] = None,
        on_finished: Optional[Callable[["StreamFeeder"], None]] = None,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._label = label
        self._source = source
        self._push = push
        self._max_frames = max_frames
        self._on_finished = on_finished
        self._error_bus = error_bus

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._frames_pushed = 0
        self._exit_reason: Optional[FeederExit] = None
        self._error: Optional[BaseException] = None

    @property
    def label(self) -> str:
        return self._label

    @property
    def frames_pushed(self) -> int:
        return self._frames_pushed

    @property
    def exit_reason(self) -> Optional[FeederExit]:
        return self._exit_reason

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive():
            return
        self._running = True
        self._frames_pushed = 0
        self._exit_reason = None
        self._error = None
        self._thread = threading.Thread(
            target=self._run, name=f"feeder-{self._label}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Ask the loop to exit after its current push."""
        self._running = False

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the feeder thread. Returns True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        try:
            self._exit_reason = self._loop()
        except PanographyError as e:
            self._exit_reason = FeederExit.ERROR
            self._error = e
            logger.error(f"{self._label} feeder stopped: {e}")
            publish_error(
                category=ErrorCategory.CAPTURE,
                severity=ErrorSeverity.ERROR,
                message=f"{self._label} feeder stopped: {e}",
                source=f"StreamFeeder.{self._label}",
                exception=e,
                bus=self._error_bus,
                frames_pushed=self._frames_pushed,
            )
        except Exception as e:
            self._exit_reason = FeederExit.ERROR
            self._error = e
            logger.exception(f"{self._label} feeder crashed: {e}")
            publish_error(
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.CRITICAL,
                message=f"{self._label} feeder crashed: {e}",
                source=f"StreamFeeder.{self._label}",
                exception=e,
                bus=self._error_bus,
                frames_pushed=self._frames_pushed,
            )
        finally:
            self._running = False
            logger.debug(
                f"{self._label} feeder exited ({self._exit_reason.value if self._exit_reason else 'unknown'}) "
                f"after {self._frames_pushed} frames"
            )
            if self._on_finished is not None:
                self._on_finished(self)

    def _loop(self) -> FeederExit:
        while self._running:
            if self._max_frames is not None and self._frames_pushed >= self._max_frames:
                return FeederExit.MAX_FRAMES

            frame = self._source.read()
            if frame is None:
                return FeederExit.EXHAUSTED

            if self._push(frame) == SubmitResult.CANCELLED:
                return FeederExit.CANCELLED
            self._frames_pushed += 1

        return FeederExit.STOPPED


__all__ = ["FeederExit", "StreamFeeder"]
