"""Panography control plane: negotiation, lifecycle, feeders and output sink."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from app.events import ErrorEventBus
from capture import FrameSource
from configs.settings import AppConfig
from contracts import Frame, FrameFormat, OutputFrame
from exceptions import FrameFormatError
from log_config.logger import get_logger, log_performance
from register import RegistrationEngine
from sync import StreamSynchronizer, SubmitResult, SyncState
from sync.synchronizer import OutputSink

from .feeder import FeederExit, StreamFeeder

logger = get_logger(__name__)


class PanographyPipeline:
    """Pairs two frame streams and emits one registered composite per pair.

    Frames are either pushed by the caller (``push_left`` / ``push_right``
    from two threads) or pumped from attached sources by feeder threads.
    Outputs go to ``sink`` when given, otherwise into a bounded buffer read
    through ``outputs()``.

    Example:
        >>> pipeline = PanographyPipeline()
        >>> pipeline.attach_sources(left_source, right_source, max_frames=10)
        >>> pipeline.start()
        >>> pipeline.wait(timeout=5.0)
        >>> pipeline.stop()
        >>> frames = pipeline.outputs()
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        sink: Optional[OutputSink] = None,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._config = config or AppConfig()
        self._error_bus = error_bus
        self._lock = threading.Lock()
        self._format: Optional[FrameFormat] = None
        self._running = False

        self._outputs: Deque[OutputFrame] = deque(maxlen=self._config.sync.output_buffer_size)
        self._user_sink = sink

        self._engine = RegistrationEngine(self._config.registration, error_bus=error_bus)
        self._sync = StreamSynchronizer(self._engine.process, sink=self._emit)

        self._left_source: Optional[FrameSource] = None
        self._right_source: Optional[FrameSource] = None
        self._max_frames: Optional[int] = None
        self._feeders: List[StreamFeeder] = []

    @property
    def engine(self) -> RegistrationEngine:
        return self._engine

    @property
    def synchronizer(self) -> StreamSynchronizer:
        return self._sync

    @property
    def frame_format(self) -> Optional[FrameFormat]:
        with self._lock:
            return self._format

    @property
    def state(self) -> SyncState:
        return self._sync.state

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def negotiate(self, fmt: FrameFormat) -> FrameFormat:
        """Fix the session frame format.

        The first call sizes the registration buffers. Later calls must
        repeat the same format.

        Raises:
            FrameFormatError: format differs from the negotiated one, or the
                geometry/pixel format is unsupported
        """
        with self._lock:
            if self._format is None:
                self._engine.reconfigure(fmt.width, fmt.height, fmt.channels, fmt.pixfmt)
                self._format = fmt
                logger.info(f"Negotiated frame format {fmt}")
            elif fmt != self._format:
                raise FrameFormatError(
                    f"Refusing format {fmt}; session is negotiated to {self._format}",
                    expected=self._format,
                    actual=fmt,
                )
            return self._format

    def set_method(self, name: str) -> None:
        self._engine.set_method(name)

    def set_sink(self, sink: Optional[OutputSink]) -> None:
        self._user_sink = sink

    def attach_sources(
        self, left: FrameSource, right: FrameSource, max_frames: Optional[int] = None
    ) -> None:
        """Attach sources pumped by feeder threads on the next start()."""
        with self._lock:
            if self._running:
                raise RuntimeError("Cannot attach sources while the pipeline is running")
            self._left_source = left
            self._right_source = right
            self._max_frames = max_frames

    def start(self) -> None:
        """Arm the synchronizer and launch feeders for attached sources."""
        with self._lock:
            if self._running:
                return
            self._running = True

        self._sync.reset()
        self._sync.start()

        if self._left_source is not None and self._right_source is not None:
            self._feeders = [
                self._make_feeder("left", self._left_source, self.push_left),
                self._make_feeder("right", self._right_source, self.push_right),
            ]
            for feeder in self._feeders:
                feeder.start()
        logger.info(f"Pipeline started ({len(self._feeders)} feeders)")

    def push_left(self, frame: Frame) -> SubmitResult:
        self._check_format(frame)
        return self._sync.submit_left(frame)

    def push_right(self, frame: Frame) -> SubmitResult:
        self._check_format(frame)
        return self._sync.submit_right(frame)

    def flush(self) -> None:
        """Cancel every blocked and future push until the next start()."""
        self._sync.flush()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for feeder threads to finish. Returns True if all exited."""
        return all(feeder.join(timeout) for feeder in self._feeders)

    def stop(self) -> None:
        """Flush, join the feeders and return the synchronizer to IDLE."""
        with self._lock:
            if not self._running:
                return

        start = time.perf_counter()
        self._sync.flush()
        join_timeout = self._config.sync.feeder_join_timeout_s
        for feeder in self._feeders:
            feeder.stop()
            if not feeder.join(timeout=join_timeout):
                logger.warning(f"{feeder.label} feeder did not exit within {join_timeout:.1f}s")
        self._sync.reset()
        with self._lock:
            self._running = False
        log_performance("pipeline stop", (time.perf_counter() - start) * 1000.0, threshold_ms=join_timeout * 1000.0)
        logger.info("Pipeline stopped")

    def outputs(self) -> List[OutputFrame]:
        """Outputs collected by the default sink, oldest first."""
        with self._lock:
            return list(self._outputs)

    def clear_outputs(self) -> None:
        with self._lock:
            self._outputs.clear()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            buffered = len(self._outputs)
        return {
            "state": self._sync.state.value,
            "sync": self._sync.get_stats(),
            "registration": self._engine.get_stats(),
            "feeders": {
                feeder.label: {
                    "frames_pushed": feeder.frames_pushed,
                    "exit_reason": feeder.exit_reason.value if feeder.exit_reason else None,
                }
                for feeder in self._feeders
            },
            "outputs_buffered": buffered,
        }

    def _check_format(self, frame: Frame) -> None:
        fmt = frame.format
        with self._lock:
            negotiated = self._format
        if negotiated is None:
            self.negotiate(fmt)
        elif fmt != negotiated:
            raise FrameFormatError(
                f"{frame.camera_id} frame {frame.frame_index} is {fmt}, expected {negotiated}",
                expected=negotiated,
                actual=fmt,
            )

    def _emit(self, output: OutputFrame) -> None:
        if self._user_sink is not None:
            self._user_sink(output)
            return
        with self._lock:
            self._outputs.append(output)

    def _make_feeder(self, label: str, source: FrameSource, push) -> StreamFeeder:
        return StreamFeeder(
            label,
            source,
            push,
            max_frames=self._max_frames,
            on_finished=self._on_feeder_finished,
            error_bus=self._error_bus,
        )

    def _on_feeder_finished(self, feeder: StreamFeeder) -> None:
        # End of one stream: let the other side finish the last pair, then
        # cancel it so it does not wait for a partner that never comes.
        reason = feeder.exit_reason
        if reason in (FeederExit.CANCELLED, FeederExit.STOPPED):
            return
        try:
            if feeder.label == "left" and reason in (FeederExit.EXHAUSTED, FeederExit.MAX_FRAMES):
                if not self._sync.drain(timeout=self._config.sync.feeder_join_timeout_s):
                    logger.warning("Timed out waiting for the last left frame to be paired")
            logger.debug(f"{feeder.label} stream ended ({reason.value if reason else 'unknown'}), flushing")
        finally:
            self._sync.flush()


__all__ = ["PanographyPipeline"]
