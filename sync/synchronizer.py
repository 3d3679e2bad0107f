"""Twin-stream synchronizer pairing left and right frames through a single slot.

Two producer threads call ``submit_left`` and ``submit_right``. The left
frame waits in a one-element mailbox; the right submission that finds it
forms the pair and runs registration on its own thread. A second left frame
cannot enter until the slot is released, so pairing is exactly-once, in left
arrival order, and never holds more than one pair in memory.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from contracts import Frame, FramePair, OutputFrame
from exceptions import SynchronizerStateError
from log_config.logger import get_logger

logger = get_logger(__name__)

PairProcessor = Callable[[FramePair], Optional[OutputFrame]]
OutputSink = Callable[[OutputFrame], None]


class SyncState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FLUSHING = "flushing"


class SubmitResult(str, Enum):
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"


@dataclass
class PendingSlot:
    """Single-element mailbox holding the unpaired left frame."""

    left: Optional[Frame] = None
    in_flight: bool = False

    @property
    def occupied(self) -> bool:
        return self.left is not None

    @property
    def ready(self) -> bool:
        return self.left is not None and not self.in_flight

    def clear(self) -> None:
        self.left = None
        self.in_flight = False


class StreamSynchronizer:
    """Pairs frames from two concurrently submitting streams.

    Args:
        process: Called with each FramePair on the right-stream thread.
            Returns the output frame, or None when nothing should be emitted.
        sink: Receives every emitted OutputFrame, in pairing order.

    Thread-Safety:
        ``submit_left`` and ``submit_right`` are meant to be called from one
        thread each. ``flush``, ``reset`` and ``start`` may be called from
        any thread. ``flush`` never waits for registration work.
    """

    def __init__(self, process: PairProcessor, sink: Optional[OutputSink] = None) -> None:
        self._process = process
        self._sink = sink

        self._lock = threading.Lock()
        self._slot_free = threading.Condition(self._lock)
        self._left_ready = threading.Condition(self._lock)

        self._slot = PendingSlot()
        self._state = SyncState.IDLE
        # Bumped by every flush; a waiter that sees a different epoch than the
        # one it entered with was cancelled, even if reset() already ran.
        self._flush_epoch = 0
        self._sequence = 0

        self._stats: Dict[str, int] = {
            "paired": 0,
            "outputs_emitted": 0,
            "cancelled_left": 0,
            "cancelled_right": 0,
            "dropped_on_flush": 0,
            "dropped_on_reset": 0,
            "discarded_outputs": 0,
            "process_errors": 0,
        }

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def has_pending_left(self) -> bool:
        with self._lock:
            return self._slot.occupied

    def set_sink(self, sink: Optional[OutputSink]) -> None:
        self._sink = sink

    def start(self) -> None:
        """Arm the synchronizer (IDLE -> ACTIVE)."""
        with self._lock:
            if self._state == SyncState.FLUSHING:
                raise SynchronizerStateError("Cannot start while flushing; call reset() first")
            if self._state == SyncState.IDLE:
                self._state = SyncState.ACTIVE
                logger.debug("Synchronizer armed")

    def submit_left(self, frame: Frame) -> SubmitResult:
        """Offer a left frame; blocks while the previous left frame is unpaired."""
        with self._lock:
            epoch = self._enter()
            while self._slot.occupied and not self._cancelled(epoch):
                logger.debug(f"Left frame {frame.frame_index} waiting for slot")
                self._slot_free.wait()

            if self._cancelled(epoch):
                self._stats["cancelled_left"] += 1
                return SubmitResult.CANCELLED

            self._slot.left = frame
            self._left_ready.notify()
            return SubmitResult.ACCEPTED

    def submit_right(self, frame: Frame) -> SubmitResult:
        """Offer a right frame; blocks until a left frame is available.

        The pair is registered and emitted on the calling thread. The slot is
        released only after emission so outputs cannot overtake each other.
        """
        with self._lock:
            epoch = self._enter()
            while not self._slot.ready and not self._cancelled(epoch):
                logger.debug(f"Right frame {frame.frame_index} waiting for left frame")
                self._left_ready.wait()

            if self._cancelled(epoch):
                self._stats["cancelled_right"] += 1
                return SubmitResult.CANCELLED

            self._sequence += 1
            pair = FramePair(left=self._slot.left, right=frame, sequence=self._sequence)
            self._slot.in_flight = True
            self._stats["paired"] += 1

        cancelled = False
        try:
            output = self._process(pair)

            with self._lock:
                cancelled = self._cancelled(epoch)
                if cancelled:
                    self._stats["cancelled_right"] += 1
                    if output is not None:
                        self._stats["discarded_outputs"] += 1

            if output is not None and not cancelled:
                if self._sink is not None:
                    self._sink(output)
                with self._lock:
                    self._stats["outputs_emitted"] += 1
        except Exception:
            with self._lock:
                self._stats["process_errors"] += 1
            raise
        finally:
            with self._lock:
                self._slot.clear()
                self._slot_free.notify_all()

        return SubmitResult.CANCELLED if cancelled else SubmitResult.ACCEPTED

    def flush(self) -> None:
        """Cancel every blocked and future submission until reset()."""
        with self._lock:
            self._state = SyncState.FLUSHING
            self._flush_epoch += 1
            if self._slot.ready:
                self._stats["dropped_on_flush"] += 1
                logger.debug(f"Dropping pending left frame {self._slot.left.frame_index} on flush")
                self._slot.clear()
            self._slot_free.notify_all()
            self._left_ready.notify_all()
        logger.info("Synchronizer flushing")

    cancel = flush

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until the pending left frame has been paired and emitted.

        Returns False on timeout. Also returns once a flush is in progress,
        since a flushing synchronizer will not pair the pending frame.
        """
        with self._lock:
            return self._slot_free.wait_for(
                lambda: not self._slot.occupied or self._state == SyncState.FLUSHING,
                timeout=timeout,
            )

    def reset(self) -> None:
        """Return to IDLE and clear a pending (not in-flight) left frame."""
        with self._lock:
            if self._state == SyncState.IDLE and not self._slot.ready:
                return
            previous = self._state
            self._state = SyncState.IDLE
            if self._slot.ready:
                self._stats["dropped_on_reset"] += 1
                self._slot.clear()
                self._slot_free.notify_all()
        logger.debug(f"Synchronizer reset from {previous.value}")

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = self._stats.copy()
            stats["pending_left"] = int(self._slot.occupied)
        return stats

    def _enter(self) -> int:
        # Must hold the lock. Re-arms an idle synchronizer on next use.
        if self._state == SyncState.IDLE:
            self._state = SyncState.ACTIVE
        return self._flush_epoch

    def _cancelled(self, epoch: int) -> bool:
        return self._state == SyncState.FLUSHING or self._flush_epoch != epoch
