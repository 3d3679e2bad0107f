"""Registration engine: turns a synchronized frame pair into one output frame."""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Any, Dict, Optional

import cv2
import numpy as np

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from contracts import FrameFormat, FramePair, OutputFrame, PIXEL_FORMATS
from exceptions import FrameFormatError, RegistrationError
from log_config.logger import get_logger

from . import feature_homography  # noqa: F401  (registers the built-in method)
from . import telemetry
from .config import FallbackPolicy, RegistrationConfig
from .method import RegistrationMethod, create_method, resolve_method_name
from .scratch import ScratchBuffers, as_image

logger = get_logger(__name__)

# Failures converted to the fallback output instead of propagating.
RECOVERABLE_ERRORS = (RegistrationError, cv2.error, np.linalg.LinAlgError)

_DEFAULT_PIXFMT = {1: "GRAY8", 3: "RGB"}


class RegistrationEngine:
    """Computes left-to-right alignment for each pair and composites the result.

    The engine is driven from the right-stream thread of the synchronizer;
    only one pair is processed at a time. ``reconfigure`` and ``set_method``
    may be called from the control thread between cycles.
    """

    def __init__(
        self,
        config: Optional[RegistrationConfig] = None,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._config = config or RegistrationConfig()
        self._error_bus = error_bus
        self._lock = threading.Lock()
        self._method: RegistrationMethod = create_method(self._config.method, self._config)
        self._scratch: Optional[ScratchBuffers] = None
        self._epoch = 0

        self._stats: Dict[str, Any] = {
            "pairs": 0,
            "registered": 0,
            "failures": 0,
            "skipped": 0,
            "degraded": 0,
            "failures_by_reason": {},
            "last_good_matches": 0,
            "total_elapsed_ms": 0.0,
        }

        logger.info(
            f"RegistrationEngine initialized: method={self._method.name}, "
            f"fallback={self._config.fallback_policy.value}"
        )

    @property
    def config(self) -> RegistrationConfig:
        return self._config

    @property
    def method_name(self) -> str:
        return self._method.name

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def frame_format(self) -> Optional[FrameFormat]:
        scratch = self._scratch
        return scratch.format if scratch is not None else None

    def set_method(self, name: str) -> None:
        """Select the registration variant by name (raises ConfigError if unknown)."""
        resolved = resolve_method_name(name)
        with self._lock:
            self._config = replace(self._config, method=resolved)
            self._method = create_method(resolved, self._config)
        logger.info(f"Registration method set to {resolved}")

    def set_fallback_policy(self, policy: FallbackPolicy) -> None:
        with self._lock:
            self._config = replace(self._config, fallback_policy=FallbackPolicy(policy))
            self._method = create_method(self._config.method, self._config)

    def reconfigure(self, width: int, height: int, channels: int, pixfmt: Optional[str] = None) -> FrameFormat:
        """Allocate scratch buffers for a new frame geometry (next epoch)."""
        if width <= 0 or height <= 0:
            raise FrameFormatError(f"Invalid frame size {width}x{height}")
        pixfmt = pixfmt or _DEFAULT_PIXFMT.get(channels)
        if pixfmt not in PIXEL_FORMATS or PIXEL_FORMATS[pixfmt] != channels:
            raise FrameFormatError(f"Unsupported pixel format {pixfmt!r} with {channels} channels")

        fmt = FrameFormat(width=width, height=height, channels=channels, pixfmt=pixfmt)
        with self._lock:
            self._epoch += 1
            self._scratch = ScratchBuffers.allocate(self._epoch, fmt)
        logger.info(f"Registration buffers configured for {fmt} (epoch {self._epoch})")
        return fmt

    def process(self, pair: FramePair) -> Optional[OutputFrame]:
        """Register one pair. Returns the output frame, or None when skipped.

        Raises:
            FrameFormatError: a frame does not match the configured format
        """
        with self._lock:
            scratch = self._scratch
            method = self._method
            config = self._config

        if scratch is None:
            left = pair.left
            self.reconfigure(left.width, left.height, left.channels, left.pixfmt)
            scratch = self._scratch

        scratch.check(pair.left)
        scratch.check(pair.right)

        start = time.perf_counter()
        try:
            result = method.register(pair, scratch)
            image = method.render(pair, result, scratch)
        except RECOVERABLE_ERRORS as e:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            return self._fallback(pair, e, config, elapsed_ms)

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self._record(registered=True, elapsed_ms=elapsed_ms, good_matches=len(result.good_matches))
        telemetry.log_timing(method.name, pair.sequence, elapsed_ms, config.runtime_budget_ms, len(result.good_matches))

        fmt = scratch.format
        return OutputFrame(
            sequence=pair.sequence,
            left_index=pair.left.frame_index,
            right_index=pair.right.frame_index,
            t_capture_monotonic_ns=pair.right.t_capture_monotonic_ns,
            image=image,
            width=fmt.width,
            height=fmt.height,
            pixfmt=fmt.pixfmt,
            homography=result.homography,
        )

    __call__ = process

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            stats["failures_by_reason"] = dict(self._stats["failures_by_reason"])
        processed = stats["pairs"]
        stats["avg_elapsed_ms"] = stats["total_elapsed_ms"] / processed if processed else 0.0
        return stats

    def reset_stats(self) -> None:
        with self._lock:
            for key in ("pairs", "registered", "failures", "skipped", "degraded", "last_good_matches"):
                self._stats[key] = 0
            self._stats["total_elapsed_ms"] = 0.0
            self._stats["failures_by_reason"] = {}

    def _fallback(
        self, pair: FramePair, error: Exception, config: RegistrationConfig, elapsed_ms: float
    ) -> Optional[OutputFrame]:
        reason = getattr(error, "reason", "numeric_error")
        good_matches = getattr(error, "good_matches", 0)
        skip = config.fallback_policy == FallbackPolicy.SKIP
        self._record(registered=False, elapsed_ms=elapsed_ms, good_matches=good_matches, reason=reason, skipped=skip)

        logger.warning(f"Registration failed for pair {pair.sequence} ({reason}): {error}")
        publish_error(
            category=ErrorCategory.REGISTRATION,
            severity=ErrorSeverity.WARNING,
            message=f"Registration failed for pair {pair.sequence}: {reason}",
            source="RegistrationEngine",
            exception=error,
            bus=self._error_bus,
            sequence=pair.sequence,
            reason=reason,
            policy=config.fallback_policy.value,
        )

        if skip:
            return None

        right = pair.right
        return OutputFrame(
            sequence=pair.sequence,
            left_index=pair.left.frame_index,
            right_index=right.frame_index,
            t_capture_monotonic_ns=right.t_capture_monotonic_ns,
            image=as_image(right).copy(),
            width=right.width,
            height=right.height,
            pixfmt=right.pixfmt,
            homography=None,
            degraded=True,
            failure_reason=reason,
        )

    def _record(
        self,
        registered: bool,
        elapsed_ms: float,
        good_matches: int = 0,
        reason: Optional[str] = None,
        skipped: bool = False,
    ) -> None:
        with self._lock:
            self._stats["pairs"] += 1
            self._stats["total_elapsed_ms"] += elapsed_ms
            self._stats["last_good_matches"] = good_matches
            if registered:
                self._stats["registered"] += 1
                return
            self._stats["failures"] += 1
            self._stats["skipped" if skipped else "degraded"] += 1
            by_reason = self._stats["failures_by_reason"]
            by_reason[reason] = by_reason.get(reason, 0) + 1
