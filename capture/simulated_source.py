"""Simulated frame source for pipeline testing."""

from __future__ import annotations

import time
from typing import Optional, Tuple

import cv2
import numpy as np

from contracts import Frame

from .frame_source import FrameSource, SourceStats


def make_textured_scene(width: int, height: int, seed: int = 7, shapes: int = 80) -> np.ndarray:
    """BGR scene of random rectangles and discs, rich in corners and blobs."""
    rng = np.random.default_rng(seed)
    scene = np.full((height, width, 3), 96, dtype=np.uint8)
    for _ in range(shapes):
        color = tuple(int(c) for c in rng.integers(0, 256, size=3))
        x, y = int(rng.integers(0, width)), int(rng.integers(0, height))
        if rng.random() < 0.5:
            w = int(rng.integers(6, max(7, width // 6)))
            h = int(rng.integers(6, max(7, height // 6)))
            cv2.rectangle(scene, (x, y), (x + w, y + h), color, thickness=-1)
        else:
            radius = int(rng.integers(3, max(4, min(width, height) // 12)))
            cv2.circle(scene, (x, y), radius, color, thickness=-1)
    return cv2.GaussianBlur(scene, (3, 3), 0)


def convert_bgr(image: np.ndarray, pixfmt: str) -> np.ndarray:
    if pixfmt == "GRAY8":
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if pixfmt == "RGB":
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return image


class SimulatedSource(FrameSource):
    """Replays a synthetic scene, optionally shifted to mimic a second camera.

    Args:
        shift: (dx, dy) pixel offset applied with wraparound, so the scene
            point at (x, y) appears at (x + dx, y + dy).
        blank: Emit a uniform image with no features instead of the scene.
    """

    def __init__(
        self,
        camera_id: str = "sim",
        width: int = 320,
        height: int = 240,
        pixfmt: str = "RGB",
        fps: int = 0,
        shift: Tuple[int, int] = (0, 0),
        seed: int = 7,
        max_frames: Optional[int] = None,
        blank: bool = False,
    ) -> None:
        self._camera_id = camera_id
        self._width = width
        self._height = height
        self._pixfmt = pixfmt
        self._fps = fps
        self._max_frames = max_frames
        self._frame_index = 0
        self._closed = False
        self._started = time.monotonic()
        self._last_frame_time = self._started

        if blank:
            scene = np.full((height, width, 3), 128, dtype=np.uint8)
        else:
            scene = make_textured_scene(width, height, seed)
        dx, dy = shift
        scene = np.roll(scene, shift=(dy, dx), axis=(0, 1))
        self._image = np.ascontiguousarray(convert_bgr(scene, pixfmt))

    @property
    def image(self) -> np.ndarray:
        return self._image

    def read(self) -> Optional[Frame]:
        if self._closed:
            return None
        if self._max_frames is not None and self._frame_index >= self._max_frames:
            return None

        if self._fps > 0:
            target_delay = 1.0 / self._fps
            elapsed = time.monotonic() - self._last_frame_time
            if elapsed < target_delay:
                time.sleep(target_delay - elapsed)
        self._last_frame_time = time.monotonic()
        self._frame_index += 1

        return Frame(
            camera_id=self._camera_id,
            frame_index=self._frame_index,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=self._image.copy(),
            width=self._width,
            height=self._height,
            pixfmt=self._pixfmt,
        )

    def get_stats(self) -> SourceStats:
        elapsed = max(time.monotonic() - self._started, 1e-6)
        exhausted = self._closed or (
            self._max_frames is not None and self._frame_index >= self._max_frames
        )
        return SourceStats(
            frames_read=self._frame_index,
            fps_avg=self._frame_index / elapsed,
            exhausted=exhausted,
        )

    def close(self) -> None:
        self._closed = True
