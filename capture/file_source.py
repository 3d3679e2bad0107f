"""OpenCV-backed frame source reading still images or video files."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from contracts import Frame
from exceptions import SourceError
from log_config.logger import get_logger

from .frame_source import FrameSource, SourceStats
from .simulated_source import convert_bgr

logger = get_logger(__name__)

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".ppm", ".pgm"}


class ImageFileSource(FrameSource):
    """Frames from a still image (repeated) or a video file.

    Args:
        path: Image or video path
        pixfmt: Pixel format of the emitted frames
        size: Optional (width, height) to resize every frame to
        repeat: Number of times a still image is emitted
    """

    def __init__(
        self,
        path: Union[str, Path],
        camera_id: Optional[str] = None,
        pixfmt: str = "RGB",
        size: Optional[Tuple[int, int]] = None,
        repeat: int = 1,
    ) -> None:
        self._path = Path(path)
        self._camera_id = camera_id or self._path.stem
        self._pixfmt = pixfmt
        self._size = size
        self._repeat = repeat
        self._frames = 0
        self._exhausted = False
        self._started = time.monotonic()
        self._still: Optional[np.ndarray] = None
        self._capture: Optional[cv2.VideoCapture] = None

        if not self._path.exists():
            raise SourceError(f"Frame source not found: {self._path}", source_id=self._camera_id)

        if self._path.suffix.lower() in _IMAGE_SUFFIXES:
            image = cv2.imread(str(self._path), cv2.IMREAD_COLOR)
            if image is None:
                raise SourceError(f"Failed to decode image {self._path}", source_id=self._camera_id)
            self._still = self._prepare(image)
            logger.info(f"Opened still image {self._path} ({self._still.shape[1]}x{self._still.shape[0]})")
        else:
            capture = cv2.VideoCapture(str(self._path))
            if not capture.isOpened():
                capture.release()
                raise SourceError(f"Failed to open video {self._path}", source_id=self._camera_id)
            self._capture = capture
            logger.info(f"Opened video {self._path}")

    @property
    def width(self) -> int:
        if self._still is not None:
            return int(self._still.shape[1])
        if self._size is not None:
            return int(self._size[0])
        return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)) if self._capture is not None else 0

    @property
    def height(self) -> int:
        if self._still is not None:
            return int(self._still.shape[0])
        if self._size is not None:
            return int(self._size[1])
        return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) if self._capture is not None else 0

    def _prepare(self, bgr: np.ndarray) -> np.ndarray:
        if self._size is not None and (bgr.shape[1], bgr.shape[0]) != tuple(self._size):
            bgr = cv2.resize(bgr, tuple(self._size), interpolation=cv2.INTER_AREA)
        return np.ascontiguousarray(convert_bgr(bgr, self._pixfmt))

    def read(self) -> Optional[Frame]:
        if self._exhausted:
            return None

        if self._still is not None:
            if self._frames >= self._repeat:
                self._exhausted = True
                return None
            image = self._still.copy()
        else:
            if self._capture is None:
                self._exhausted = True
                return None
            ok, bgr = self._capture.read()
            if not ok:
                self._exhausted = True
                return None
            image = self._prepare(bgr)

        self._frames += 1
        return Frame(
            camera_id=self._camera_id,
            frame_index=self._frames,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=image,
            width=image.shape[1],
            height=image.shape[0],
            pixfmt=self._pixfmt,
        )

    def get_stats(self) -> SourceStats:
        elapsed = max(time.monotonic() - self._started, 1e-6)
        return SourceStats(frames_read=self._frames, fps_avg=self._frames / elapsed, exhausted=self._exhausted)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self._exhausted = True
