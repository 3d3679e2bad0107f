"""Core data contracts for frames, pairing, registration and output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

# Pixel formats accepted by the pipeline, mapped to their channel count.
PIXEL_FORMATS: Dict[str, int] = {
    "GRAY8": 1,
    "RGB": 3,
    "BGR": 3,
}


@dataclass(frozen=True)
class FrameFormat:
    width: int
    height: int
    channels: int
    pixfmt: str

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height} {self.pixfmt} ({self.channels} ch)"


@dataclass(frozen=True)
class Frame:
    camera_id: str
    frame_index: int
    t_capture_monotonic_ns: int
    image: Any
    width: int
    height: int
    pixfmt: str

    @property
    def channels(self) -> int:
        return PIXEL_FORMATS.get(self.pixfmt, 1)

    @property
    def stride(self) -> int:
        """Bytes per image row."""
        return self.width * self.channels

    @property
    def format(self) -> FrameFormat:
        return FrameFormat(self.width, self.height, self.channels, self.pixfmt)


@dataclass(frozen=True)
class FramePair:
    left: Frame
    right: Frame
    sequence: int = 0


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    response: float
    size: float


@dataclass(frozen=True)
class KeypointSet:
    """Detected keypoints in detector order, with their descriptor rows."""

    keypoints: Tuple[Keypoint, ...]
    descriptors: Optional[np.ndarray]

    def __len__(self) -> int:
        return len(self.keypoints)

    def points(self) -> np.ndarray:
        """Keypoint coordinates as an (N, 2) float32 array."""
        if not self.keypoints:
            return np.empty((0, 2), dtype=np.float32)
        return np.array([(kp.x, kp.y) for kp in self.keypoints], dtype=np.float32)


@dataclass(frozen=True)
class Correspondence:
    left_index: int
    right_index: int
    distance: float


@dataclass(frozen=True)
class CorrespondenceSet:
    matches: Tuple[Correspondence, ...]
    min_distance: float
    max_distance: float

    def __len__(self) -> int:
        return len(self.matches)


@dataclass(frozen=True)
class RegistrationResult:
    method: str
    homography: np.ndarray
    keypoints_left: KeypointSet
    keypoints_right: KeypointSet
    matches: CorrespondenceSet
    good_matches: Tuple[Correspondence, ...]
    inliers: int
    diagnostics: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OutputFrame:
    sequence: int
    left_index: int
    right_index: int
    t_capture_monotonic_ns: int
    image: Any
    width: int
    height: int
    pixfmt: str
    homography: Optional[np.ndarray] = None
    degraded: bool = False
    failure_reason: Optional[str] = None
