"""Perspective compositing of a registered pair into one output image."""

from __future__ import annotations

from typing import Sequence, Tuple

import cv2
import numpy as np

from contracts import Correspondence, KeypointSet
from exceptions import DegenerateHomographyError

from .homography import frame_corners, project

_FROM_GRAY = {
    "RGB": cv2.COLOR_GRAY2RGB,
    "BGR": cv2.COLOR_GRAY2BGR,
}
_FROM_BGR = {
    "GRAY8": cv2.COLOR_BGR2GRAY,
    "RGB": cv2.COLOR_BGR2RGB,
}


def _round(value: float) -> int:
    return int(np.floor(value + 0.5))


def canvas_bounds(H: np.ndarray, width: int, height: int) -> Tuple[int, int, int, int]:
    """Bounding box (x_min, y_min, x_max, y_max) of warped left ∪ right frame.

    Coordinates are rounded to the nearest integer so a near-identity
    transform yields exactly the frame rectangle.
    """
    warped, _ = project(H, frame_corners(width, height))
    x_min = min(0, _round(warped[:, 0].min()))
    y_min = min(0, _round(warped[:, 1].min()))
    x_max = max(width, _round(warped[:, 0].max()))
    y_max = max(height, _round(warped[:, 1].max()))
    return x_min, y_min, x_max, y_max


def warp_and_composite(
    left: np.ndarray, right: np.ndarray, H: np.ndarray, max_canvas_factor: float = 4.0
) -> np.ndarray:
    """Warp ``left`` by H onto a canvas and overwrite ``right`` at its native position."""
    height, width = right.shape[:2]
    x_min, y_min, x_max, y_max = canvas_bounds(H, width, height)
    canvas_w = x_max - x_min
    canvas_h = y_max - y_min
    if canvas_w > max_canvas_factor * width or canvas_h > max_canvas_factor * height:
        raise DegenerateHomographyError(
            f"Composite canvas {canvas_w}x{canvas_h} exceeds {max_canvas_factor}x frame {width}x{height}"
        )

    offset = np.array([[1.0, 0.0, -x_min], [0.0, 1.0, -y_min], [0.0, 0.0, 1.0]])
    canvas = cv2.warpPerspective(left, offset @ H, (canvas_w, canvas_h))

    ox, oy = -x_min, -y_min
    canvas[oy:oy + height, ox:ox + width] = right
    return canvas


def fit_to_frame(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale a canvas back to the session frame size."""
    if image.shape[0] == height and image.shape[1] == width:
        return image
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)


def gray_to_pixfmt(gray: np.ndarray, pixfmt: str) -> np.ndarray:
    if pixfmt == "GRAY8":
        return gray
    return cv2.cvtColor(gray, _FROM_GRAY[pixfmt])


def bgr_to_pixfmt(bgr: np.ndarray, pixfmt: str) -> np.ndarray:
    if pixfmt == "BGR":
        return bgr
    return cv2.cvtColor(bgr, _FROM_BGR[pixfmt])


def draw_match_visualization(
    gray_left: np.ndarray,
    keypoints_left: KeypointSet,
    gray_right: np.ndarray,
    keypoints_right: KeypointSet,
    matches: Sequence[Correspondence],
    limit: int = 10,
) -> np.ndarray:
    """Side-by-side BGR image of the first ``limit`` good matches."""
    cv_left = [cv2.KeyPoint(kp.x, kp.y, kp.size) for kp in keypoints_left.keypoints]
    cv_right = [cv2.KeyPoint(kp.x, kp.y, kp.size) for kp in keypoints_right.keypoints]
    dmatches = [cv2.DMatch(m.left_index, m.right_index, m.distance) for m in list(matches)[:limit]]
    return cv2.drawMatches(
        gray_left,
        cv_left,
        gray_right,
        cv_right,
        dmatches,
        None,
        flags=cv2.DrawMatchesFlags_DEFAULT,
    )
