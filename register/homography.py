"""Robust homography estimation and sanity checks."""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from exceptions import DegenerateHomographyError, InsufficientMatchesError

MIN_POINTS = 4
_DET_EPSILON = 1e-9
_W_EPSILON = 1e-6


def estimate_homography(
    src_points: np.ndarray, dst_points: np.ndarray, reproj_threshold: float = 3.0
) -> Tuple[np.ndarray, int]:
    """Fit a homography mapping src (left) onto dst (right) with RANSAC.

    Returns:
        (H normalised so H[2, 2] == 1, number of RANSAC inliers)

    Raises:
        InsufficientMatchesError: fewer than four correspondences
        DegenerateHomographyError: RANSAC found no model
    """
    if len(src_points) < MIN_POINTS:
        raise InsufficientMatchesError(
            f"Need at least {MIN_POINTS} correspondences, got {len(src_points)}",
            good_matches=len(src_points),
        )

    src = np.asarray(src_points, dtype=np.float32).reshape(-1, 1, 2)
    dst = np.asarray(dst_points, dtype=np.float32).reshape(-1, 1, 2)
    try:
        H, mask = cv2.findHomography(src, dst, cv2.RANSAC, reproj_threshold)
    except cv2.error as e:
        raise DegenerateHomographyError(f"findHomography failed: {e}") from e

    if H is None:
        raise DegenerateHomographyError("RANSAC found no consistent homography")

    inliers = int(mask.sum()) if mask is not None else 0
    return normalize(H), inliers


def normalize(H: np.ndarray) -> np.ndarray:
    H = np.asarray(H, dtype=np.float64)
    if H.shape != (3, 3) or not np.all(np.isfinite(H)):
        raise DegenerateHomographyError("Homography is not a finite 3x3 matrix")
    if abs(H[2, 2]) < _DET_EPSILON:
        raise DegenerateHomographyError("Homography has a vanishing H[2,2] term")
    return H / H[2, 2]


def frame_corners(width: int, height: int) -> np.ndarray:
    return np.array([[0.0, 0.0], [width, 0.0], [width, height], [0.0, height]], dtype=np.float64)


def project(H: np.ndarray, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Apply H to (N, 2) points. Returns (projected points, homogeneous w)."""
    homogeneous = np.hstack([points, np.ones((len(points), 1))])
    mapped = homogeneous @ H.T
    w = mapped[:, 2]
    safe_w = np.where(np.abs(w) < _W_EPSILON, _W_EPSILON, w)
    return mapped[:, :2] / safe_w[:, None], w


def validate_homography(
    H: np.ndarray, width: int, height: int, min_scale: float = 0.1, max_scale: float = 10.0
) -> np.ndarray:
    """Reject singular, extreme or horizon-crossing transforms.

    Scale and shear are bounded through the singular values of the linear
    block; every frame corner must stay in front of the projective horizon.
    """
    H = normalize(H)

    det = np.linalg.det(H)
    if not np.isfinite(det) or abs(det) < _DET_EPSILON:
        raise DegenerateHomographyError(f"Homography is singular (det={det:.3g})")

    singular_values = np.linalg.svd(H[:2, :2], compute_uv=False)
    if singular_values.min() < min_scale or singular_values.max() > max_scale:
        raise DegenerateHomographyError(
            f"Homography scale/shear {singular_values.min():.3f}..{singular_values.max():.3f} "
            f"outside [{min_scale}, {max_scale}]"
        )

    _, w = project(H, frame_corners(width, height))
    if np.any(w <= _W_EPSILON):
        raise DegenerateHomographyError("Homography maps frame corners behind the horizon")

    return H


def translation(H: np.ndarray) -> Tuple[float, float]:
    """(dx, dy) component of a normalised homography."""
    H = normalize(H)
    return float(H[0, 2]), float(H[1, 2])
