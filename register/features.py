"""Keypoint detection, description and descriptor matching."""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from contracts import Correspondence, CorrespondenceSet, Keypoint, KeypointSet

from .config import RegistrationConfig

EMPTY_KEYPOINTS = KeypointSet(keypoints=(), descriptors=None)


def create_detector(config: RegistrationConfig):
    """SIFT detector/extractor: DoG blob response, 128-float descriptors."""
    return cv2.SIFT_create(
        nfeatures=config.max_features,
        contrastThreshold=config.contrast_threshold,
    )


def create_matcher() -> cv2.BFMatcher:
    # Cross-check keeps only mutual nearest neighbours, so no right
    # descriptor is matched to more than one left descriptor.
    return cv2.BFMatcher(cv2.NORM_L2, crossCheck=True)


def detect_and_describe(gray: np.ndarray, detector, min_response: float = 0.0) -> KeypointSet:
    """Detect keypoints above the response threshold and compute descriptors.

    The returned order is the detector's order and is what match indices
    refer to.
    """
    cv_keypoints = detector.detect(gray, None)
    cv_keypoints = [kp for kp in cv_keypoints if kp.response >= min_response]
    if not cv_keypoints:
        return EMPTY_KEYPOINTS

    cv_keypoints, descriptors = detector.compute(gray, cv_keypoints)
    if descriptors is None or len(cv_keypoints) == 0:
        return EMPTY_KEYPOINTS

    keypoints = tuple(
        Keypoint(x=float(kp.pt[0]), y=float(kp.pt[1]), response=float(kp.response), size=float(kp.size))
        for kp in cv_keypoints
    )
    return KeypointSet(keypoints=keypoints, descriptors=descriptors.astype(np.float32, copy=False))


def match_descriptors(left: KeypointSet, right: KeypointSet, matcher: cv2.BFMatcher) -> CorrespondenceSet:
    """Nearest-neighbour match every left descriptor against the right set."""
    if len(left) == 0 or len(right) == 0:
        return CorrespondenceSet(matches=(), min_distance=0.0, max_distance=0.0)

    dmatches = matcher.match(left.descriptors, right.descriptors)
    matches = tuple(
        Correspondence(left_index=m.queryIdx, right_index=m.trainIdx, distance=float(m.distance))
        for m in dmatches
    )
    if not matches:
        return CorrespondenceSet(matches=(), min_distance=0.0, max_distance=0.0)

    distances = [m.distance for m in matches]
    return CorrespondenceSet(matches=matches, min_distance=min(distances), max_distance=max(distances))


def good_match_threshold(matches: CorrespondenceSet, factor: float, floor: float) -> float:
    return max(factor * matches.min_distance, floor)


def filter_good_matches(
    matches: CorrespondenceSet, factor: float = 3.0, floor: float = 0.0
) -> Tuple[Correspondence, ...]:
    """Keep matches at or below ``max(factor * best distance, floor)``.

    The bound is inclusive, so every match at the best distance survives.
    """
    if not matches.matches:
        return ()
    threshold = good_match_threshold(matches, factor, floor)
    return tuple(m for m in matches.matches if m.distance <= threshold)


def matched_points(
    left: KeypointSet, right: KeypointSet, matches: Tuple[Correspondence, ...]
) -> Tuple[np.ndarray, np.ndarray]:
    """Coordinate arrays (N, 2) of the matched left and right keypoints."""
    left_points = left.points()
    right_points = right.points()
    left_idx = np.array([m.left_index for m in matches], dtype=np.intp)
    right_idx = np.array([m.right_index for m in matches], dtype=np.intp)
    return left_points[left_idx], right_points[right_idx]
