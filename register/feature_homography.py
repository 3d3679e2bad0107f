"""Feature matching + RANSAC homography registration."""

from __future__ import annotations

import numpy as np

from contracts import FramePair, RegistrationResult
from exceptions import InsufficientMatchesError

from .composite import (
    bgr_to_pixfmt,
    draw_match_visualization,
    fit_to_frame,
    gray_to_pixfmt,
    warp_and_composite,
)
from .config import RegistrationConfig
from .features import (
    create_detector,
    create_matcher,
    detect_and_describe,
    filter_good_matches,
    good_match_threshold,
    match_descriptors,
    matched_points,
)
from .homography import estimate_homography, validate_homography
from .method import RegistrationMethod, register_method
from .scratch import ScratchBuffers, as_image


@register_method("surf", "feature")
class FeatureHomographyMethod(RegistrationMethod):
    name = "feature_homography"

    def __init__(self, config: RegistrationConfig) -> None:
        super().__init__(config)
        self._detector = create_detector(config)
        self._matcher = create_matcher()

    def register(self, pair: FramePair, scratch: ScratchBuffers) -> RegistrationResult:
        cfg = self.config
        gray_left = scratch.luminance(pair.left, scratch.gray_left)
        gray_right = scratch.luminance(pair.right, scratch.gray_right)

        keypoints_left = detect_and_describe(gray_left, self._detector, cfg.min_response)
        keypoints_right = detect_and_describe(gray_right, self._detector, cfg.min_response)

        matches = match_descriptors(keypoints_left, keypoints_right, self._matcher)
        good = filter_good_matches(matches, cfg.good_match_factor, cfg.min_distance_floor)
        if len(good) < max(cfg.min_good_matches, 4):
            raise InsufficientMatchesError(
                f"Only {len(good)} good matches (keypoints {len(keypoints_left)}/{len(keypoints_right)}, "
                f"matches {len(matches)})",
                good_matches=len(good),
            )

        src, dst = matched_points(keypoints_left, keypoints_right, good)
        H, inliers = estimate_homography(src, dst, cfg.ransac_reproj_threshold)
        fmt = scratch.format
        H = validate_homography(H, fmt.width, fmt.height, cfg.min_scale, cfg.max_scale)

        return RegistrationResult(
            method=self.name,
            homography=H,
            keypoints_left=keypoints_left,
            keypoints_right=keypoints_right,
            matches=matches,
            good_matches=good,
            inliers=inliers,
            diagnostics={
                "min_distance": matches.min_distance,
                "max_distance": matches.max_distance,
                "threshold": good_match_threshold(matches, cfg.good_match_factor, cfg.min_distance_floor),
            },
        )

    def render(self, pair: FramePair, result: RegistrationResult, scratch: ScratchBuffers) -> np.ndarray:
        cfg = self.config
        fmt = scratch.format

        if cfg.draw_matches:
            visual = draw_match_visualization(
                scratch.gray_left,
                result.keypoints_left,
                scratch.gray_right,
                result.keypoints_right,
                result.good_matches,
                cfg.draw_matches_limit,
            )
            return bgr_to_pixfmt(fit_to_frame(visual, fmt.width, fmt.height), fmt.pixfmt)

        if cfg.color_composite and fmt.channels > 1:
            canvas = warp_and_composite(
                as_image(pair.left), as_image(pair.right), result.homography, cfg.max_canvas_factor
            )
            return fit_to_frame(canvas, fmt.width, fmt.height)

        canvas = warp_and_composite(
            scratch.gray_left, scratch.gray_right, result.homography, cfg.max_canvas_factor
        )
        return gray_to_pixfmt(fit_to_frame(canvas, fmt.width, fmt.height), fmt.pixfmt)
