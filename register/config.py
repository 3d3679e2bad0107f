from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FallbackPolicy(str, Enum):
    PASSTHROUGH = "passthrough"  # emit the unmodified right frame, flagged degraded
    SKIP = "skip"  # emit nothing for the pair


@dataclass(frozen=True)
class RegistrationConfig:
    method: str = "feature_homography"
    # SIFT difference-of-Gaussian response threshold; weaker blobs are discarded.
    contrast_threshold: float = 0.04
    min_response: float = 0.0
    max_features: int = 2000
    good_match_factor: float = 3.0
    # Lower bound on the good-match threshold so identical descriptors
    # (min distance 0) still qualify.
    min_distance_floor: float = 10.0
    min_good_matches: int = 4
    ransac_reproj_threshold: float = 3.0
    min_scale: float = 0.1
    max_scale: float = 10.0
    max_canvas_factor: float = 4.0
    color_composite: bool = True
    draw_matches: bool = False
    draw_matches_limit: int = 10
    fallback_policy: FallbackPolicy = FallbackPolicy.PASSTHROUGH
    runtime_budget_ms: float = 50.0
