"""Shared data contracts for twin-stream registration."""

from .types import (
    PIXEL_FORMATS,
    Correspondence,
    CorrespondenceSet,
    Frame,
    FrameFormat,
    FramePair,
    Keypoint,
    KeypointSet,
    OutputFrame,
    RegistrationResult,
)

__all__ = [
    "PIXEL_FORMATS",
    "Correspondence",
    "CorrespondenceSet",
    "Frame",
    "FrameFormat",
    "FramePair",
    "Keypoint",
    "KeypointSet",
    "OutputFrame",
    "RegistrationResult",
]
