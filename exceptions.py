"""Custom exception classes for Panography."""

from __future__ import annotations

from typing import Any, Optional


class PanographyError(Exception):
    """Base exception for all Panography errors."""

    pass


class SynchronizerError(PanographyError):
    """Base exception for stream synchronizer errors."""

    pass


class SynchronizerStateError(SynchronizerError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    pass


class RegistrationError(PanographyError):
    """Base exception for registration failures.

    These are recoverable: the engine converts them to the fallback output.
    """

    reason = "registration_failed"


class InsufficientMatchesError(RegistrationError):
    """Raised when too few good correspondences remain to fit a homography."""

    reason = "insufficient_matches"

    def __init__(self, message: str, good_matches: int = 0):
        self.good_matches = good_matches
        super().__init__(message)


class DegenerateHomographyError(RegistrationError):
    """Raised when the estimated homography is singular or out of bounds."""

    reason = "degenerate_homography"


class FrameFormatError(PanographyError):
    """Raised when a frame does not match the negotiated session format."""

    def __init__(self, message: str, expected: Optional[Any] = None, actual: Optional[Any] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class ConfigError(PanographyError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)


class SourceError(PanographyError):
    """Raised when a frame source cannot be opened or read."""

    def __init__(self, message: str, source_id: Optional[str] = None):
        self.source_id = source_id
        super().__init__(message)
