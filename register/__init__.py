"""Registration module."""

from .config import FallbackPolicy, RegistrationConfig
from .engine import RegistrationEngine
from .feature_homography import FeatureHomographyMethod
from .method import RegistrationMethod, available_methods, create_method, register_method
from .scratch import ScratchBuffers

__all__ = [
    "FallbackPolicy",
    "FeatureHomographyMethod",
    "RegistrationConfig",
    "RegistrationEngine",
    "RegistrationMethod",
    "ScratchBuffers",
    "available_methods",
    "create_method",
    "register_method",
]
