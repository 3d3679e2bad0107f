"""Registration method interface and registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Type

import numpy as np

from contracts import FramePair, RegistrationResult
from exceptions import ConfigError

from .config import RegistrationConfig
from .scratch import ScratchBuffers

_METHODS: Dict[str, Type["RegistrationMethod"]] = {}
_ALIASES: Dict[str, str] = {}


class RegistrationMethod(ABC):
    """One way of aligning the left frame of a pair onto the right frame."""

    name: str = ""

    def __init__(self, config: RegistrationConfig) -> None:
        self.config = config

    @abstractmethod
    def register(self, pair: FramePair, scratch: ScratchBuffers) -> RegistrationResult:
        """Estimate the left-to-right alignment or raise RegistrationError."""

    @abstractmethod
    def render(self, pair: FramePair, result: RegistrationResult, scratch: ScratchBuffers) -> np.ndarray:
        """Produce the output image (session size and pixel format)."""


def register_method(*aliases: str) -> Callable[[Type[RegistrationMethod]], Type[RegistrationMethod]]:
    """Class decorator adding a method (and optional alias names) to the registry."""

    def decorator(cls: Type[RegistrationMethod]) -> Type[RegistrationMethod]:
        _METHODS[cls.name] = cls
        for alias in aliases:
            _ALIASES[alias] = cls.name
        return cls

    return decorator


def resolve_method_name(name: str) -> str:
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    if key not in _METHODS:
        raise ConfigError(f"Unknown registration method: {name!r} (available: {', '.join(available_methods())})")
    return key


def create_method(name: str, config: RegistrationConfig) -> RegistrationMethod:
    return _METHODS[resolve_method_name(name)](config)


def available_methods() -> List[str]:
    return sorted(_METHODS)
