"""Frame source abstraction feeding one side of the synchronizer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from contracts import Frame


@dataclass(frozen=True)
class SourceStats:
    frames_read: int
    fps_avg: float
    exhausted: bool


class FrameSource(ABC):
    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Return the next frame, or None once the source is exhausted."""

    @abstractmethod
    def get_stats(self) -> SourceStats:
        """Return source diagnostics."""

    @abstractmethod
    def close(self) -> None:
        """Release the source."""

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
