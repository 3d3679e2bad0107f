"""Capture module."""

from .file_source import ImageFileSource
from .frame_source import FrameSource, SourceStats
from .simulated_source import SimulatedSource, make_textured_scene

__all__ = ["FrameSource", "ImageFileSource", "SimulatedSource", "SourceStats", "make_textured_scene"]
