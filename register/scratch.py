"""Per-session scratch buffers sized to the negotiated frame format."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from contracts import PIXEL_FORMATS, Frame, FrameFormat
from exceptions import FrameFormatError

_TO_GRAY = {
    "RGB": cv2.COLOR_RGB2GRAY,
    "BGR": cv2.COLOR_BGR2GRAY,
}


@dataclass
class ScratchBuffers:
    """Luminance buffers reused by every registration cycle of one epoch.

    A new instance is created on each reconfigure; the previous epoch's
    arrays are released with it.
    """

    epoch: int
    format: FrameFormat
    gray_left: np.ndarray
    gray_right: np.ndarray

    @classmethod
    def allocate(cls, epoch: int, fmt: FrameFormat) -> "ScratchBuffers":
        shape = (fmt.height, fmt.width)
        return cls(
            epoch=epoch,
            format=fmt,
            gray_left=np.zeros(shape, dtype=np.uint8),
            gray_right=np.zeros(shape, dtype=np.uint8),
        )

    def check(self, frame: Frame) -> None:
        """Raise FrameFormatError if the frame does not fit these buffers."""
        actual = frame.format
        if actual != self.format:
            raise FrameFormatError(
                f"Frame {frame.camera_id}#{frame.frame_index} is {actual}, session expects {self.format}",
                expected=self.format,
                actual=actual,
            )
        image = as_image(frame)
        expected_shape = (self.format.height, self.format.width)
        if image.shape[:2] != expected_shape or image.dtype != np.uint8:
            raise FrameFormatError(
                f"Frame {frame.camera_id}#{frame.frame_index} buffer is {image.shape} {image.dtype}, "
                f"expected {expected_shape} uint8",
                expected=self.format,
                actual=actual,
            )
        buffer_channels = 1 if image.ndim == 2 else image.shape[2]
        if buffer_channels != PIXEL_FORMATS[frame.pixfmt]:
            raise FrameFormatError(
                f"Frame {frame.camera_id}#{frame.frame_index} is labelled {frame.pixfmt} "
                f"but its buffer has {buffer_channels} channel(s)",
                expected=self.format,
                actual=FrameFormat(frame.width, frame.height, buffer_channels, frame.pixfmt),
            )

    def luminance(self, frame: Frame, out: np.ndarray) -> np.ndarray:
        """Write the frame's luminance into ``out`` (one of this epoch's buffers)."""
        image = as_image(frame)
        if image.ndim == 2:
            np.copyto(out, image)
        else:
            cv2.cvtColor(image, _TO_GRAY[frame.pixfmt], dst=out)
        return out


def as_image(frame: Frame) -> np.ndarray:
    """Frame pixels as HxW (gray) or HxWxC array."""
    image = np.asarray(frame.image)
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    return image
