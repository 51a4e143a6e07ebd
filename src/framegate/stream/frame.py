"""
Frame Data Model
=================

Internal frame representation for the admission pipeline.

This module defines the FrameSample class passed from a frame source to the
admission gates and, for admitted frames, to the detection dispatcher.

Design Rules:
    - Pixels are an RGBA uint8 array of shape (height, width, 4)
    - `encoded` holds the compressed image sent to the recognition service
    - Samples are immutable; gates copy pixels if they need to keep them
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class FrameSample:
    """
    One captured camera frame.

    Attributes:
        pixels: RGBA pixel buffer, shape (height, width, 4), dtype uint8
        width: Frame width in pixels
        height: Frame height in pixels
        encoded: Encoded image bytes (JPEG) for the recognition service
        timestamp: UNIX timestamp (seconds) when the frame was captured
    """

    pixels: np.ndarray
    width: int
    height: int
    encoded: bytes
    timestamp: float

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(
                f"pixels must be RGBA with shape (H, W, 4), got {self.pixels.shape}"
            )
        if self.pixels.shape[:2] != (self.height, self.width):
            raise ValueError(
                f"pixels shape {self.pixels.shape[:2]} does not match "
                f"declared size ({self.height}, {self.width})"
            )

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel buffer."""
        return (
            f"FrameSample({self.width}x{self.height}, "
            f"encoded={len(self.encoded)}B, "
            f"timestamp={self.timestamp:.3f})"
        )
