"""
Detection Models
================

Internal detection types produced by the dispatcher.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Normalized bounding box (all values in [0, 1] of frame size).

    Attributes:
        left: Left edge as a fraction of frame width
        top: Top edge as a fraction of frame height
        width: Box width as a fraction of frame width
        height: Box height as a fraction of frame height
    """

    left: float
    top: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class Detection:
    """
    One recognized label.

    Attributes:
        name: Label name returned by the recognition model
        confidence: Confidence in [0, 1]
        bounding_box: Location, if the model reports one
        timestamp: UNIX timestamp when the detection was produced
    """

    name: str
    confidence: float
    bounding_box: Optional[BoundingBox]
    timestamp: float

    def __repr__(self) -> str:
        return f"Detection({self.name!r}, confidence={self.confidence:.2f})"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "confidence": round(self.confidence, 4),
            "bounding_box": self.bounding_box.to_dict() if self.bounding_box else None,
            "timestamp": round(self.timestamp, 3),
        }
