"""
Data Models
===========

Data models for FrameGate.

This module re-exports all data models for convenient access.

Models:
    Detection (internal, frozen dataclasses):
        - BoundingBox: Normalized location of a detection
        - Detection: Accepted label with confidence in [0, 1]

    Output (pydantic, served to presentation):
        - DetectionOut / BoundingBoxOut: Serialized detection
        - DetectionsOutput: Current detections payload
        - StatsSnapshot: Efficiency and reliability counters
        - SettingsUpdate: Runtime-tunable settings
"""

from framegate.models.detection import BoundingBox, Detection
from framegate.models.output import (
    BoundingBoxOut,
    DetectionOut,
    DetectionsOutput,
    SettingsUpdate,
    StatsSnapshot,
)

__all__ = [
    # Detection
    "BoundingBox",
    "Detection",
    # Output
    "BoundingBoxOut",
    "DetectionOut",
    "DetectionsOutput",
    "SettingsUpdate",
    "StatsSnapshot",
]
