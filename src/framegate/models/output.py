"""
Output Models
=============

This module defines the output contract served to the presentation layer.

Output Contract:
    GET /detections
    {
        "timestamp": 1770500938.284,
        "visible": true,
        "detections": [
            {
                "name": "Logo",
                "confidence": 0.85,
                "bounding_box": {"left": 0.1, "top": 0.2, "width": 0.3, "height": 0.2},
                "timestamp": 1770500938.1
            }
        ],
        "status_message": null
    }

    GET /stats
    {
        "frames_analyzed": 120,
        "frames_skipped": 117,
        "api_calls": 3,
        "detections": 2,
        "errors": 0,
        "efficiency": 97.5,
        "success_rate": 100.0,
        ...
    }

Design Rules:
    - Presentation reads these models only; it never touches pipeline state
    - Percentages are rounded to one decimal place
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class BoundingBoxOut(BaseModel):
    """Normalized bounding box (fractions of frame size)."""

    left: float = Field(..., ge=0.0, le=1.0)
    top: float = Field(..., ge=0.0, le=1.0)
    width: float = Field(..., ge=0.0, le=1.0)
    height: float = Field(..., ge=0.0, le=1.0)


class DetectionOut(BaseModel):
    """A single accepted detection."""

    name: str = Field(..., description="Label name")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence [0, 1]")
    bounding_box: Optional[BoundingBoxOut] = Field(
        default=None,
        description="Location, if reported by the model",
    )
    timestamp: float = Field(..., description="UNIX timestamp of the detection")


class DetectionsOutput(BaseModel):
    """
    Current detection state for the presentation layer.

    Attributes:
        timestamp: When this payload was built
        visible: Whether there is a detection set to show
        detections: Current accepted detections (empty when hidden)
        status_message: One-line error status, if any
    """

    timestamp: float
    visible: bool
    detections: List[DetectionOut] = Field(default_factory=list)
    status_message: Optional[str] = None


class StatsSnapshot(BaseModel):
    """
    Efficiency and reliability counters.

    Core fields: frames_analyzed, frames_skipped, api_calls, detections,
    errors, efficiency, success_rate. The rest are diagnostic.
    """

    frames_analyzed: int = Field(..., ge=0)
    frames_skipped: int = Field(..., ge=0)
    api_calls: int = Field(..., ge=0)
    detections: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)
    efficiency: float = Field(..., ge=0.0, le=100.0, description="Skipped / analyzed %")
    success_rate: float = Field(..., ge=0.0, le=100.0, description="Successful calls %")

    frames_seen: int = Field(default=0, ge=0)
    motion_detected: int = Field(default=0, ge=0)
    quality_passed: int = Field(default=0, ge=0)
    motion_rate: float = Field(default=0.0, ge=0.0)
    quality_rate: float = Field(default=0.0, ge=0.0)
    cache_hits: int = Field(default=0, ge=0)
    cache_size: int = Field(default=0, ge=0)
    avg_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    fps: float = Field(default=0.0, ge=0.0)
    smart_detection_enabled: bool = True
    running: bool = False
    status_message: Optional[str] = None


class SettingsUpdate(BaseModel):
    """Runtime-tunable settings. Omitted fields are left unchanged."""

    smart_detection: Optional[bool] = None
    motion_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    quality_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    scan_interval_ms: Optional[int] = Field(default=None, ge=0)
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
