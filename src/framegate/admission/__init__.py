"""
Admission Module
================

Gates that decide whether a frame is worth a remote recognition call.

Components:
    - ThrottleGate: Minimum spacing between admitted frames
    - MotionEstimator: Sparse luminance frame differencing
    - QualityAssessor: Sobel sharpness + brightness scoring
    - AdmissionPipeline: Ordered combination of the three, with stats
"""

from framegate.admission.motion import MotionEstimator
from framegate.admission.pipeline import AdmissionPipeline, AdmissionStats
from framegate.admission.quality import QualityAssessor, QualityScore
from framegate.admission.throttle import ThrottleGate


__all__ = [
    "AdmissionPipeline",
    "AdmissionStats",
    "MotionEstimator",
    "QualityAssessor",
    "QualityScore",
    "ThrottleGate",
]
