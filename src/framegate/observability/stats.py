"""
Stats Snapshot
==============

Assemble the presentation stats snapshot from component counters.

Derived from:
    - AdmissionPipeline (frames, skips, motion/quality rates)
    - DetectionDispatcher (API calls, errors, cache, confidence)
    - DetectionLoop (fps, running, status message)

Snapshots are observability-only; nothing here feeds back into admission.
"""

from typing import Optional

from framegate.admission.pipeline import AdmissionPipeline
from framegate.detection.dispatcher import DetectionDispatcher
from framegate.models.output import StatsSnapshot


def build_stats_snapshot(
    pipeline: AdmissionPipeline,
    dispatcher: DetectionDispatcher,
    fps: float = 0.0,
    running: bool = False,
    status_message: Optional[str] = None,
) -> StatsSnapshot:
    """
    Combine pipeline and dispatcher counters into one snapshot.

    Args:
        pipeline: Admission pipeline
        dispatcher: Detection dispatcher
        fps: Frames captured per second by the loop
        running: Whether the detection loop is running
        status_message: Current one-line error status

    Returns:
        StatsSnapshot
    """
    admission = pipeline.get_stats()
    dispatch = dispatcher.get_stats()

    return StatsSnapshot(
        frames_analyzed=admission.frames_analyzed,
        frames_skipped=admission.frames_skipped,
        api_calls=dispatch["api_calls"],
        detections=dispatch["detections"],
        errors=dispatch["errors"],
        efficiency=admission.efficiency,
        success_rate=dispatch["success_rate"],
        frames_seen=admission.frames_seen,
        motion_detected=admission.motion_detected,
        quality_passed=admission.quality_passed,
        motion_rate=admission.motion_rate,
        quality_rate=admission.quality_rate,
        cache_hits=dispatch["cache_hits"],
        cache_size=dispatch["cache_size"],
        avg_confidence=dispatch["avg_confidence"],
        fps=fps,
        smart_detection_enabled=pipeline.enabled,
        running=running,
        status_message=status_message,
    )
