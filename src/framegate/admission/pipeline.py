"""
Admission Pipeline
==================

Orchestrates the throttle, motion and quality gates into one admit/reject
decision per frame.

Gate Order (load-bearing):
    1. Disabled        -> admit every frame, touch no gate state
    2. ThrottleGate    -> cheapest check, short-circuits all pixel work
    3. MotionEstimator -> static scenes never need a quality recompute
    4. QualityAssessor -> sharp, well-exposed frames only
    5. Admit           -> commit throttle timestamp

A throttled frame never reaches the motion estimator, so the motion
baseline only moves on frames that were actually compared. A frame that
passes motion but fails quality still becomes the new baseline.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from framegate.admission.motion import MotionEstimator
from framegate.admission.quality import QualityAssessor
from framegate.admission.throttle import ThrottleGate
from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AdmissionStats:
    """
    Accumulating admission counters.

    When the pipeline is enabled,
    frames_analyzed == frames_skipped + quality_passed.

    Attributes:
        frames_seen: Every frame offered, enabled or not
        frames_analyzed: Frames evaluated while enabled
        frames_skipped: Frames rejected by any gate
        throttle_skips: Rejections by the throttle gate
        motion_skips: Rejections by the motion gate
        quality_skips: Rejections by the quality gate
        motion_detected: Frames the motion gate admitted
        quality_passed: Frames admitted by all gates
    """

    frames_seen: int = 0
    frames_analyzed: int = 0
    frames_skipped: int = 0
    throttle_skips: int = 0
    motion_skips: int = 0
    quality_skips: int = 0
    motion_detected: int = 0
    quality_passed: int = 0

    @property
    def efficiency(self) -> float:
        """Percentage of analyzed frames that were skipped."""
        if self.frames_analyzed == 0:
            return 0.0
        return round(self.frames_skipped / self.frames_analyzed * 100, 1)

    @property
    def motion_rate(self) -> float:
        if self.frames_analyzed == 0:
            return 0.0
        return round(self.motion_detected / self.frames_analyzed * 100, 1)

    @property
    def quality_rate(self) -> float:
        if self.frames_analyzed == 0:
            return 0.0
        return round(self.quality_passed / self.frames_analyzed * 100, 1)

    def to_dict(self) -> dict:
        return {
            **asdict(self),
            "efficiency": self.efficiency,
            "motion_rate": self.motion_rate,
            "quality_rate": self.quality_rate,
        }


class AdmissionPipeline:
    """
    Admit/reject decision per frame.

    Attributes:
        throttle: ThrottleGate instance
        motion: MotionEstimator instance
        quality: QualityAssessor instance
        stats: AdmissionStats counters

    Example:
        pipeline = AdmissionPipeline(
            motion_threshold=0.1,
            quality_threshold=0.7,
            scan_interval=2.0,
        )

        if pipeline.should_process(sample):
            detections = await dispatcher.detect(sample)
    """

    def __init__(
        self,
        motion_threshold: float = 0.1,
        quality_threshold: float = 0.7,
        scan_interval: float = 2.0,
        enabled: bool = True,
        motion_sample_stride: int = 4,
        sharpness_column_step: int = 4,
        brightness_sample_stride: int = 16,
    ) -> None:
        """
        Initialize admission pipeline.

        Args:
            motion_threshold: Minimum normalized luminance delta to admit
            quality_threshold: Minimum combined quality score to admit
            scan_interval: Minimum seconds between admitted frames
            enabled: False admits every frame unconditionally
            motion_sample_stride: Pixel step for motion sampling
            sharpness_column_step: Column step for the Sobel grid
            brightness_sample_stride: Pixel step for brightness sampling
        """
        self.throttle = ThrottleGate(scan_interval=scan_interval)
        self.motion = MotionEstimator(
            threshold=motion_threshold,
            sample_stride=motion_sample_stride,
        )
        self.quality = QualityAssessor(
            threshold=quality_threshold,
            column_step=sharpness_column_step,
            brightness_stride=brightness_sample_stride,
        )
        self.stats = AdmissionStats()
        self._enabled = enabled

        logger.info(
            f"AdmissionPipeline initialized: enabled={enabled}, "
            f"motion_threshold={motion_threshold}, "
            f"quality_threshold={quality_threshold}, "
            f"scan_interval={scan_interval}s"
        )

    @property
    def enabled(self) -> bool:
        """Whether smart admission is active."""
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """Enable or bypass the gates."""
        self._enabled = enabled
        logger.info(f"Smart detection {'enabled' if enabled else 'disabled'}")

    def should_process(self, frame: FrameSample, now: Optional[float] = None) -> bool:
        """
        Decide whether the frame should go to the recognition service.

        Args:
            frame: Captured frame
            now: Decision time in seconds (defaults to frame.timestamp)

        Returns:
            True if the frame is admitted
        """
        self.stats.frames_seen += 1

        if not self._enabled:
            return True

        self.stats.frames_analyzed += 1
        now = frame.timestamp if now is None else now

        if not self.throttle.is_open(now):
            self._skip("throttle")
            return False

        if not self.motion.evaluate(frame):
            self._skip("motion")
            return False
        self.stats.motion_detected += 1

        if not self.quality.evaluate(frame):
            self._skip("quality")
            return False

        self.throttle.mark(now)
        self.stats.quality_passed += 1
        logger.debug(f"Frame admitted at t={now:.3f}")
        return True

    def _skip(self, gate: str) -> None:
        self.stats.frames_skipped += 1
        if gate == "throttle":
            self.stats.throttle_skips += 1
        elif gate == "motion":
            self.stats.motion_skips += 1
        else:
            self.stats.quality_skips += 1

    def update_settings(
        self,
        motion_threshold: Optional[float] = None,
        quality_threshold: Optional[float] = None,
        scan_interval: Optional[float] = None,
    ) -> None:
        """Retune gate thresholds at runtime. None leaves a value unchanged."""
        if motion_threshold is not None:
            self.motion.threshold = motion_threshold
        if quality_threshold is not None:
            self.quality.threshold = quality_threshold
        if scan_interval is not None:
            if scan_interval < 0:
                raise ValueError("scan_interval must be >= 0")
            self.throttle.scan_interval = scan_interval

        logger.info(
            f"Admission settings updated: motion_threshold={self.motion.threshold}, "
            f"quality_threshold={self.quality.threshold}, "
            f"scan_interval={self.throttle.scan_interval}s"
        )

    def get_stats(self) -> AdmissionStats:
        """Copy of the current counters."""
        return AdmissionStats(**asdict(self.stats))

    def reset(self) -> None:
        """Clear baseline, throttle timestamp and counters."""
        self.motion.reset()
        self.throttle.reset()
        self.quality.last_score = None
        self.stats = AdmissionStats()
