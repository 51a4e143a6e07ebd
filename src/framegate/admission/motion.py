"""
Motion Estimator
================

Detects scene change between consecutive evaluated frames.

The estimator compares sparse luminance samples of the current frame with
a stored baseline (the previously evaluated frame):

    score = mean(|L_current - L_baseline|) / 255   over every Nth pixel

Key Design Decisions:
    - Sparse sampling (every 4th pixel by default) instead of full-resolution
      diffing; the gate only needs "the scene changed", not optical flow
    - The baseline is replaced on EVERY evaluation, admitted or not, so slow
      drift accumulates against the most recent reference
    - Frames that never reach the estimator (throttled) leave the baseline
      untouched
"""

import logging
from typing import Optional

import numpy as np

from framegate.admission.luminance import luminance, sample_pixels
from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


class MotionEstimator:
    """
    Luminance frame-difference motion gate.

    Attributes:
        threshold: Minimum normalized difference to admit (exclusive)
        sample_stride: Pixel step used for sampling
        last_score: Score of the most recent comparison (None if none yet)
    """

    def __init__(self, threshold: float = 0.1, sample_stride: int = 4) -> None:
        """
        Initialize motion estimator.

        Args:
            threshold: Minimum normalized luminance delta [0, 1] to admit
            sample_stride: Compare every Nth pixel
        """
        if sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")

        self.threshold = threshold
        self.sample_stride = sample_stride

        self._baseline: Optional[np.ndarray] = None
        self.last_score: Optional[float] = None

    @property
    def has_baseline(self) -> bool:
        """Whether a baseline frame is stored."""
        return self._baseline is not None

    @property
    def baseline(self) -> Optional[np.ndarray]:
        """Read-only view of the current baseline pixels."""
        if self._baseline is None:
            return None
        view = self._baseline.view()
        view.flags.writeable = False
        return view

    def frame_difference(self, current: np.ndarray, previous: np.ndarray) -> float:
        """
        Normalized mean luminance difference between two RGBA buffers.

        Buffers of different shapes cannot be compared pixel-for-pixel and
        are reported as a complete change (1.0).

        Returns:
            Score in [0, 1]
        """
        if current.shape != previous.shape:
            return 1.0

        lum_current = luminance(sample_pixels(current, self.sample_stride))
        lum_previous = luminance(sample_pixels(previous, self.sample_stride))

        if lum_current.size == 0:
            return 0.0

        return float(np.mean(np.abs(lum_current - lum_previous)) / 255.0)

    def evaluate(self, frame: FrameSample) -> bool:
        """
        Decide whether the frame shows enough change to be worth checking.

        The first frame after construction/reset is always admitted.

        Args:
            frame: Frame to evaluate

        Returns:
            True if motion exceeds the threshold
        """
        previous = self._baseline
        self._baseline = np.array(frame.pixels, copy=True)

        if previous is None:
            self.last_score = None
            logger.debug("No motion baseline, admitting first frame")
            return True

        score = self.frame_difference(frame.pixels, previous)
        self.last_score = score

        if score > self.threshold:
            logger.debug(f"Motion detected: score={score:.4f} > {self.threshold}")
            return True

        logger.debug(f"No motion: score={score:.4f} <= {self.threshold}")
        return False

    def reset(self) -> None:
        """Drop the baseline."""
        self._baseline = None
        self.last_score = None
