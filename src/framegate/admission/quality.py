"""
Quality Assessor
================

Scores a single frame for sharpness and exposure.

    sharpness  = clamp(mean Sobel gradient magnitude / 255, 0, 1)
    brightness = 1.0 inside [50, 200] average luminance,
                 avg / 50 · 0.5 below 50,
                 max(0, 1 - (avg - 200) / 55) above 200
    score      = 0.7 · sharpness + 0.3 · brightness

Sobel is evaluated on a sparse grid (every interior row, every 4th interior
column) with zero padding, so neighbours outside the buffer contribute a
luminance of 0 instead of failing.
"""

import logging
from dataclasses import dataclass

import numpy as np

from framegate.admission.luminance import luminance, sample_pixels
from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


SHARPNESS_WEIGHT = 0.7
BRIGHTNESS_WEIGHT = 0.3

OPTIMAL_BRIGHTNESS_LOW = 50.0
OPTIMAL_BRIGHTNESS_HIGH = 200.0
BRIGHTNESS_CEILING = 255.0


@dataclass(frozen=True, slots=True)
class QualityScore:
    """
    Quality sub-scores for a frame, all in [0, 1].

    Attributes:
        sharpness: Normalized edge strength
        brightness: Exposure score
        score: Weighted combination
    """

    sharpness: float
    brightness: float
    score: float

    def to_dict(self) -> dict:
        return {
            "sharpness": round(self.sharpness, 4),
            "brightness": round(self.brightness, 4),
            "score": round(self.score, 4),
        }


def brightness_score(avg_luminance: float) -> float:
    """Map average luminance (0-255) to an exposure score in [0, 1]."""
    if avg_luminance < OPTIMAL_BRIGHTNESS_LOW:
        return max(0.0, avg_luminance / OPTIMAL_BRIGHTNESS_LOW * 0.5)
    if avg_luminance > OPTIMAL_BRIGHTNESS_HIGH:
        excess = avg_luminance - OPTIMAL_BRIGHTNESS_HIGH
        return max(0.0, 1.0 - excess / (BRIGHTNESS_CEILING - OPTIMAL_BRIGHTNESS_HIGH))
    return 1.0


class QualityAssessor:
    """
    Sharpness/brightness quality gate.

    Attributes:
        threshold: Minimum combined score to admit (exclusive)
        column_step: Column step of the Sobel sampling grid
        brightness_stride: Pixel step for the brightness sample
        last_score: QualityScore of the most recent evaluation
    """

    def __init__(
        self,
        threshold: float = 0.7,
        column_step: int = 4,
        brightness_stride: int = 16,
    ) -> None:
        if column_step < 1:
            raise ValueError("column_step must be >= 1")
        if brightness_stride < 1:
            raise ValueError("brightness_stride must be >= 1")

        self.threshold = threshold
        self.column_step = column_step
        self.brightness_stride = brightness_stride
        self.last_score: QualityScore | None = None

    def sharpness(self, pixels: np.ndarray) -> float:
        """
        Mean Sobel gradient magnitude on a sparse grid, normalized to [0, 1].

        Args:
            pixels: RGBA array (H, W, 4)
        """
        height, width = pixels.shape[:2]
        if height < 3 or width < 3:
            return 0.0

        padded = np.pad(luminance(pixels), 1, mode="constant", constant_values=0.0)

        # Interior pixels in image coordinates, shifted by the pad of 1
        ys = np.arange(1, height - 1)[:, None] + 1
        xs = np.arange(1, width - 1, self.column_step)[None, :] + 1

        tl = padded[ys - 1, xs - 1]
        tm = padded[ys - 1, xs]
        tr = padded[ys - 1, xs + 1]
        ml = padded[ys, xs - 1]
        mr = padded[ys, xs + 1]
        bl = padded[ys + 1, xs - 1]
        bm = padded[ys + 1, xs]
        br = padded[ys + 1, xs + 1]

        gx = -tl + tr - 2.0 * ml + 2.0 * mr - bl + br
        gy = -tl - 2.0 * tm - tr + bl + 2.0 * bm + br

        magnitude = np.sqrt(gx * gx + gy * gy)
        return float(min(1.0, np.mean(magnitude) / 255.0))

    def brightness(self, pixels: np.ndarray) -> float:
        """Exposure score from a coarse luminance sample."""
        sample = sample_pixels(pixels, self.brightness_stride)
        if sample.size == 0:
            return brightness_score(0.0)
        return brightness_score(float(np.mean(luminance(sample))))

    def score(self, frame: FrameSample) -> QualityScore:
        """Compute the full quality breakdown for a frame."""
        sharpness = self.sharpness(frame.pixels)
        brightness = self.brightness(frame.pixels)
        combined = SHARPNESS_WEIGHT * sharpness + BRIGHTNESS_WEIGHT * brightness
        return QualityScore(
            sharpness=sharpness,
            brightness=brightness,
            score=min(1.0, max(0.0, combined)),
        )

    def evaluate(self, frame: FrameSample) -> bool:
        """
        Decide whether the frame is sharp and well exposed enough.

        Returns:
            True if the combined score exceeds the threshold
        """
        quality = self.score(frame)
        self.last_score = quality

        passed = quality.score > self.threshold
        logger.debug(
            f"Quality {'passed' if passed else 'rejected'}: "
            f"score={quality.score:.4f} (sharpness={quality.sharpness:.4f}, "
            f"brightness={quality.brightness:.4f}), threshold={self.threshold}"
        )
        return passed
