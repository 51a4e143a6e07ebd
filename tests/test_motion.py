"""
Motion Estimator Tests
======================

Tests for luminance frame differencing and baseline handling.
"""

import numpy as np
import pytest

from framegate.admission.luminance import luminance, sample_pixels
from framegate.admission.motion import MotionEstimator


class TestLuminance:
    """Tests for luminance helpers."""

    def test_gray_pixel_luminance_equals_gray_value(self, frames):
        pixels = frames.flat_pixels(100)
        assert luminance(pixels) == pytest.approx(np.full((16, 18), 100.0))

    def test_channel_weights(self):
        red = np.array([[255, 0, 0, 255]], dtype=np.uint8)
        green = np.array([[0, 255, 0, 255]], dtype=np.uint8)
        blue = np.array([[0, 0, 255, 255]], dtype=np.uint8)

        assert luminance(red)[0] == pytest.approx(0.299 * 255)
        assert luminance(green)[0] == pytest.approx(0.587 * 255)
        assert luminance(blue)[0] == pytest.approx(0.114 * 255)

    def test_equal_pixels_have_identical_luminance(self, frames):
        lum = luminance(frames.flat_pixels(128))
        assert np.all(lum == lum[0, 0])

    def test_alpha_is_ignored(self):
        opaque = np.array([[10, 20, 30, 255]], dtype=np.uint8)
        transparent = np.array([[10, 20, 30, 0]], dtype=np.uint8)
        assert luminance(opaque)[0] == luminance(transparent)[0]

    def test_sample_pixels_stride(self, frames):
        pixels = frames.flat_pixels()
        assert sample_pixels(pixels, 1).shape == (288, 4)
        assert sample_pixels(pixels, 4).shape == (72, 4)

    def test_sample_pixels_rejects_zero_stride(self, frames):
        with pytest.raises(ValueError):
            sample_pixels(frames.flat_pixels(), 0)


class TestMotionEstimator:
    """Tests for MotionEstimator."""

    def test_first_frame_always_admitted(self, frames):
        estimator = MotionEstimator()

        assert estimator.evaluate(frames.flat()) is True
        assert estimator.last_score is None
        assert estimator.has_baseline

    def test_identical_frames_score_zero(self, frames):
        estimator = MotionEstimator()
        estimator.evaluate(frames.textured())

        assert estimator.evaluate(frames.textured()) is False
        assert estimator.last_score == 0.0

    def test_inverted_frames_score_one(self, frames):
        estimator = MotionEstimator()
        estimator.evaluate(frames.textured(phase=0))

        assert estimator.evaluate(frames.textured(phase=2)) is True
        assert estimator.last_score == pytest.approx(1.0)

    def test_threshold_is_exclusive(self, frames):
        first, second = frames.flat(128), frames.flat(102)
        estimator = MotionEstimator()
        estimator.threshold = estimator.frame_difference(second.pixels, first.pixels)
        estimator.evaluate(first)

        assert estimator.evaluate(second) is False
        assert estimator.last_score == pytest.approx(26 / 255)

    def test_small_change_below_threshold(self, frames):
        estimator = MotionEstimator(threshold=0.1)
        estimator.evaluate(frames.flat(128))

        assert estimator.evaluate(frames.flat(140)) is False

    def test_large_change_above_threshold(self, frames):
        estimator = MotionEstimator(threshold=0.1)
        estimator.evaluate(frames.flat(128))

        assert estimator.evaluate(frames.flat(180)) is True
        assert estimator.last_score == pytest.approx(52 / 255)

    def test_baseline_replaced_on_rejection(self, frames):
        estimator = MotionEstimator(threshold=0.1)
        estimator.evaluate(frames.flat(100))
        estimator.evaluate(frames.flat(110))  # rejected, still becomes baseline

        # 100 -> 120 would pass; 110 -> 120 does not
        assert estimator.evaluate(frames.flat(120)) is False
        assert estimator.last_score == pytest.approx(10 / 255)

    def test_baseline_is_a_copy(self, frames):
        estimator = MotionEstimator()
        pixels = frames.flat_pixels(50)
        estimator.evaluate(frames.from_pixels(pixels))

        pixels[...] = 200
        assert estimator.baseline[0, 0, 0] == 50

    def test_baseline_view_is_read_only(self, frames):
        estimator = MotionEstimator()
        estimator.evaluate(frames.flat())

        with pytest.raises(ValueError):
            estimator.baseline[0, 0, 0] = 1

    def test_shape_change_counts_as_full_motion(self, frames):
        estimator = MotionEstimator()
        estimator.evaluate(frames.flat())

        small = np.full((8, 8, 4), 128, dtype=np.uint8)
        assert estimator.evaluate(frames.from_pixels(small)) is True
        assert estimator.last_score == 1.0

    def test_reset_drops_baseline(self, frames):
        estimator = MotionEstimator()
        estimator.evaluate(frames.flat())
        estimator.reset()

        assert not estimator.has_baseline
        assert estimator.baseline is None
        assert estimator.evaluate(frames.flat()) is True

    def test_rejects_invalid_stride(self):
        with pytest.raises(ValueError):
            MotionEstimator(sample_stride=0)
