"""
Test Configuration
==================

Pytest fixtures and test configuration for FrameGate.

Synthetic frames:
    - textured: vertical stripes two pixels wide, alternating 0/255.
      Sharpness saturates at 1.0 and average luminance sits mid-range,
      so the combined quality score is 1.0.
      Shifting `phase` by 2 inverts every pixel (motion score 1.0).
    - flat: uniform gray, sharpness 0 (quality fails at the default
      threshold).
"""

import asyncio
from collections import deque
from typing import Optional

import numpy as np
import pytest

from framegate.detection import MockRecognitionService, RecognitionLabel
from framegate.stream.frame import FrameSample


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FrameFactory:
    """Builds FrameSamples with known motion/quality characteristics."""

    def __init__(self, height: int = 16, width: int = 18) -> None:
        self.height = height
        self.width = width

    def striped_pixels(
        self,
        phase: int = 0,
        low: int = 0,
        high: int = 255,
    ) -> np.ndarray:
        columns = (np.arange(self.width) + phase) // 2 % 2
        row = np.where(columns == 0, low, high).astype(np.uint8)
        gray = np.tile(row, (self.height, 1))
        pixels = np.empty((self.height, self.width, 4), dtype=np.uint8)
        pixels[..., 0] = gray
        pixels[..., 1] = gray
        pixels[..., 2] = gray
        pixels[..., 3] = 255
        return pixels

    def flat_pixels(self, value: int = 128) -> np.ndarray:
        pixels = np.full((self.height, self.width, 4), value, dtype=np.uint8)
        pixels[..., 3] = 255
        return pixels

    def from_pixels(
        self,
        pixels: np.ndarray,
        timestamp: float = 0.0,
        encoded: Optional[bytes] = None,
    ) -> FrameSample:
        height, width = pixels.shape[:2]
        return FrameSample(
            pixels=pixels,
            width=width,
            height=height,
            encoded=encoded if encoded is not None else pixels.tobytes(),
            timestamp=timestamp,
        )

    def textured(
        self,
        phase: int = 0,
        timestamp: float = 0.0,
        encoded: Optional[bytes] = None,
    ) -> FrameSample:
        return self.from_pixels(self.striped_pixels(phase), timestamp, encoded)

    def flat(
        self,
        value: int = 128,
        timestamp: float = 0.0,
        encoded: Optional[bytes] = None,
    ) -> FrameSample:
        return self.from_pixels(self.flat_pixels(value), timestamp, encoded)


class ListFrameSource:
    """FrameSource returning queued frames, then None."""

    def __init__(self, frames=()) -> None:
        self.frames = deque(frames)
        self.captures = 0

    def capture(self) -> Optional[FrameSample]:
        self.captures += 1
        if not self.frames:
            return None
        return self.frames.popleft()


class RepeatingFrameSource:
    """FrameSource returning the same frame forever."""

    def __init__(self, frame: FrameSample) -> None:
        self.frame = frame
        self.captures = 0

    def capture(self) -> Optional[FrameSample]:
        self.captures += 1
        return self.frame


class GatedRecognitionService:
    """Recognition backend that blocks every call until released."""

    def __init__(self, labels=()) -> None:
        self.labels = list(labels)
        self.release = asyncio.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def detect_labels(self, image_bytes, model_id, min_confidence_percent):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.release.wait()
        finally:
            self.active -= 1
        return list(self.labels)


@pytest.fixture
def frames():
    """Provide a FrameFactory for 18x16 synthetic frames."""
    return FrameFactory()


@pytest.fixture
def clock():
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def logo_label():
    """Provide the label used across dispatch scenarios."""
    return RecognitionLabel(name="Logo", confidence_percent=85.0)


@pytest.fixture
def mock_service(logo_label):
    """Provide a mock backend returning one 85% "Logo" label."""
    return MockRecognitionService(labels=[logo_label])


@pytest.fixture
def recorded_sleeps():
    """Provide a fake async sleep and the list of delays it was given."""
    delays = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    return fake_sleep, delays
