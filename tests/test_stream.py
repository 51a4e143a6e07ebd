"""
Stream Tests
============

Tests for frame decoding, message parsing, buffering and frame sources.
"""

import base64
import json

import numpy as np
import pytest

from framegate.stream import BufferedFrameSource, FrameBuffer, FrameConsumer, FrameSample
from framegate.stream.image_decoder import (
    ImageDecodeError,
    decode_base64_rgba,
    decode_rgba,
    encode_jpeg,
    sample_from_bgr,
)


@pytest.fixture
def jpeg_bytes(frames):
    """Provide a small JPEG encoded from a synthetic frame."""
    return encode_jpeg(frames.striped_pixels())


@pytest.fixture
def consumer():
    """Provide a FrameConsumer that is never connected."""
    return FrameConsumer(url="ws://localhost:0/ws/stream", buffer=FrameBuffer(maxsize=5))


def _message(image: str, frame_id: int = 1, timestamp: float = 1707321234.5) -> str:
    return json.dumps({"frame_id": frame_id, "timestamp": timestamp, "image": image})


class TestFrameSample:
    """Tests for FrameSample validation."""

    def test_rejects_non_rgba(self):
        with pytest.raises(ValueError):
            FrameSample(
                pixels=np.zeros((4, 4, 3), dtype=np.uint8),
                width=4,
                height=4,
                encoded=b"",
                timestamp=0.0,
            )

    def test_rejects_size_mismatch(self):
        with pytest.raises(ValueError):
            FrameSample(
                pixels=np.zeros((4, 4, 4), dtype=np.uint8),
                width=8,
                height=4,
                encoded=b"",
                timestamp=0.0,
            )

    def test_repr_is_compact(self, frames):
        assert "18x16" in repr(frames.flat())


class TestImageDecoder:
    """Tests for JPEG encode/decode helpers."""

    def test_decode_produces_rgba(self, jpeg_bytes):
        pixels = decode_rgba(jpeg_bytes)
        assert pixels.shape == (16, 18, 4)
        assert pixels.dtype == np.uint8

    def test_decode_empty_fails(self):
        with pytest.raises(ImageDecodeError):
            decode_rgba(b"")

    def test_decode_garbage_fails(self):
        with pytest.raises(ImageDecodeError):
            decode_rgba(b"definitely not a jpeg")

    def test_base64_data_url(self, jpeg_bytes):
        url = "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()
        encoded, pixels = decode_base64_rgba(url)

        assert encoded == jpeg_bytes
        assert pixels.shape[2] == 4

    def test_invalid_base64_fails(self):
        with pytest.raises(ImageDecodeError):
            decode_base64_rgba("not base64 !!!")

    def test_sample_from_bgr(self):
        bgr = np.zeros((10, 12, 3), dtype=np.uint8)
        bgr[..., 0] = 255  # blue

        sample = sample_from_bgr(bgr, timestamp=5.0)

        assert (sample.width, sample.height) == (12, 10)
        assert sample.pixels[0, 0, 2] == 255
        assert sample.encoded[:2] == b"\xff\xd8"


class TestParseMessage:
    """Tests for FrameConsumer.parse_message."""

    def test_valid_message(self, consumer, jpeg_bytes):
        raw = _message(base64.b64encode(jpeg_bytes).decode(), frame_id=7, timestamp=12.5)

        sample = consumer.parse_message(raw)

        assert sample is not None
        assert sample.timestamp == 12.5
        assert sample.encoded == jpeg_bytes
        assert consumer.metrics.frames_received == 1
        assert consumer.metrics.last_frame_id == 7

    def test_invalid_json(self, consumer):
        assert consumer.parse_message("{not json") is None
        assert consumer.metrics.parse_errors == 1

    def test_missing_image(self, consumer):
        assert consumer.parse_message(json.dumps({"frame_id": 1})) is None
        assert consumer.metrics.parse_errors == 1

    def test_undecodable_image(self, consumer):
        raw = _message(base64.b64encode(b"garbage").decode())
        assert consumer.parse_message(raw) is None
        assert consumer.metrics.decode_errors == 1

    def test_backwards_frame_id_warns_but_accepts(self, consumer, jpeg_bytes):
        image = base64.b64encode(jpeg_bytes).decode()
        consumer.parse_message(_message(image, frame_id=5, timestamp=10.0))

        sample = consumer.parse_message(_message(image, frame_id=3, timestamp=9.0))

        assert sample is not None
        assert consumer.metrics.validation_warnings == 2


class TestFrameBuffer:
    """Tests for FrameBuffer and BufferedFrameSource."""

    @pytest.mark.asyncio
    async def test_drops_oldest_when_full(self, frames):
        buffer = FrameBuffer(maxsize=2)
        for i in range(3):
            await buffer.put(frames.flat(timestamp=float(i)))

        assert buffer.dropped_count == 1
        first = buffer.get_nowait()
        assert first.timestamp == 1.0

    @pytest.mark.asyncio
    async def test_latest_nowait_discards_stale(self, frames):
        buffer = FrameBuffer(maxsize=5)
        for i in range(3):
            await buffer.put(frames.flat(timestamp=float(i)))

        latest = buffer.latest_nowait()

        assert latest.timestamp == 2.0
        assert buffer.size == 0
        assert buffer.dropped_count == 2

    @pytest.mark.asyncio
    async def test_buffered_source(self, frames):
        buffer = FrameBuffer()
        source = BufferedFrameSource(buffer)

        assert source.capture() is None

        await buffer.put(frames.flat(timestamp=1.0))
        assert source.capture().timestamp == 1.0

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            FrameBuffer(maxsize=0)
