"""
Stream Module
=============

Frame ingestion: frame model, websocket consumer, buffering and sources.

This module provides the ingestion layer for FrameGate:
    - FrameSample: Typed frame (RGBA pixels + encoded JPEG + timestamp)
    - FrameBuffer: Async-safe bounded queue (drops oldest on overflow)
    - FrameConsumer: WebSocket client with validation and reconnection
    - FrameSource: Protocol consumed by the detection loop

Example:
    from framegate.stream import BufferedFrameSource, FrameBuffer, FrameConsumer

    buffer = FrameBuffer(maxsize=5)
    consumer = FrameConsumer(url="ws://localhost:8000/ws/stream", buffer=buffer)
    task = asyncio.create_task(consumer.run())

    source = BufferedFrameSource(buffer)
    sample = source.capture()  # newest frame or None
"""

from framegate.stream.frame import FrameSample
from framegate.stream.buffer import FrameBuffer
from framegate.stream.consumer import FrameConsumer, FrameConsumerMetrics
from framegate.stream.source import (
    BufferedFrameSource,
    FrameSource,
    VideoFileFrameSource,
)


__all__ = [
    "FrameSample",
    "FrameBuffer",
    "FrameConsumer",
    "FrameConsumerMetrics",
    "FrameSource",
    "BufferedFrameSource",
    "VideoFileFrameSource",
]
