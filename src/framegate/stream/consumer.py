"""
Frame Consumer
===============

WebSocket client that feeds camera frames into a FrameBuffer.

This module provides the FrameConsumer class which:
    - Connects to a frame stream websocket endpoint
    - Receives and validates JSON frame messages
    - Decodes base64 JPEG payloads into RGBA FrameSamples
    - Handles reconnection with a fixed backoff
    - Pushes samples into a FrameBuffer

Message Contract:
    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "image": "<base64 JPEG or data URL>"
    }

Design Rules:
    - Logs validation warnings but continues processing
    - Corrupt images are counted and skipped, never fatal
    - Reconnects automatically on disconnect
    - Exposes metrics for health monitoring
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
)

from framegate.stream.buffer import FrameBuffer
from framegate.stream.frame import FrameSample
from framegate.stream.image_decoder import ImageDecodeError, decode_base64_rgba


logger = logging.getLogger(__name__)


class FrameConsumerMetrics:
    """Metrics for FrameConsumer observability."""

    __slots__ = (
        "frames_received",
        "reconnect_count",
        "last_frame_id",
        "last_timestamp",
        "validation_warnings",
        "parse_errors",
        "decode_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.reconnect_count: int = 0
        self.last_frame_id: int = -1
        self.last_timestamp: float = 0.0
        self.validation_warnings: int = 0
        self.parse_errors: int = 0
        self.decode_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "reconnect_count": self.reconnect_count,
            "last_frame_id": self.last_frame_id,
            "last_timestamp": self.last_timestamp,
            "validation_warnings": self.validation_warnings,
            "parse_errors": self.parse_errors,
            "decode_errors": self.decode_errors,
        }


class FrameConsumer:
    """
    WebSocket consumer for camera frames.

    Attributes:
        url: WebSocket URL to connect to
        buffer: FrameBuffer to push frames into
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        buffer = FrameBuffer(maxsize=5)
        consumer = FrameConsumer(
            url="ws://localhost:8000/ws/stream",
            buffer=buffer,
            reconnect_backoff_ms=500,
        )

        task = asyncio.create_task(consumer.run())
        ...
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        buffer: FrameBuffer,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize frame consumer.

        Args:
            url: WebSocket URL of the frame stream
            buffer: FrameBuffer to push decoded samples into
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.url = url
        self.buffer = buffer
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = FrameConsumerMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the frame stream."""
        return self._connected

    async def run(self) -> None:
        """
        Start consuming frames.

        Runs indefinitely, reconnecting on disconnect.
        Call stop() to terminate gracefully.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"FrameConsumer starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break

                logger.error(f"Connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                    )
                    break

                self.metrics.reconnect_count += 1
                backoff_sec = self.reconnect_backoff_ms / 1000.0
                logger.info(
                    f"Reconnecting in {backoff_sec:.1f}s "
                    f"(attempt {self.metrics.reconnect_count})"
                )

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                    break
                except asyncio.TimeoutError:
                    pass

        logger.info("FrameConsumer stopped")

    async def stop(self) -> None:
        """Signal the run loop to exit and close the connection."""
        logger.info("FrameConsumer stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except ConnectionClosed:
                pass

        self._connected = False

    async def _connect_and_consume(self) -> None:
        """Connect to WebSocket and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Connected to frame stream: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break

                    sample = self.parse_message(message)
                    if sample is not None:
                        await self.buffer.put(sample)

            except ConnectionClosedOK:
                logger.info("Connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    def parse_message(self, raw: str | bytes) -> Optional[FrameSample]:
        """
        Parse, validate and decode a raw WebSocket message.

        Ordering problems are logged and counted but do not reject the
        frame. Malformed JSON or undecodable images do.

        Args:
            raw: Raw JSON message

        Returns:
            FrameSample, or None on parse/decode error
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Failed to parse frame JSON: {e}")
            return None

        try:
            frame_id = int(data.get("frame_id", self.metrics.last_frame_id + 1))
            timestamp = float(data.get("timestamp") or time.time())
            image_b64 = str(data["image"])
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame structure: {e}")
            return None

        if self.metrics.last_frame_id >= 0 and frame_id <= self.metrics.last_frame_id:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Frame ID went backwards: got {frame_id}, "
                f"previous was {self.metrics.last_frame_id}"
            )

        if self.metrics.last_timestamp > 0 and timestamp < self.metrics.last_timestamp:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Timestamp went backwards: got {timestamp:.3f}, "
                f"previous was {self.metrics.last_timestamp:.3f}"
            )

        try:
            encoded, pixels = decode_base64_rgba(image_b64)
        except ImageDecodeError as e:
            self.metrics.decode_errors += 1
            logger.error(f"Failed to decode frame {frame_id}: {e}")
            return None

        self.metrics.frames_received += 1
        self.metrics.last_frame_id = frame_id
        self.metrics.last_timestamp = timestamp

        height, width = pixels.shape[:2]
        return FrameSample(
            pixels=pixels,
            width=width,
            height=height,
            encoded=encoded,
            timestamp=timestamp,
        )
