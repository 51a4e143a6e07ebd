"""
Frame Buffer
=============

Async-safe bounded queue between the websocket consumer and the detection
loop.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - Async-safe for producer/consumer pattern
    - Exposes minimal metrics for observability
    - Does NOT process or modify frames
"""

import asyncio
import logging
from typing import Optional

from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


class FrameBuffer:
    """
    Async-safe bounded queue for frame samples.

    A live camera only cares about the newest frame, so the buffer uses a
    drop-oldest policy when full and `latest_nowait()` discards anything
    older than the newest sample.

    Attributes:
        maxsize: Maximum number of frames to buffer
        dropped_count: Number of frames dropped (overflow or stale)

    Example:
        buffer = FrameBuffer(maxsize=5)

        # Producer
        await buffer.put(sample)

        # Consumer
        sample = buffer.latest_nowait()
    """

    def __init__(self, maxsize: int = 5) -> None:
        """
        Initialize frame buffer.

        Args:
            maxsize: Maximum frames to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: asyncio.Queue[FrameSample] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of frames in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of frames dropped."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total frames ever put into buffer."""
        return self._total_put

    async def put(self, frame: FrameSample) -> bool:
        """
        Add frame to buffer, dropping oldest if full.

        Returns:
            True if frame was added without dropping,
            False if oldest frame was dropped to make room.
        """
        self._total_put += 1
        dropped = False

        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                logger.debug(
                    f"Buffer full, dropped oldest frame. "
                    f"Total dropped: {self._dropped_count}"
                )
            except asyncio.QueueEmpty:
                pass

        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self._dropped_count += 1
            logger.error("Failed to add frame after dropping - queue full")
            return False

        return not dropped

    def get_nowait(self) -> Optional[FrameSample]:
        """Get oldest frame without waiting, or None if empty."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def latest_nowait(self) -> Optional[FrameSample]:
        """
        Take the newest frame, discarding older ones.

        Returns:
            Newest frame if any is buffered, None otherwise.
        """
        latest = self.get_nowait()
        while latest is not None:
            newer = self.get_nowait()
            if newer is None:
                break
            self._dropped_count += 1
            latest = newer
        return latest

    def metrics(self) -> dict:
        """Buffer metrics for observability."""
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
