"""
Frame Sources
=============

Synchronous frame sources consumed by the detection loop.

A frame source hands out the current frame on request, or None when no
frame is available; the loop skips the tick in that case.

Components:
    - FrameSource: Protocol for all sources
    - BufferedFrameSource: Newest frame from a FrameBuffer (live stream)
    - VideoFileFrameSource: Sequential frames from a video file (offline)
"""

import logging
import time
from typing import Optional, Protocol

import cv2

from framegate.stream.buffer import FrameBuffer
from framegate.stream.frame import FrameSample
from framegate.stream.image_decoder import sample_from_bgr


logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Protocol for frame sources."""

    def capture(self) -> Optional[FrameSample]:
        """
        Return the current frame.

        Returns:
            FrameSample, or None if no frame is currently available
        """
        ...


class BufferedFrameSource:
    """
    Frame source backed by a FrameBuffer.

    Each capture takes the newest buffered frame; frames that arrived
    between two captures are discarded.
    """

    def __init__(self, buffer: FrameBuffer) -> None:
        self.buffer = buffer

    def capture(self) -> Optional[FrameSample]:
        return self.buffer.latest_nowait()


class VideoFileFrameSource:
    """
    Frame source reading a video file with OpenCV.

    Timestamps are synthesized from the file's frame rate so that replay
    runs faster than real time while the throttle still sees realistic
    spacing between frames.

    Attributes:
        path: Video file path
        fps: Frame rate used for timestamps
        frames_read: Number of frames returned so far
    """

    def __init__(
        self,
        path: str,
        jpeg_quality: int = 80,
        start_time: Optional[float] = None,
    ) -> None:
        self.path = path
        self.jpeg_quality = jpeg_quality
        self._capture = cv2.VideoCapture(path)
        if not self._capture.isOpened():
            raise IOError(f"Could not open video file: {path}")

        fps = self._capture.get(cv2.CAP_PROP_FPS)
        self.fps = fps if fps and fps > 0 else 30.0
        self._start_time = time.time() if start_time is None else start_time
        self.frames_read = 0
        self.exhausted = False

        logger.info(f"VideoFileFrameSource opened: {path} @ {self.fps:.1f} fps")

    def capture(self) -> Optional[FrameSample]:
        if self.exhausted:
            return None

        ok, bgr = self._capture.read()
        if not ok or bgr is None:
            self.exhausted = True
            logger.info(f"Video exhausted after {self.frames_read} frames")
            return None

        timestamp = self._start_time + self.frames_read / self.fps
        self.frames_read += 1
        return sample_from_bgr(bgr, timestamp, quality=self.jpeg_quality)

    def close(self) -> None:
        self._capture.release()
