"""
Detection Loop
==============

Single-task scheduler driving capture → admission → dispatch → publish.

Each tick:
    1. Capture the current frame (skip the tick if none)
    2. Ask the AdmissionPipeline whether to process it
    3. If admitted, await the DetectionDispatcher
    4. Publish the result (or hide when empty)

The next tick is scheduled only after the current one, including its
dispatch await, has completed, so two dispatches never overlap. An
explicit in-flight flag additionally rejects re-entrant `tick()` calls.

Control:
    - pause(): cancel the pending tick; an in-flight dispatch completes
    - resume(): re-arm the loop if running
    - stop(): clear the schedule and hide detections; a dispatch that
      completes after stop is not published
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from framegate.admission.pipeline import AdmissionPipeline
from framegate.detection.dispatcher import DetectionDispatcher
from framegate.detection.errors import DetectionError
from framegate.models.detection import Detection
from framegate.stream.source import FrameSource


logger = logging.getLogger(__name__)


DetectionListener = Callable[[Optional[List[Detection]]], None]


class DetectionLoop:
    """
    Cooperative detection loop on the asyncio event loop.

    Attributes:
        source: FrameSource to capture from
        pipeline: AdmissionPipeline gate
        dispatcher: DetectionDispatcher for admitted frames
        tick_interval: Seconds between ticks
        rate_limit_cooldown: Extra delay after a rate-limit failure
        current_detections: Published detections, None when hidden
        status_message: Last one-line error status, None when healthy
        fps: Frames captured during the last full second

    Example:
        loop = DetectionLoop(source, pipeline, dispatcher)
        loop.add_listener(lambda detections: print(detections))

        loop.start()
        ...
        loop.pause()   # page hidden
        loop.resume()  # page visible
        await loop.shutdown()
    """

    def __init__(
        self,
        source: FrameSource,
        pipeline: AdmissionPipeline,
        dispatcher: DetectionDispatcher,
        tick_interval: float = 0.1,
        rate_limit_cooldown: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.tick_interval = tick_interval
        self.rate_limit_cooldown = rate_limit_cooldown
        self._clock = clock

        self._running: bool = False
        self._paused: bool = False
        self._in_flight: bool = False
        self._generation: int = 0
        self._task: Optional[asyncio.Task] = None
        self._wake: asyncio.Event = asyncio.Event()
        self._listeners: List[DetectionListener] = []

        self.current_detections: Optional[List[Detection]] = None
        self.status_message: Optional[str] = None

        self.frames_captured: int = 0
        self.tick_errors: int = 0
        self.fps: float = 0.0
        self._fps_window_start: Optional[float] = None
        self._fps_window_count: int = 0

        logger.info(
            f"DetectionLoop initialized: tick_interval={tick_interval}s, "
            f"rate_limit_cooldown={rate_limit_cooldown}s"
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def in_flight(self) -> bool:
        """Whether a tick is currently executing."""
        return self._in_flight

    @property
    def armed(self) -> bool:
        """Whether the loop task is alive."""
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: DetectionListener) -> None:
        """Register a callback receiving published detections (None = hide)."""
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop. No-op if already running."""
        if self._running:
            return
        logger.info("Starting detection loop")
        self._running = True
        self._paused = False
        self.status_message = None
        self._arm()

    def stop(self) -> None:
        """Stop scheduling ticks and hide current detections."""
        if not self._running:
            return
        logger.info("Stopping detection loop")
        self._running = False
        self._generation += 1
        self._wake.set()
        self._publish(None)

    def pause(self) -> None:
        """Cancel the pending tick without aborting an in-flight dispatch."""
        if self._paused:
            return
        logger.info("Pausing detection loop")
        self._paused = True
        self._wake.set()

    def resume(self) -> None:
        """Re-arm the loop after pause()."""
        if not self._paused:
            return
        logger.info("Resuming detection loop")
        self._paused = False
        if self._running:
            self._arm()

    async def shutdown(self) -> None:
        """Stop and wait for the loop task (and any in-flight tick) to end."""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None

    def _arm(self) -> None:
        if self.armed:
            return
        self._wake.clear()
        self._task = asyncio.create_task(self._run(), name="detection_loop")

    def _should_continue(self) -> bool:
        return self._running and not self._paused

    async def _run(self) -> None:
        logger.info("Detection loop armed")
        while self._should_continue():
            cooldown = await self.tick()

            self._wake.clear()
            if not self._should_continue():
                break

            if cooldown > 0:
                logger.info(f"Throttling detected, slowing down for {cooldown:.1f}s")
            try:
                await asyncio.wait_for(
                    self._wake.wait(),
                    timeout=self.tick_interval + cooldown,
                )
            except asyncio.TimeoutError:
                pass
        logger.info("Detection loop disarmed")

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    async def tick(self) -> float:
        """
        Run one capture → admit → dispatch → publish cycle.

        Errors are logged and swallowed so one bad frame never ends the
        loop.

        Returns:
            Extra cooldown in seconds before the next tick (non-zero only
            after a rate-limit failure)
        """
        if self._in_flight:
            logger.debug("Tick already in flight, skipping")
            return 0.0

        self._in_flight = True
        generation = self._generation
        try:
            frame = self.source.capture()
            if frame is None:
                return 0.0

            self._count_frame()

            if not self.pipeline.should_process(frame):
                return 0.0

            detections = await self.dispatcher.detect(frame)

            if generation != self._generation:
                logger.debug("Detection finished after stop, not publishing")
                return 0.0

            self.status_message = None
            self._publish(detections or None)
            return 0.0

        except DetectionError as e:
            self.tick_errors += 1
            self.status_message = str(e)
            logger.error(f"Detection failed [{e.category.value}]: {e}")
            if e.is_rate_limit:
                return self.rate_limit_cooldown
            return 0.0

        except Exception as e:
            self.tick_errors += 1
            logger.error(f"Detection loop error: {e}", exc_info=True)
            return 0.0

        finally:
            self._in_flight = False

    def _count_frame(self) -> None:
        self.frames_captured += 1
        now = self._clock()
        if self._fps_window_start is None:
            self._fps_window_start = now
        self._fps_window_count += 1
        if now - self._fps_window_start >= 1.0:
            self.fps = float(self._fps_window_count)
            self._fps_window_count = 0
            self._fps_window_start = now

    def _publish(self, detections: Optional[List[Detection]]) -> None:
        self.current_detections = detections
        for listener in self._listeners:
            try:
                listener(detections)
            except Exception as e:
                logger.warning(f"Listener error: {e}")
