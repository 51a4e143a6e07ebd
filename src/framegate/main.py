"""
FrameGate Main Application
==========================

FastAPI entry point for the frame admission service.

Runtime:
    FrameConsumer → FrameBuffer → BufferedFrameSource
        → DetectionLoop (AdmissionPipeline → DetectionDispatcher)
        → current detections + stats

Endpoints:
    GET   /                  - Service information
    GET   /health            - Liveness probe (is process alive?)
    GET   /ready             - Readiness probe (stream connected or loop running?)
    GET   /metrics           - Stream, buffer, cache and loop counters
    GET   /stats             - Efficiency and reliability counters
    GET   /detections        - Current detections (empty when hidden)
    POST  /detection/start   - Start the detection loop
    POST  /detection/stop    - Stop the loop and hide detections
    POST  /detection/pause   - Pause ticking (viewer hidden)
    POST  /detection/resume  - Resume ticking (viewer visible)
    PATCH /settings          - Retune admission and confidence settings
    POST  /reset             - Clear counters, baseline and cache
    WS    /ws/detections     - Detections + stats once per second
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from framegate.config import settings
from framegate.admission import AdmissionPipeline
from framegate.detection import (
    DetectionDispatcher,
    MockRecognitionService,
    RecognitionLabel,
    RecognitionService,
    RekognitionService,
    ResultCache,
)
from framegate.models.output import (
    BoundingBoxOut,
    DetectionOut,
    DetectionsOutput,
    SettingsUpdate,
)
from framegate.observability import build_stats_snapshot
from framegate.runner import DetectionLoop
from framegate.stream import BufferedFrameSource, FrameBuffer, FrameConsumer, FrameSource


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

# Shutdown flag
_shutdown_flag: bool = False

# Frame ingestion
_frame_buffer: Optional[FrameBuffer] = None
_frame_consumer: Optional[FrameConsumer] = None
_consumer_task: Optional[asyncio.Task] = None

# Admission + detection
_pipeline: Optional[AdmissionPipeline] = None
_dispatcher: Optional[DetectionDispatcher] = None
_detection_loop: Optional[DetectionLoop] = None

_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_frame_buffer() -> Optional[FrameBuffer]:
    return _frame_buffer

def get_frame_consumer() -> Optional[FrameConsumer]:
    return _frame_consumer

def get_pipeline() -> Optional[AdmissionPipeline]:
    return _pipeline

def get_dispatcher() -> Optional[DetectionDispatcher]:
    return _dispatcher

def get_detection_loop() -> Optional[DetectionLoop]:
    return _detection_loop


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Handle SIGTERM for graceful shutdown."""
    global _shutdown_flag
    logger.info("Received SIGTERM, initiating graceful shutdown...")
    _shutdown_flag = True


# =============================================================================
# Component Factories
# =============================================================================

def create_recognition_service() -> RecognitionService:
    """
    Create recognition backend based on config.

    Fails fast on an unknown backend name.
    """
    backend = settings.detection.backend

    if backend == "mock":
        labels = [
            RecognitionLabel(name=label.name, confidence_percent=label.confidence_percent)
            for label in settings.detection.mock_labels
        ]
        logger.info(f"Using MockRecognitionService ({len(labels)} labels)")
        return MockRecognitionService(labels=labels)

    elif backend == "rekognition":
        logger.info(f"Using RekognitionService: region={settings.detection.region}")
        return RekognitionService(region=settings.detection.region)

    else:
        raise ValueError(f"Unknown detection backend: {backend}")


def create_pipeline() -> AdmissionPipeline:
    """Create the admission pipeline from config."""
    admission = settings.admission
    return AdmissionPipeline(
        motion_threshold=admission.motion_threshold,
        quality_threshold=admission.quality_threshold,
        scan_interval=admission.scan_interval_ms / 1000.0,
        enabled=admission.enabled,
        motion_sample_stride=admission.motion_sample_stride,
        sharpness_column_step=admission.sharpness_column_step,
        brightness_sample_stride=admission.brightness_sample_stride,
    )


def create_dispatcher(service: RecognitionService) -> DetectionDispatcher:
    """Create the cache + dispatcher pair from config."""
    cache = ResultCache(
        max_entries=settings.cache.max_entries,
        ttl=settings.cache.ttl_ms / 1000.0,
    )
    return DetectionDispatcher(
        service=service,
        cache=cache,
        model_id=settings.detection.model_arn,
        confidence_threshold=settings.detection.confidence_threshold,
        max_retries=settings.detection.max_retries,
        retry_base_delay=settings.detection.retry_base_delay_ms / 1000.0,
        fingerprint_prefix_bytes=settings.cache.fingerprint_prefix_bytes,
    )


def create_detection_loop(
    source: FrameSource,
    pipeline: AdmissionPipeline,
    dispatcher: DetectionDispatcher,
) -> DetectionLoop:
    """Create the detection loop from config."""
    return DetectionLoop(
        source=source,
        pipeline=pipeline,
        dispatcher=dispatcher,
        tick_interval=settings.loop.tick_interval_ms / 1000.0,
        rate_limit_cooldown=settings.loop.rate_limit_cooldown_ms / 1000.0,
    )


# =============================================================================
# Payload Builders
# =============================================================================

def build_detections_output() -> DetectionsOutput:
    """Current detections for the presentation layer."""
    loop = get_detection_loop()
    detections = loop.current_detections if loop else None

    return DetectionsOutput(
        timestamp=time.time(),
        visible=bool(detections),
        detections=[
            DetectionOut(
                name=d.name,
                confidence=d.confidence,
                bounding_box=BoundingBoxOut(**d.bounding_box.to_dict())
                if d.bounding_box else None,
                timestamp=d.timestamp,
            )
            for d in detections or []
        ],
        status_message=loop.status_message if loop else None,
    )


def _not_initialized() -> JSONResponse:
    return JSONResponse(
        {"error": "Detection pipeline not initialized"},
        status_code=503,
    )


def _loop_state(loop: DetectionLoop) -> dict:
    return {
        "running": loop.running,
        "paused": loop.paused,
        "in_flight": loop.in_flight,
    }


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _frame_buffer, _frame_consumer, _consumer_task
    global _pipeline, _dispatcher, _detection_loop, _startup_time

    # Register signal handlers
    signal.signal(signal.SIGTERM, _handle_sigterm)

    # Startup
    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    # Stream ingestion
    logger.info(f"Stream URL: {settings.stream.url}")
    _frame_buffer = FrameBuffer(maxsize=settings.stream.max_queue_size)
    _frame_consumer = FrameConsumer(
        url=settings.stream.url,
        buffer=_frame_buffer,
        reconnect_backoff_ms=settings.stream.reconnect_backoff_ms,
        max_reconnect_attempts=settings.stream.max_reconnect_attempts,
    )
    _consumer_task = asyncio.create_task(
        _frame_consumer.run(),
        name="frame_consumer"
    )

    # Admission + detection
    _pipeline = create_pipeline()
    _dispatcher = create_dispatcher(create_recognition_service())
    _detection_loop = create_detection_loop(
        BufferedFrameSource(_frame_buffer),
        _pipeline,
        _dispatcher,
    )

    if settings.loop.autostart:
        _detection_loop.start()

    logger.info("All components started")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")

    global _shutdown_flag
    _shutdown_flag = True

    if _detection_loop:
        await _detection_loop.shutdown()

    if _frame_consumer:
        await _frame_consumer.stop()

    if _consumer_task:
        try:
            await asyncio.wait_for(_consumer_task, timeout=5.0)
        except asyncio.TimeoutError:
            _consumer_task.cancel()
            try:
                await _consumer_task
            except asyncio.CancelledError:
                pass

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="FrameGate",
    description="Frame admission gate in front of a remote recognition service",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "FrameGate",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "detection_backend": settings.detection.backend,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the service ready to handle requests?

    Returns 200 if the stream is connected or the loop is running.
    Returns 503 if not ready.
    """
    consumer = get_frame_consumer()
    loop = get_detection_loop()

    stream_connected = consumer.connected if consumer else False
    loop_running = loop.running if loop else False

    if stream_connected or loop_running:
        return JSONResponse({
            "status": "ready",
            "stream_connected": stream_connected,
            "loop_running": loop_running,
        })
    else:
        return JSONResponse(
            {
                "status": "not_ready",
                "stream_connected": stream_connected,
                "loop_running": loop_running,
            },
            status_code=503,
        )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed counters for observability."""
    consumer = get_frame_consumer()
    buffer = get_frame_buffer()
    dispatcher = get_dispatcher()
    loop = get_detection_loop()

    stream_metrics = {}
    if consumer and buffer:
        stream_metrics = {
            "stream_connected": consumer.connected,
            **consumer.metrics.to_dict(),
            "buffer": buffer.metrics(),
        }

    dispatch_metrics = {}
    if dispatcher:
        dispatch_metrics = {
            "dispatch": dispatcher.get_stats(),
            "cache": dispatcher.cache.metrics(),
        }

    loop_metrics = {}
    if loop:
        loop_metrics = {
            **_loop_state(loop),
            "fps": loop.fps,
            "tick_errors": loop.tick_errors,
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "detection_backend": settings.detection.backend,
        **stream_metrics,
        **dispatch_metrics,
        **loop_metrics,
    })


@app.get("/stats")
async def stats() -> JSONResponse:
    """Efficiency and reliability counters."""
    pipeline, dispatcher, loop = get_pipeline(), get_dispatcher(), get_detection_loop()
    if pipeline is None or dispatcher is None or loop is None:
        return _not_initialized()

    snapshot = build_stats_snapshot(
        pipeline,
        dispatcher,
        fps=loop.fps,
        running=loop.running,
        status_message=loop.status_message,
    )
    return JSONResponse(snapshot.model_dump(mode="json"))


@app.get("/detections")
async def detections() -> JSONResponse:
    """Current detections (empty and not visible when hidden)."""
    return JSONResponse(build_detections_output().model_dump(mode="json"))


@app.post("/detection/start")
async def start_detection() -> JSONResponse:
    loop = get_detection_loop()
    if loop is None:
        return _not_initialized()
    loop.start()
    return JSONResponse(_loop_state(loop))


@app.post("/detection/stop")
async def stop_detection() -> JSONResponse:
    loop = get_detection_loop()
    if loop is None:
        return _not_initialized()
    loop.stop()
    return JSONResponse(_loop_state(loop))


@app.post("/detection/pause")
async def pause_detection() -> JSONResponse:
    loop = get_detection_loop()
    if loop is None:
        return _not_initialized()
    loop.pause()
    return JSONResponse(_loop_state(loop))


@app.post("/detection/resume")
async def resume_detection() -> JSONResponse:
    loop = get_detection_loop()
    if loop is None:
        return _not_initialized()
    loop.resume()
    return JSONResponse(_loop_state(loop))


@app.patch("/settings")
async def update_settings(update: SettingsUpdate) -> JSONResponse:
    """Apply runtime settings. Omitted fields are left unchanged."""
    pipeline, dispatcher = get_pipeline(), get_dispatcher()
    if pipeline is None or dispatcher is None:
        return _not_initialized()

    if update.smart_detection is not None:
        pipeline.set_enabled(update.smart_detection)

    pipeline.update_settings(
        motion_threshold=update.motion_threshold,
        quality_threshold=update.quality_threshold,
        scan_interval=update.scan_interval_ms / 1000.0
        if update.scan_interval_ms is not None else None,
    )

    if update.confidence_threshold is not None:
        dispatcher.set_confidence_threshold(update.confidence_threshold)

    return JSONResponse({
        "smart_detection": pipeline.enabled,
        "motion_threshold": pipeline.motion.threshold,
        "quality_threshold": pipeline.quality.threshold,
        "scan_interval_ms": round(pipeline.throttle.scan_interval * 1000),
        "confidence_threshold": dispatcher.confidence_threshold,
    })


@app.post("/reset")
async def reset() -> JSONResponse:
    """Clear admission state, counters and the result cache."""
    pipeline, dispatcher = get_pipeline(), get_dispatcher()
    if pipeline is None or dispatcher is None:
        return _not_initialized()

    pipeline.reset()
    dispatcher.reset()
    logger.info("Pipeline and dispatcher reset")
    return JSONResponse({"status": "reset"})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/detections")
async def detections_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for detections + stats, once per second."""
    await websocket.accept()
    logger.info("Client connected to /ws/detections")

    try:
        while not _shutdown_flag:
            payload = {"detections": build_detections_output().model_dump(mode="json")}

            pipeline, dispatcher, loop = get_pipeline(), get_dispatcher(), get_detection_loop()
            if pipeline and dispatcher and loop:
                payload["stats"] = build_stats_snapshot(
                    pipeline,
                    dispatcher,
                    fps=loop.fps,
                    running=loop.running,
                    status_message=loop.status_message,
                ).model_dump(mode="json")

            await websocket.send_json(payload)

            # Doubles as the 1 s push interval and disconnect detection
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=1.0)
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/detections")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "framegate.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
