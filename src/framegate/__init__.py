"""
FrameGate
=========

Frame admission gateway for cost-controlled remote recognition.

This package decides, frame by frame, whether a live camera frame is worth
an expensive call to a remote recognition service (AWS Rekognition Custom
Labels in production). Frames that are too soon, too static, or too blurry
never leave the process.

Components:
    - stream: Frame model, websocket ingestion, bounded frame buffer
    - admission: Motion, quality and throttle gates + the admission pipeline
    - detection: Result cache, recognition service adapters, dispatcher
    - runner: Single-task detection loop (capture → admit → dispatch)
    - observability: Stats snapshot assembly

Example:
    from framegate.admission import AdmissionPipeline
    from framegate.detection import DetectionDispatcher, ResultCache

    # Service is started via FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "FrameGate Project"

__all__ = [
    "__version__",
]
