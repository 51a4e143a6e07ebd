"""
Detection Module
================

Remote recognition behind a result cache and a retrying dispatcher.

Components:
    - ResultCache / fingerprint: FIFO + TTL cache keyed by frame prefix CRC
    - RecognitionService: Protocol for recognition backends
    - RekognitionService: AWS Rekognition Custom Labels (boto3)
    - MockRecognitionService: Deterministic backend for dev/testing
    - DetectionDispatcher: Cache lookup, retry/backoff, error classification
    - DetectionError / ErrorCategory: Classified failures

Design Philosophy:
    The recognition model is a black box. Only its call contract and its
    error codes matter here.
"""

from framegate.detection.cache import ResultCache, fingerprint
from framegate.detection.dispatcher import DetectionDispatcher, DispatchStats
from framegate.detection.errors import (
    DetectionError,
    ErrorCategory,
    RecognitionServiceError,
)
from framegate.detection.service import (
    MockRecognitionService,
    RecognitionLabel,
    RecognitionService,
    RekognitionService,
)


__all__ = [
    "DetectionDispatcher",
    "DetectionError",
    "DispatchStats",
    "ErrorCategory",
    "MockRecognitionService",
    "RecognitionLabel",
    "RecognitionService",
    "RecognitionServiceError",
    "RekognitionService",
    "ResultCache",
    "fingerprint",
]
