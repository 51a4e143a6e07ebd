"""
Detection Dispatcher
====================

Read-through cache + retrying client in front of the recognition service.

This dispatcher:
    - Fingerprints the encoded frame and consults the ResultCache
    - On a miss, calls the recognition service with the confidence floor
    - Converts confidence from 0-100 to [0, 1] and filters locally
    - Caches non-empty results
    - Retries transient failures with linear backoff (1x, 2x, 3x base delay)
    - Raises DetectionError for fatal failures or exhausted retries

Accounting:
    - Every service attempt increments `api_calls`, cache hits do not
    - Every failed attempt increments `errors`
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable

from framegate.detection.cache import DEFAULT_PREFIX_BYTES, ResultCache, fingerprint
from framegate.detection.errors import (
    DetectionError,
    ErrorCategory,
    RecognitionServiceError,
    is_retryable,
)
from framegate.detection.service import RecognitionLabel, RecognitionService
from framegate.models.detection import Detection
from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchStats:
    """
    Dispatcher counters.

    Attributes:
        api_calls: Service attempts (retries included)
        cache_hits: Results served from the cache
        detections: Non-empty results obtained from the service
        errors: Failed service attempts
        avg_confidence: Mean confidence of the latest non-empty result
    """

    api_calls: int = 0
    cache_hits: int = 0
    detections: int = 0
    errors: int = 0
    avg_confidence: float = 0.0

    @property
    def success_rate(self) -> float:
        """Percentage of service attempts that did not fail."""
        if self.api_calls == 0:
            return 0.0
        return round((self.api_calls - self.errors) / self.api_calls * 100, 1)

    def to_dict(self) -> dict:
        return {
            **asdict(self),
            "avg_confidence": round(self.avg_confidence, 4),
            "success_rate": self.success_rate,
        }


class DetectionDispatcher:
    """
    Cached, retrying access to the recognition service.

    Attributes:
        service: RecognitionService backend
        cache: ResultCache for fingerprinted results
        model_id: Model identifier passed to the service
        confidence_threshold: Floor in [0, 1]
        max_retries: Retry ceiling for transient errors
        retry_base_delay: Backoff unit in seconds
        stats: DispatchStats counters

    Example:
        dispatcher = DetectionDispatcher(
            service=RekognitionService(region="us-east-1"),
            cache=ResultCache(max_entries=50, ttl=5.0),
            model_id=model_arn,
        )

        try:
            detections = await dispatcher.detect(sample)
        except DetectionError as e:
            show_status(str(e))
    """

    def __init__(
        self,
        service: RecognitionService,
        cache: ResultCache,
        model_id: str,
        confidence_threshold: float = 0.8,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        fingerprint_prefix_bytes: int = DEFAULT_PREFIX_BYTES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize detection dispatcher.

        Args:
            service: Recognition backend
            cache: Result cache
            model_id: Model identifier (Rekognition project version ARN)
            confidence_threshold: Minimum confidence in [0, 1]
            max_retries: Retries after the first attempt for transient errors
            retry_base_delay: Seconds per backoff unit
            fingerprint_prefix_bytes: Bytes of the encoded frame hashed for
                the cache key
            sleep: Async sleep used for backoff
            clock: Time source for detection timestamps
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_base_delay < 0:
            raise ValueError("retry_base_delay must be >= 0")

        self.service = service
        self.cache = cache
        self.model_id = model_id
        self.confidence_threshold = min(1.0, max(0.0, confidence_threshold))
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.fingerprint_prefix_bytes = fingerprint_prefix_bytes
        self.stats = DispatchStats()

        self._sleep = sleep
        self._clock = clock

        logger.info(
            f"DetectionDispatcher initialized: "
            f"confidence_threshold={self.confidence_threshold}, "
            f"max_retries={max_retries}, retry_base_delay={retry_base_delay}s"
        )

    def set_confidence_threshold(self, threshold: float) -> None:
        """Set the confidence floor, clamped to [0, 1]."""
        self.confidence_threshold = min(1.0, max(0.0, threshold))
        logger.info(f"Confidence threshold set to {self.confidence_threshold}")

    async def detect(self, frame: FrameSample) -> list[Detection]:
        """
        Recognize labels in an admitted frame.

        Args:
            frame: Admitted frame

        Returns:
            Detections at or above the confidence threshold (may be empty)

        Raises:
            DetectionError: Fatal failure, or transient failure after
                `max_retries` retries
        """
        key = fingerprint(frame.encoded, self.fingerprint_prefix_bytes)

        cached = self.cache.get(key)
        if cached is not None:
            self.stats.cache_hits += 1
            logger.debug(f"Cache hit: {key} ({len(cached)} detections)")
            return cached

        labels = await self._call_with_retry(frame.encoded)
        detections = self._to_detections(labels)

        if detections:
            self.cache.put(key, detections)
            self.stats.detections += 1
            self.stats.avg_confidence = (
                sum(d.confidence for d in detections) / len(detections)
            )
            logger.info(
                f"Detected {detections[0].name} "
                f"(confidence={detections[0].confidence:.2f}, total={len(detections)})"
            )

        return detections

    async def _call_with_retry(self, image_bytes: bytes) -> list[RecognitionLabel]:
        """Call the service, retrying transient errors with linear backoff."""
        retries = 0
        while True:
            self.stats.api_calls += 1
            try:
                return await self.service.detect_labels(
                    image_bytes,
                    self.model_id,
                    self.confidence_threshold * 100,
                )
            except RecognitionServiceError as e:
                self.stats.errors += 1

                if not is_retryable(e):
                    logger.error(f"Recognition failed (fatal): {e}")
                    raise DetectionError.from_service_error(e, attempts=retries + 1) from e

                if retries >= self.max_retries:
                    logger.error(
                        f"Recognition failed after {retries + 1} attempts: {e}"
                    )
                    raise DetectionError.from_service_error(e, attempts=retries + 1) from e

                retries += 1
                delay = retries * self.retry_base_delay
                logger.warning(
                    f"Retrying detection ({retries}/{self.max_retries}) "
                    f"in {delay:.1f}s after: {e}"
                )
                await self._sleep(delay)
            except Exception as e:
                self.stats.errors += 1
                logger.error(f"Unexpected recognition failure: {e}")
                raise DetectionError(
                    message=f"Recognition error: {e}",
                    code=type(e).__name__,
                    category=ErrorCategory.UNKNOWN,
                    attempts=retries + 1,
                ) from e

    def _to_detections(self, labels: list[RecognitionLabel]) -> list[Detection]:
        now = self._clock()
        detections = []
        for label in labels:
            confidence = label.confidence_percent / 100.0
            if confidence < self.confidence_threshold:
                continue
            detections.append(
                Detection(
                    name=label.name,
                    confidence=confidence,
                    bounding_box=label.bounding_box,
                    timestamp=now,
                )
            )
        return detections

    def get_stats(self) -> dict:
        """Counters plus derived rates and the number of live cache entries."""
        self.cache.purge_expired()
        return {
            **self.stats.to_dict(),
            "cache_size": len(self.cache),
        }

    def clear_cache(self) -> None:
        self.cache.clear()

    def reset(self) -> None:
        """Clear counters and cache."""
        self.stats = DispatchStats()
        self.clear_cache()
