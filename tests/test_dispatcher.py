"""
Detection Dispatcher Tests
==========================

Tests for caching, retry/backoff, error classification and stats.
"""

import pytest

from framegate.admission import AdmissionPipeline
from framegate.detection import (
    DetectionDispatcher,
    DetectionError,
    ErrorCategory,
    MockRecognitionService,
    RecognitionLabel,
    RecognitionServiceError,
    ResultCache,
)
from framegate.detection.errors import classify, is_retryable
from framegate.models.detection import BoundingBox


MODEL_ARN = "arn:aws:rekognition:us-east-1:123456789012:project/test/version/test/1"


def _dispatcher(service, clock, sleep=None, **kwargs) -> DetectionDispatcher:
    extra = {"sleep": sleep} if sleep is not None else {}
    return DetectionDispatcher(
        service=service,
        cache=ResultCache(max_entries=50, ttl=5.0, clock=clock),
        model_id=MODEL_ARN,
        clock=clock,
        **extra,
        **kwargs,
    )


class TestErrorClassification:
    """Tests for the retryable/fatal taxonomy."""

    @pytest.mark.parametrize(
        "code",
        [
            "ThrottlingException",
            "InternalServerError",
            "ServiceUnavailableException",
            "RequestTimeout",
            "NetworkingError",
        ],
    )
    def test_retryable_codes(self, code):
        assert is_retryable(RecognitionServiceError(code))

    @pytest.mark.parametrize(
        "code, category",
        [
            ("InvalidParameterException", ErrorCategory.INVALID_INPUT),
            ("InvalidImageFormatException", ErrorCategory.INVALID_INPUT),
            ("ResourceNotFoundException", ErrorCategory.MODEL_UNAVAILABLE),
            ("ResourceNotReadyException", ErrorCategory.MODEL_UNAVAILABLE),
            ("AccessDeniedException", ErrorCategory.ACCESS_DENIED),
            ("LimitExceededException", ErrorCategory.LIMIT_EXCEEDED),
        ],
    )
    def test_fatal_codes(self, code, category):
        assert classify(code) == category
        assert not is_retryable(RecognitionServiceError(code))

    def test_unknown_5xx_is_retryable(self):
        assert is_retryable(RecognitionServiceError("Weird", status_code=503))

    def test_unknown_4xx_is_fatal(self):
        assert classify("Weird", 400) == ErrorCategory.UNKNOWN
        assert not is_retryable(RecognitionServiceError("Weird", status_code=400))

    def test_detection_error_messages(self):
        throttled = DetectionError.from_service_error(
            RecognitionServiceError("ThrottlingException")
        )
        assert throttled.is_rate_limit
        assert throttled.retryable
        assert str(throttled) == "Too many requests. Please wait and try again"

        unknown = DetectionError.from_service_error(
            RecognitionServiceError("Weird", "something odd")
        )
        assert unknown.category == ErrorCategory.UNKNOWN
        assert str(unknown) == "Recognition error: something odd"


class TestDispatcherRetry:
    """Tests for the retry ceiling and backoff."""

    @pytest.mark.asyncio
    async def test_retryable_failure_makes_max_retries_plus_one_calls(
        self, frames, clock, recorded_sleeps
    ):
        sleep, delays = recorded_sleeps
        service = MockRecognitionService()
        service.fail_with(RecognitionServiceError("ThrottlingException") for _ in range(10))
        dispatcher = _dispatcher(service, clock, sleep=sleep, max_retries=3)

        with pytest.raises(DetectionError) as exc_info:
            await dispatcher.detect(frames.textured())

        assert service.calls == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.category == ErrorCategory.RATE_LIMITED
        assert dispatcher.stats.api_calls == 4
        assert dispatcher.stats.errors == 4

    @pytest.mark.asyncio
    async def test_backoff_is_linear(self, frames, clock, recorded_sleeps):
        sleep, delays = recorded_sleeps
        service = MockRecognitionService()
        service.fail_with(RecognitionServiceError("InternalServerError") for _ in range(10))
        dispatcher = _dispatcher(service, clock, sleep=sleep, max_retries=3, retry_base_delay=1.0)

        with pytest.raises(DetectionError):
            await dispatcher.detect(frames.textured())

        assert delays == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_fatal_failure_makes_one_call(self, frames, clock, recorded_sleeps):
        sleep, delays = recorded_sleeps
        service = MockRecognitionService()
        service.fail_with([RecognitionServiceError("AccessDeniedException", "nope", 400)])
        dispatcher = _dispatcher(service, clock, sleep=sleep, max_retries=3)

        with pytest.raises(DetectionError) as exc_info:
            await dispatcher.detect(frames.textured())

        assert service.calls == 1
        assert delays == []
        assert exc_info.value.category == ErrorCategory.ACCESS_DENIED
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(
        self, frames, clock, recorded_sleeps, logo_label
    ):
        sleep, delays = recorded_sleeps
        service = MockRecognitionService(labels=[logo_label])
        service.fail_with([RecognitionServiceError("ServiceUnavailableException")])
        dispatcher = _dispatcher(service, clock, sleep=sleep)

        detections = await dispatcher.detect(frames.textured())

        assert [d.name for d in detections] == ["Logo"]
        assert service.calls == 2
        assert delays == [1.0]
        assert dispatcher.stats.success_rate == 50.0

    @pytest.mark.asyncio
    async def test_zero_retries(self, frames, clock, recorded_sleeps):
        sleep, delays = recorded_sleeps
        service = MockRecognitionService()
        service.fail_with([RecognitionServiceError("ThrottlingException")])
        dispatcher = _dispatcher(service, clock, sleep=sleep, max_retries=0)

        with pytest.raises(DetectionError):
            await dispatcher.detect(frames.textured())

        assert service.calls == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped(self, frames, clock, recorded_sleeps):
        sleep, _ = recorded_sleeps

        class BrokenService:
            async def detect_labels(self, image_bytes, model_id, min_confidence_percent):
                raise RuntimeError("socket exploded")

        dispatcher = _dispatcher(BrokenService(), clock, sleep=sleep)

        with pytest.raises(DetectionError) as exc_info:
            await dispatcher.detect(frames.textured())

        assert exc_info.value.category == ErrorCategory.UNKNOWN
        assert "socket exploded" in str(exc_info.value)
        assert dispatcher.stats.errors == 1

    def test_rejects_negative_retries(self, clock):
        with pytest.raises(ValueError):
            _dispatcher(MockRecognitionService(), clock, max_retries=-1)


class TestDispatcherResults:
    """Tests for confidence conversion, filtering and caching."""

    @pytest.mark.asyncio
    async def test_percent_converted_to_fraction(self, frames, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)

        detections = await dispatcher.detect(frames.textured())

        assert detections[0].confidence == pytest.approx(0.85)
        assert detections[0].timestamp == clock.now
        assert mock_service.last_min_confidence == pytest.approx(80.0)

    @pytest.mark.asyncio
    async def test_local_threshold_filter(self, frames, clock):
        class LenientService:
            async def detect_labels(self, image_bytes, model_id, min_confidence_percent):
                return [
                    RecognitionLabel("Logo", 92.0),
                    RecognitionLabel("Noise", 40.0),
                ]

        dispatcher = _dispatcher(LenientService(), clock, confidence_threshold=0.8)

        detections = await dispatcher.detect(frames.textured())

        assert [d.name for d in detections] == ["Logo"]

    @pytest.mark.asyncio
    async def test_bounding_box_passed_through(self, frames, clock):
        box = BoundingBox(left=0.1, top=0.2, width=0.3, height=0.4)
        service = MockRecognitionService(labels=[RecognitionLabel("Logo", 90.0, box)])
        dispatcher = _dispatcher(service, clock)

        detections = await dispatcher.detect(frames.textured())

        assert detections[0].bounding_box == box

    @pytest.mark.asyncio
    async def test_cache_hit_makes_no_api_call(self, frames, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)
        frame = frames.textured()

        first = await dispatcher.detect(frame)
        second = await dispatcher.detect(frame)

        assert first == second
        assert mock_service.calls == 1
        assert dispatcher.stats.api_calls == 1
        assert dispatcher.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, frames, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)
        frame = frames.textured()

        await dispatcher.detect(frame)
        clock.advance(5.0 + 0.001)
        await dispatcher.detect(frame)

        assert mock_service.calls == 2

    @pytest.mark.asyncio
    async def test_empty_result_not_cached(self, frames, clock):
        service = MockRecognitionService(labels=[])
        dispatcher = _dispatcher(service, clock)
        frame = frames.textured()

        assert await dispatcher.detect(frame) == []
        assert await dispatcher.detect(frame) == []

        assert service.calls == 2
        assert dispatcher.stats.detections == 0
        assert len(dispatcher.cache) == 0

    @pytest.mark.asyncio
    async def test_avg_confidence(self, frames, clock):
        service = MockRecognitionService(
            labels=[RecognitionLabel("A", 90.0), RecognitionLabel("B", 80.0)]
        )
        dispatcher = _dispatcher(service, clock)

        await dispatcher.detect(frames.textured())

        assert dispatcher.stats.avg_confidence == pytest.approx(0.85)
        assert dispatcher.stats.detections == 1

    def test_set_confidence_threshold_clamps(self, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)

        dispatcher.set_confidence_threshold(1.5)
        assert dispatcher.confidence_threshold == 1.0
        dispatcher.set_confidence_threshold(-0.2)
        assert dispatcher.confidence_threshold == 0.0

    @pytest.mark.asyncio
    async def test_reset_clears_stats_and_cache(self, frames, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)
        await dispatcher.detect(frames.textured())

        dispatcher.reset()

        stats = dispatcher.get_stats()
        assert stats["api_calls"] == 0
        assert stats["cache_size"] == 0

    @pytest.mark.asyncio
    async def test_stats_count_only_live_cache_entries(self, frames, clock, mock_service):
        dispatcher = _dispatcher(mock_service, clock)
        await dispatcher.detect(frames.textured())
        assert dispatcher.get_stats()["cache_size"] == 1

        clock.advance(5.0)

        assert dispatcher.get_stats()["cache_size"] == 0
        assert dispatcher.cache.expirations == 1


class TestScenarios:
    """End-to-end admission + dispatch scenarios."""

    @pytest.mark.asyncio
    async def test_identical_frame_never_reaches_dispatcher(self, frames, clock, mock_service):
        pipeline = AdmissionPipeline(scan_interval=0.0)
        dispatcher = _dispatcher(mock_service, clock)
        frame = frames.textured(timestamp=0.0)

        for _ in range(2):
            if pipeline.should_process(frame):
                await dispatcher.detect(frame)

        assert pipeline.motion.last_score == 0.0
        assert mock_service.calls == 1
        assert dispatcher.stats.cache_hits == 0

    @pytest.mark.asyncio
    async def test_colliding_fingerprints_hit_cache(self, frames, clock, mock_service):
        pipeline = AdmissionPipeline(scan_interval=2.0)
        dispatcher = _dispatcher(mock_service, clock)
        shared_prefix = bytes(1000)
        first = frames.textured(phase=0, timestamp=0.0, encoded=shared_prefix + b"first")
        second = frames.textured(phase=2, timestamp=3.0, encoded=shared_prefix + b"second")

        results = []
        for frame in (first, second):
            assert pipeline.should_process(frame)
            results.append(await dispatcher.detect(frame))

        assert results[0] == results[1]
        assert results[0][0].name == "Logo"
        assert mock_service.calls == 1
        assert dispatcher.stats.api_calls == 1
        assert dispatcher.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_distinct_fingerprints_miss_cache(self, frames, clock, mock_service):
        pipeline = AdmissionPipeline(scan_interval=2.0)
        dispatcher = _dispatcher(mock_service, clock)
        first = frames.textured(phase=0, timestamp=0.0, encoded=b"A" + bytes(999))
        second = frames.textured(phase=2, timestamp=3.0, encoded=b"B" + bytes(999))

        for frame in (first, second):
            assert pipeline.should_process(frame)
            detections = await dispatcher.detect(frame)
            assert detections[0].name == "Logo"

        assert mock_service.calls == 2
        assert dispatcher.stats.api_calls == 2
        assert dispatcher.stats.cache_hits == 0
