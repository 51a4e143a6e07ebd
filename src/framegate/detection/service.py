"""
Recognition Services
====================

Adapters for the remote recognition service behind the dispatcher.

The dispatcher treats recognition as a black box with one call:

    detect_labels(image_bytes, model_id, min_confidence_percent)
        -> [RecognitionLabel(name, confidence_percent, bounding_box?)]

Failures are raised as RecognitionServiceError carrying a stable error code
so the dispatcher can classify them.

Components:
    - RecognitionService: Protocol for backends
    - RekognitionService: AWS Rekognition Custom Labels (production)
    - MockRecognitionService: Deterministic scripted backend (dev/testing)
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from framegate.detection.errors import RecognitionServiceError
from framegate.models.detection import BoundingBox


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecognitionLabel:
    """
    Label as reported by the service, confidence on a 0-100 scale.

    Attributes:
        name: Label name
        confidence_percent: Confidence in [0, 100]
        bounding_box: Normalized location, if reported
    """

    name: str
    confidence_percent: float
    bounding_box: Optional[BoundingBox] = None


class RecognitionService(Protocol):
    """
    Protocol for recognition backends.

    Implementations raise RecognitionServiceError on failure.
    """

    async def detect_labels(
        self,
        image_bytes: bytes,
        model_id: str,
        min_confidence_percent: float,
    ) -> list[RecognitionLabel]:
        ...


class RekognitionService:
    """
    AWS Rekognition Custom Labels backend.

    The boto3 client is synchronous, so each call runs in a worker thread
    to keep the event loop free.

    Attributes:
        region: AWS region of the model
    """

    def __init__(
        self,
        region: str = "us-east-1",
        client: Optional[object] = None,
    ) -> None:
        """
        Initialize Rekognition backend.

        Args:
            region: AWS region
            client: Pre-built boto3 Rekognition client (default: created
                from the ambient AWS credential chain)
        """
        self.region = region
        self._client = client if client is not None else boto3.client(
            "rekognition", region_name=region
        )
        logger.info(f"RekognitionService initialized: region={region}")

    async def detect_labels(
        self,
        image_bytes: bytes,
        model_id: str,
        min_confidence_percent: float,
    ) -> list[RecognitionLabel]:
        try:
            response = await asyncio.to_thread(
                self._client.detect_custom_labels,
                ProjectVersionArn=model_id,
                Image={"Bytes": image_bytes},
                MinConfidence=float(min_confidence_percent),
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            metadata = e.response.get("ResponseMetadata", {})
            raise RecognitionServiceError(
                code=error.get("Code", "Unknown"),
                message=error.get("Message", str(e)),
                status_code=metadata.get("HTTPStatusCode"),
            ) from e
        except BotoCoreError as e:
            raise RecognitionServiceError(code=_client_error_code(e), message=str(e)) from e

        return parse_custom_labels(response)


def _client_error_code(error: BotoCoreError) -> str:
    """Map a client-side botocore failure to a service error code."""
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
        return "RequestTimeout"
    if isinstance(error, (EndpointConnectionError, ConnectionClosedError)):
        return "NetworkingError"
    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return "AccessDeniedException"
    if isinstance(error, ParamValidationError):
        return "InvalidParameterException"
    return type(error).__name__


def _clamp_box(box: dict) -> BoundingBox:
    """Clip a reported box to the frame; edges may fall outside [0, 1]."""
    left = min(max(float(box["Left"]), 0.0), 1.0)
    top = min(max(float(box["Top"]), 0.0), 1.0)
    right = min(max(float(box["Left"]) + float(box["Width"]), left), 1.0)
    bottom = min(max(float(box["Top"]) + float(box["Height"]), top), 1.0)
    return BoundingBox(left=left, top=top, width=right - left, height=bottom - top)


def parse_custom_labels(response: dict) -> list[RecognitionLabel]:
    """Convert a DetectCustomLabels response into RecognitionLabels."""
    labels = []
    for label in response.get("CustomLabels") or []:
        box = (label.get("Geometry") or {}).get("BoundingBox")
        labels.append(
            RecognitionLabel(
                name=label["Name"],
                confidence_percent=float(label["Confidence"]),
                bounding_box=_clamp_box(box) if box else None,
            )
        )
    return labels


@dataclass
class MockRecognitionService:
    """
    Deterministic recognition backend.

    Returns the configured labels on every call. Scripted failures are
    raised first, one per call, in order.

    Attributes:
        labels: Labels returned on success
        failures: Errors to raise on the next calls
        calls: Number of detect_labels calls made
        last_min_confidence: Confidence floor of the latest call
    """

    labels: list[RecognitionLabel] = field(default_factory=list)
    failures: deque = field(default_factory=deque)
    calls: int = 0
    last_min_confidence: Optional[float] = None

    def fail_with(self, errors: Iterable[RecognitionServiceError]) -> None:
        """Queue errors to raise on the next calls."""
        self.failures.extend(errors)

    async def detect_labels(
        self,
        image_bytes: bytes,
        model_id: str,
        min_confidence_percent: float,
    ) -> list[RecognitionLabel]:
        self.calls += 1
        self.last_min_confidence = min_confidence_percent

        if self.failures:
            raise self.failures.popleft()

        return [
            label for label in self.labels
            if label.confidence_percent >= min_confidence_percent
        ]
