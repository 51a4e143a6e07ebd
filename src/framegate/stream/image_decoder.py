"""
Image Decoder
=============

Conversion between encoded images (JPEG) and RGBA pixel buffers.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Validates shape and dtype
    - Fails fast on corrupt frames
    - Produces RGBA so every source hands the gates the same layout
"""

import base64
import binascii
import logging

import cv2
import numpy as np

from framegate.stream.frame import FrameSample


logger = logging.getLogger(__name__)


DEFAULT_JPEG_QUALITY = 80


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


def decode_rgba(encoded: bytes) -> np.ndarray:
    """
    Decode JPEG/PNG bytes to an RGBA numpy array.

    Args:
        encoded: Compressed image bytes

    Returns:
        RGBA image as np.ndarray (H, W, 4), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if not encoded:
        raise ImageDecodeError("Empty image payload")

    nparr = np.frombuffer(encoded, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(f"Invalid dtype: {bgr.dtype}")

    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)


def decode_base64_rgba(image_b64: str) -> tuple[bytes, np.ndarray]:
    """
    Decode a base64 image string.

    Accepts plain base64 as well as `data:image/...;base64,` URLs.

    Returns:
        Tuple of (raw encoded bytes, RGBA pixels)

    Raises:
        ImageDecodeError: If base64 or image decoding fails
    """
    if image_b64.startswith("data:"):
        _, _, image_b64 = image_b64.partition(",")

    try:
        encoded = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Base64 decode failed: {e}")

    return encoded, decode_rgba(encoded)


def encode_jpeg(pixels: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """
    Encode RGBA (or BGR) pixels as JPEG bytes.

    Args:
        pixels: RGBA (H, W, 4) or BGR (H, W, 3) uint8 array
        quality: JPEG quality 0-100

    Raises:
        ImageDecodeError: If encoding fails
    """
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGR)
    else:
        bgr = pixels

    ok, buf = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageDecodeError(f"JPEG encoding failed for shape {pixels.shape}")
    return buf.tobytes()


def sample_from_bgr(
    bgr: np.ndarray,
    timestamp: float,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> FrameSample:
    """
    Build a FrameSample from an OpenCV BGR frame.

    The encoded payload is a JPEG of the same frame, matching what a
    camera capture would send to the recognition service.
    """
    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Expected BGR frame, got shape {bgr.shape}")

    pixels = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)
    height, width = pixels.shape[:2]
    return FrameSample(
        pixels=pixels,
        width=width,
        height=height,
        encoded=encode_jpeg(bgr, quality=quality),
        timestamp=timestamp,
    )
