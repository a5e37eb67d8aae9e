"""Image processing utilities for framesight.

Shared image decoding, encoding, resizing and comparison helpers used by
the capture, navigation and inference modules. Screenshots travel through
the pipeline as encoded bytes; numpy arrays only exist inside these
helpers.
"""

from __future__ import annotations

import base64
import logging

import cv2
import numpy as np

from framesight.domain.models import OptimizationProfile

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"


def decode_image(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG bytes into a BGR numpy array (OpenCV format)."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Failed to decode image bytes")
    return image


def encode_image(image: np.ndarray, image_format: str = "png", quality: int = 90, compression_level: int = 6) -> bytes:
    """Encode a BGR numpy array as PNG or JPEG bytes."""
    if image_format == "jpeg":
        success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    else:
        success, buffer = cv2.imencode(".png", image, [cv2.IMWRITE_PNG_COMPRESSION, compression_level])
    if not success:
        raise ValueError(f"Failed to encode image to {image_format.upper()}")
    return buffer.tobytes()


def media_type(data: bytes) -> str:
    """Guess the MIME type of encoded image bytes from their signature."""
    if data.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    return "image/png"


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def to_data_url(data: bytes) -> str:
    """Wrap encoded image bytes in a data URL for chat-completion APIs."""
    return f"data:{media_type(data)};base64,{bytes_to_base64(data)}"


def fit_inside(image: np.ndarray, max_width: int, max_height: int) -> np.ndarray:
    """Downscale to fit inside max_width x max_height, never enlarging.

    Preserves aspect ratio.
    """
    h, w = image.shape[:2]
    scale = min(max_width / w, max_height / h)
    if scale >= 1.0:
        return image
    new_w = max(1, int(w * scale))
    new_h = max(1, int(h * scale))
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def optimize_image(data: bytes, profile: OptimizationProfile, image_format: str = "png") -> bytes:
    """Resize and re-encode a screenshot according to an optimization profile.

    PNG output honours ``compression_level``; JPEG output honours
    ``quality``.

    Raises:
        ValueError: If the bytes cannot be decoded or re-encoded.
    """
    image = decode_image(data)
    resized = fit_inside(image, profile.max_width, profile.max_height)
    return encode_image(
        resized,
        image_format=image_format,
        quality=profile.quality,
        compression_level=profile.compression_level,
    )


def side_by_side(left: bytes, right: bytes, max_height: int = 720) -> bytes:
    """Place two screenshots next to each other in one PNG.

    Both images are scaled to the same height so a vision model can compare
    them in a single call.
    """
    images = [decode_image(left), decode_image(right)]
    height = min(max_height, *(img.shape[0] for img in images))
    scaled = []
    for img in images:
        h, w = img.shape[:2]
        new_w = max(1, int(w * height / h))
        scaled.append(cv2.resize(img, (new_w, height), interpolation=cv2.INTER_AREA))
    separator = np.full((height, 8, 3), 255, dtype=np.uint8)
    return encode_image(np.hstack([scaled[0], separator, scaled[1]]))


def has_frame_changed(previous: bytes, current: bytes, threshold: float = 0.02) -> bool:
    """Check if enough pixels changed between two screenshots.

    Cheap local gate used before asking the vision model whether two
    samples show different slides.

    Args:
        previous: Earlier screenshot bytes.
        current: Later screenshot bytes.
        threshold: Fraction of pixels that must differ (0.0-1.0).
    """
    prev_gray = cv2.cvtColor(decode_image(previous), cv2.COLOR_BGR2GRAY)
    curr_gray = cv2.cvtColor(decode_image(current), cv2.COLOR_BGR2GRAY)
    if prev_gray.shape != curr_gray.shape:
        return True
    diff = cv2.absdiff(prev_gray, curr_gray)
    changed = np.count_nonzero(diff > 25) / diff.size
    return changed > threshold
