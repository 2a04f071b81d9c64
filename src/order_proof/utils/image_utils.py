# ============================================================================
# src/order_proof/utils/image_utils.py
# ============================================================================
"""
Image input utilities.

Provides:
- bytes / data URL / bare base64 decoding
- Encoded size and token estimates for the input budget
- Model-ready encoding (EXIF corrected, bounded size, base64 JPEG)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import math
import re
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Union

from PIL import Image, ImageOps

from .exceptions import InvalidImageError

if TYPE_CHECKING:
    from ..core.outcome import Outcome

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w/+.\-]+)?(?P<params>(;[\w\-]+=[\w\-]+)*)?;base64,', re.IGNORECASE)

ImageInput = Union[bytes, bytearray, memoryview, str]


def decode_image_input(image: ImageInput) -> bytes:
    """
    Normalize a submitted image to raw bytes.

    Accepts raw bytes, a ``data:image/...;base64,`` URL, or a bare base64
    string. Raises InvalidImageError when the payload cannot be decoded.
    """
    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
    elif isinstance(image, str):
        payload = image.strip()
        match = DATA_URL_RE.match(payload)
        if match:
            payload = payload[match.end():]
        try:
            data = base64.b64decode(re.sub(r'\s+', '', payload), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidImageError(f"Image payload is not valid base64: {e}") from e
    else:
        raise InvalidImageError(f"Unsupported image input type: {type(image).__name__}")

    if not data:
        raise InvalidImageError("Image payload is empty")
    return data


def encoded_length(raw_size: int) -> int:
    """Length of the base64 encoding of ``raw_size`` bytes."""
    return 4 * math.ceil(raw_size / 3)


def estimate_tokens(base64_chars: int, prompt_chars: int = 0) -> int:
    """Rough input-token estimate: four characters per token."""
    return math.ceil(base64_chars / 4) + math.ceil(prompt_chars / 4)


@dataclass
class InputAssessment:
    base64_chars: int
    estimated_tokens: int


def assess_input(
    image_bytes: bytes,
    max_image_chars: int,
    max_estimated_tokens: int,
    prompt_chars: int = 0,
) -> Outcome:
    """
    Check an image against the size and estimated-cost budget.

    Returns an ``InputAssessment`` outcome, or an INPUT_REJECTED failure
    naming the exceeded limit.
    """
    from ..core.outcome import ErrorKind, Outcome

    chars = encoded_length(len(image_bytes))
    tokens = estimate_tokens(chars, prompt_chars)
    if chars > max_image_chars:
        return Outcome.failure(
            ErrorKind.INPUT_REJECTED,
            f"image too large ({chars} encoded chars, limit {max_image_chars})",
        )
    if tokens > max_estimated_tokens:
        return Outcome.failure(
            ErrorKind.INPUT_REJECTED,
            f"estimated cost over budget ({tokens} tokens, limit {max_estimated_tokens})",
        )
    return Outcome.success(InputAssessment(base64_chars=chars, estimated_tokens=tokens))


def image_digest(image_bytes: bytes) -> str:
    """Stable content hash used for result caching."""
    return hashlib.sha256(image_bytes).hexdigest()


def open_image(image_bytes: bytes) -> Image.Image:
    """Open image bytes with EXIF orientation applied."""
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except Exception as e:
        raise InvalidImageError(f"Cannot decode image: {e}") from e

    try:
        image = ImageOps.exif_transpose(image)
    except Exception as e:
        logger.warning(f"EXIF transpose failed (non-fatal): {e}")
    return image


def encode_jpeg(image: Image.Image, quality: int = 90) -> bytes:
    if image.mode not in ('RGB', 'L'):
        image = image.convert('RGB')
    buffer = BytesIO()
    image.save(buffer, format='JPEG', quality=quality)
    return buffer.getvalue()


def prepare_for_model(image_bytes: bytes, max_dimension: int = 1024, quality: int = 85) -> str:
    """
    Encode an image for a vision model request: EXIF-corrected, longest side
    bounded by ``max_dimension``, JPEG, base64.
    """
    image = open_image(image_bytes)
    w, h = image.size
    if max(w, h) > max_dimension:
        scale = max_dimension / max(w, h)
        new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
        image = image.resize(new_size, Image.LANCZOS)
        logger.debug(f"Resized {w}x{h} -> {new_size[0]}x{new_size[1]} for model input")
    return base64.b64encode(encode_jpeg(image, quality)).decode('ascii')
