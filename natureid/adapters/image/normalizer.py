"""
Image normalization for photos headed to the identification service.

Producer side (scripts, camera capture): shrink_image() decodes a data URI,
scales it so the longer side is at most MAX_DIMENSION px, and re-encodes it
as JPEG. It is best-effort: anything that goes wrong after validation hands
back the original payload.

Receiving side (POST /identify): prepare_for_upload() only checks that there
is a non-empty string. Odd prefixes are passed through untouched; the
identification client repairs them.
"""
import base64
import math
import mimetypes
from pathlib import Path

import cv2
import numpy as np

from natureid.orchestrator.errors import InvalidImageError

MAX_DIMENSION = 1024
JPEG_QUALITY = 0.85

DATA_IMAGE_PREFIX = "data:image/"


def validate_data_uri(data) -> str:
    if not isinstance(data, str) or not data:
        raise InvalidImageError("Invalid image data")
    if not data.startswith(DATA_IMAGE_PREFIX):
        raise InvalidImageError("Invalid image data")
    return data


def looks_like_image_data_uri(data: str) -> bool:
    return data.startswith(DATA_IMAGE_PREFIX) and len(data.split(",")) == 2


def describe_payload(data) -> str:
    """Short log-safe description; never the whole payload."""
    if not isinstance(data, str):
        return type(data).__name__
    return f"{data[:50]}... (length: {len(data)})"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def target_size(width: int, height: int, max_dim: int = MAX_DIMENSION) -> tuple[int, int]:
    """(width, height) after fitting the longer side into max_dim; unchanged when it already fits."""
    if width <= max_dim and height <= max_dim:
        return width, height
    if width > height:
        return max_dim, max(1, _round_half_up(height * max_dim / width))
    return max(1, _round_half_up(width * max_dim / height)), max_dim


def bytes_to_data_uri(raw: bytes, media_type: str = "image/jpeg") -> str:
    b64 = base64.standard_b64encode(raw).decode("utf-8")
    return f"data:{media_type};base64,{b64}"


def file_to_data_uri(path) -> str:
    path = Path(path)
    media_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    if not media_type.startswith("image/"):
        raise InvalidImageError(f"{path.name} is not an image file")
    return bytes_to_data_uri(path.read_bytes(), media_type)


def data_uri_to_bgr(data_uri: str):
    """Decode an image data URI to a BGR array, or None if it cannot be decoded."""
    b64 = data_uri.split(",", 1)[1] if "," in data_uri else data_uri
    raw = base64.b64decode(b64)
    arr = np.frombuffer(raw, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def shrink_image(data_uri: str, max_dim: int = MAX_DIMENSION, quality: float = JPEG_QUALITY) -> str:
    validate_data_uri(data_uri)
    try:
        img = data_uri_to_bgr(data_uri)
        if img is None:
            return data_uri
        h, w = img.shape[:2]
        nw, nh = target_size(w, h, max_dim)
        if (nw, nh) != (w, h):
            img = cv2.resize(img, (nw, nh), interpolation=cv2.INTER_AREA)
        ok, buf = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(round(quality * 100))])
        if not ok:
            return data_uri
        return bytes_to_data_uri(bytes(buf), "image/jpeg")
    except Exception:
        return data_uri


def prepare_for_upload(data) -> str:
    if not isinstance(data, str) or not data:
        raise InvalidImageError("No image data provided")
    return data
