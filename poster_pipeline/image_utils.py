# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional, Union

import requests
from PIL import Image

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds
AVATAR_MAX_SIZE = 500
AVATAR_JPEG_QUALITY = 80

ImageSource = Union[str, bytes, Image.Image]


@dataclass
class ImageLoadResult:
    """Outcome of a single bounded image load."""

    source: str
    image: Optional[Image.Image] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


@dataclass(frozen=True)
class CropArea:
    """Pixel crop rectangle as produced by the photo cropper."""

    x: int
    y: int
    width: int
    height: int


def describe_source(source: ImageSource) -> str:
    if isinstance(source, Image.Image):
        return f"<image {source.width}x{source.height}>"
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    if source.startswith("data:"):
        return source[:32] + "..."
    return source


def decode_data_uri(uri: str) -> bytes:
    """
    Decodes a base64 `data:` URI into raw bytes.

    Raises:
        ValueError: If the URI is not a base64 data URI.
    """
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Only base64 data URIs are supported")
    return base64.b64decode(payload, validate=True)


def to_data_uri(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _fetch_bytes(source: str, timeout: float, allow_local: bool) -> bytes:
    if source.startswith("data:"):
        return decode_data_uri(source)
    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=timeout)
        response.raise_for_status()
        return response.content
    if not allow_local:
        raise ValueError("Local file paths are not accepted for this image")
    with open(source, "rb") as f:
        return f.read()


def load_image(
    source: ImageSource,
    timeout: float = REQUEST_TIMEOUT,
    allow_local: bool = False,
) -> ImageLoadResult:
    """
    Loads an image from a URL, data URI, raw bytes or PIL image.

    Local file paths are only read when `allow_local` is set, which is
    reserved for server-side assets such as catalog backgrounds and the
    admin footer. See `load_trusted_image`.

    Remote fetches are bounded by `timeout`. Failures never raise; they are
    reported through the returned result so callers can decide how to degrade.

    Args:
        source: Where to read the image from.
        timeout (float): Seconds allowed for the network connect and read.
        allow_local (bool): Whether plain strings may name files on disk.

    Returns:
        ImageLoadResult: The decoded RGBA image, or the failure reason.
    """
    label = describe_source(source)
    try:
        if isinstance(source, Image.Image):
            return ImageLoadResult(source=label, image=source.convert("RGBA"))
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        else:
            data = _fetch_bytes(source, timeout, allow_local)
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return ImageLoadResult(source=label, image=img.convert("RGBA"))
    except (requests.RequestException, OSError, ValueError, binascii.Error) as e:
        logger.warning("Could not load image from %s: %s", label, e)
        return ImageLoadResult(source=label, error=str(e) or e.__class__.__name__)


def load_trusted_image(source: ImageSource, timeout: float = REQUEST_TIMEOUT) -> ImageLoadResult:
    """Like `load_image`, but also reads server-side asset paths."""
    return load_image(source, timeout=timeout, allow_local=True)


def crop_square(image: Image.Image, area: CropArea) -> Image.Image:
    """Crops `area` out of `image`, clamped to the image bounds."""
    left = max(0, area.x)
    top = max(0, area.y)
    right = min(image.width, area.x + area.width)
    bottom = min(image.height, area.y + area.height)
    if right <= left or bottom <= top:
        raise ValueError(f"Crop area {area} lies outside the image")
    return image.crop((left, top, right, bottom))


def compress_photo(
    image: Image.Image,
    max_size: int = AVATAR_MAX_SIZE,
    quality: int = AVATAR_JPEG_QUALITY,
) -> bytes:
    """
    Downscales so the longer side is at most `max_size` and encodes to JPEG.
    Smaller images keep their dimensions.
    """
    width, height = image.size
    if width > height and width > max_size:
        height = round(height * max_size / width)
        width = max_size
    elif height >= width and height > max_size:
        width = round(width * max_size / height)
        height = max_size

    resized = image.convert("RGB")
    if (width, height) != image.size:
        resized = resized.resize((width, height), Image.LANCZOS)

    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
