"""
Image loading utilities.

Accepts both URL and base64 inputs; returns an RGB PIL image ready for
feature print extraction. Enforces size limits and safe URL validation.
"""

from __future__ import annotations

import io
import logging
from typing import NamedTuple
from urllib.parse import urlparse

import httpx
from PIL import Image

from featureprint.core.config import Settings, get_settings
from featureprint.core.errors import ImageDecodeError, ImageFetchError, ImageTooLargeError
from featureprint.schemas.common import ImageInput

logger = logging.getLogger(__name__)

# Allowlist of schemes that the service will fetch from.
_ALLOWED_SCHEMES = {"http", "https"}


class LoadedImage(NamedTuple):
    pil: Image.Image            # decoded RGB raster
    width: int
    height: int


async def load_image(image_input: ImageInput) -> LoadedImage:
    """
    Fetch or decode the image described by `image_input`.
    Raises FeaturePrintError subclasses on failure.
    """
    settings = get_settings()

    if image_input.url is not None:
        raw_bytes = await _fetch_url(str(image_input.url), settings)
    else:
        # base64 — already decoded by Pydantic Base64Bytes
        raw_bytes = bytes(image_input.data)  # type: ignore[arg-type]

    return decode_bytes(raw_bytes, settings)


async def _fetch_url(url: str, settings: Settings) -> bytes:
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ImageFetchError(f"Unsupported URL scheme '{parsed.scheme}'. Only http/https allowed.")

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=settings.max_image_fetch_timeout_seconds,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException:
        raise ImageFetchError(f"Request to '{url}' timed out after "
                              f"{settings.max_image_fetch_timeout_seconds}s.")
    except httpx.HTTPStatusError as exc:
        raise ImageFetchError(f"HTTP {exc.response.status_code} fetching '{url}'.")
    except httpx.RequestError as exc:
        raise ImageFetchError(f"Network error fetching '{url}': {exc}")

    raw = response.content
    if len(raw) > settings.max_image_size_bytes:
        raise ImageTooLargeError(len(raw), settings.max_image_size_bytes)

    return raw


def decode_bytes(raw_bytes: bytes, settings: Settings | None = None) -> LoadedImage:
    settings = settings or get_settings()
    if len(raw_bytes) > settings.max_image_size_bytes:
        raise ImageTooLargeError(len(raw_bytes), settings.max_image_size_bytes)

    try:
        pil_image = Image.open(io.BytesIO(raw_bytes)).convert("RGB")
    except Exception as exc:
        raise ImageDecodeError(f"Could not decode image bytes: {exc}")

    width, height = pil_image.size
    return LoadedImage(pil=pil_image, width=width, height=height)
