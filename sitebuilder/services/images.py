"""Fetching and resizing of site logo / favicon images."""

import io
import logging
from typing import Optional

import httpx
from PIL import Image, ImageOps

from sitebuilder.config import settings
from sitebuilder.core.security import validate_url_for_fetch

logger = logging.getLogger("sitebuilder.images")

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class ImageFetchError(Exception):
    pass


async def fetch_image(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> bytes:
    ok, error = validate_url_for_fetch(url)
    if not ok:
        raise ImageFetchError(f"Refusing to fetch {url}: {error}")

    async with httpx.AsyncClient(timeout=20.0, follow_redirects=False, transport=transport) as client:
        response = await client.get(url)
    if not response.is_success:
        raise ImageFetchError(f"Failed to fetch image: {response.status_code} {response.reason_phrase}")
    if len(response.content) > MAX_IMAGE_BYTES:
        raise ImageFetchError("Image too large")
    return response.content


def resize_favicon(data: bytes, size: Optional[int] = None) -> bytes:
    """Center-crop and scale to a square PNG."""
    size = size or settings.FAVICON_SIZE
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGBA")
        fitted = ImageOps.fit(img, (size, size), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        fitted.save(out, format="PNG")
    return out.getvalue()
