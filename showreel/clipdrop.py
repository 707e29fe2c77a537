"""
ClipDrop API integration for background removal.

Returns the cut-out product as PNG bytes; the pipeline uploads it as the
project's `transparent` asset.
"""

import os
import logging
from typing import Optional

import httpx

from . import metrics
from .pipeline.storage import download_bytes

logger = logging.getLogger(__name__)

CLIPDROP_API_KEY = os.getenv("CLIPDROP_API_KEY", "")
CLIPDROP_API_URL = "https://clipdrop-api.co/remove-background/v1"
REQUEST_TIMEOUT = 60


async def remove_image_background(
    image_url: str,
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """
    Download `image_url`, send it to ClipDrop and return the transparent PNG.
    """
    if not CLIPDROP_API_KEY:
        raise RuntimeError("ClipDrop API key is not configured")

    try:
        image_bytes = await download_bytes(image_url)

        headers = {
            "x-api-key": CLIPDROP_API_KEY,
            "Accept": "image/png",
        }
        files = {"image_file": ("image.jpg", image_bytes, "image/jpeg")}

        with metrics.step_timer("ClipDrop background removal", "vendor.clipdrop"):
            if client is not None:
                response = await client.post(CLIPDROP_API_URL, headers=headers, files=files)
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as http:
                    response = await http.post(CLIPDROP_API_URL, headers=headers, files=files)

        if response.status_code != 200:
            raise RuntimeError(f"{response.status_code} {response.text[:200]}")

        remaining = response.headers.get("x-remaining-credits")
        if remaining is not None:
            logger.info(f"ClipDrop credits remaining: {remaining}")

        return response.content

    except Exception as e:
        logger.error(f"Error removing background: {e}")
        raise RuntimeError(f"ClipDrop API error: {e}")
