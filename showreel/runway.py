"""
Runway Gen-2 integration for image-to-video.

  POST /v1/generationJob         → { id }
  GET  /v1/generationJob/{id}    → { status: PENDING|PROCESSING|COMPLETED|FAILED, output: { video_url } }

Requests retry 429 / 5xx with exponential backoff.
"""
import os
import time
import base64
import random
import logging
from typing import Optional

import requests

from . import metrics

logger = logging.getLogger(__name__)

RUNWAY_API_KEY = os.environ.get("RUNWAY_API_KEY", "")
RUNWAY_API_BASE = "https://api.runwayml.com/v1"
RUNWAY_GENERATION_URL = f"{RUNWAY_API_BASE}/generationJob"

# ── Retry configuration ──────────────────────────────────────────────────────
MAX_RETRIES = 5
BASE_DELAY = 2.0       # seconds, doubles each retry: 2, 4, 8, 16, 32
JITTER_MAX = 1.0
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
REQUEST_TIMEOUT = 60

# ── Generation parameters ────────────────────────────────────────────────────
NUM_FRAMES = 120       # 5 seconds at 24 fps
FPS = 24
GUIDANCE_SCALE = 12

VIDEO_PROMPTS = {
    "t-shirt": "Professional fashion advertisement featuring the product with elegant movement, clean studio background, premium quality, smooth camera motion",
    "hoodie": "Professional fashion advertisement featuring the product with elegant movement, clean studio background, premium quality, smooth camera motion",
    "tote bag": "Lifestyle product advertisement showing the bag being used, premium quality, elegant movement, clean background, smooth camera motion",
    "mug": "Premium lifestyle advertisement featuring the product in use, steam rising, warm lighting, elegant movements, smooth camera motion",
    "phone case": "Tech product advertisement showing the phone case from multiple angles, elegant lighting, premium quality, smooth camera motion",
    "poster": "Home decor advertisement featuring the poster in an elegant interior, soft lighting, premium quality, smooth camera motion",
}
DEFAULT_VIDEO_PROMPT = (
    "Professional product advertisement featuring the item with elegant movement, "
    "clean studio background, premium quality, smooth camera motion"
)

PENDING_STATUSES = {"PENDING", "PROCESSING"}


def _request_with_backoff(method: str, url: str, **kwargs) -> requests.Response:
    """
    HTTP request with exponential backoff on retryable errors (429, 5xx).

    Uses: base_delay * 2^attempt + random jitter, honouring Retry-After.
    """
    if not RUNWAY_API_KEY:
        raise RuntimeError("Runway API key is not configured")

    headers = kwargs.pop("headers", {})
    headers.setdefault("Authorization", f"Bearer {RUNWAY_API_KEY}")
    kwargs.setdefault("timeout", REQUEST_TIMEOUT)

    for attempt in range(MAX_RETRIES + 1):
        try:
            response = requests.request(method, url, headers=headers, **kwargs)

            if response.status_code not in RETRYABLE_STATUS_CODES:
                response.raise_for_status()
                return response

            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                delay = int(retry_after)
            else:
                delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)

            if attempt >= MAX_RETRIES:
                response.raise_for_status()

            logger.warning(
                f"Runway {response.status_code} on attempt {attempt + 1}/{MAX_RETRIES + 1} "
                f"- retrying in {delay:.1f}s (url={url})"
            )
            time.sleep(delay)

        except requests.exceptions.HTTPError:
            raise
        except requests.exceptions.RequestException as e:
            if attempt >= MAX_RETRIES:
                raise
            delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)
            logger.warning(
                f"Runway request error on attempt {attempt + 1}/{MAX_RETRIES + 1}: {e} "
                f"- retrying in {delay:.1f}s"
            )
            time.sleep(delay)

    raise RuntimeError(f"Request to {url} failed after {MAX_RETRIES + 1} attempts")


def _describe_error(e: Exception) -> str:
    response = getattr(e, "response", None)
    if response is not None:
        try:
            return str(response.json())
        except ValueError:
            return response.text[:300] or str(e)
    return str(e)


def build_video_prompt(product_type: str) -> str:
    return VIDEO_PROMPTS.get(product_type.lower(), DEFAULT_VIDEO_PROMPT)


def generate_video(image_url: str, product_type: str, image_bytes: Optional[bytes] = None) -> str:
    """
    Start a Runway image-to-video job.

    The source image is sent inline as a base64 data URI. Pass `image_bytes`
    when the caller already holds the file; otherwise it is downloaded.

    Returns the generation id for polling.
    """
    logger.info(f"Requesting video generation for {product_type}")
    try:
        if image_bytes is None:
            image_resp = requests.get(image_url, timeout=REQUEST_TIMEOUT)
            image_resp.raise_for_status()
            image_bytes = image_resp.content

        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        payload = {
            "model": "runway/gen-2",
            "parameters": {
                "prompt": build_video_prompt(product_type),
                "image": f"data:image/jpeg;base64,{image_b64}",
                "mode": "video",
                "num_frames": NUM_FRAMES,
                "fps": FPS,
                "guidance_scale": GUIDANCE_SCALE,
            },
        }

        with metrics.step_timer("Runway video submit", "vendor.runway.submit"):
            response = _request_with_backoff(
                "POST", RUNWAY_GENERATION_URL,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        generation_id = response.json().get("id")
        if not generation_id:
            raise RuntimeError(f"no generation id in response: {response.text[:200]}")

        logger.info(f"Runway generation initiated: {generation_id}")
        return generation_id

    except Exception as e:
        message = f"Runway API error: {_describe_error(e)}"
        logger.error(message)
        raise RuntimeError(message)


def get_task_status(generation_id: str) -> dict:
    """
    Check a Runway job.

    Returns {id, status, video_url, error}; video_url is set only when
    COMPLETED and error only when FAILED.
    """
    try:
        response = _request_with_backoff("GET", f"{RUNWAY_GENERATION_URL}/{generation_id}")
        result = response.json()
    except Exception as e:
        message = f"Runway status check error: {_describe_error(e)}"
        logger.error(message)
        raise RuntimeError(message)

    status = result.get("status", "")
    logger.debug(f"Runway task {generation_id} status: {status}")

    return {
        "id": generation_id,
        "status": status,
        "video_url": (result.get("output") or {}).get("video_url") if status == "COMPLETED" else None,
        "error": (result.get("error") or "Task failed") if status == "FAILED" else None,
    }
