"""
Replicate integration: FLUX / SDXL model photos and IDM-VTON virtual try-on.

Replicate's prediction protocol:
  POST /v1/predictions        → { id, status: starting, ... }
  GET  /v1/predictions/{id}   → { status: starting|processing|succeeded|failed, output }

Both operations submit, then poll with a stepped backoff until the
prediction settles.
"""

import os
import time
import random
import logging
from typing import Optional

import httpx

from . import metrics
from .polling import Backoff, poll_until

logger = logging.getLogger(__name__)

REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN", "")
REPLICATE_API_BASE = "https://api.replicate.com/v1"
REQUEST_TIMEOUT = 60

PENDING_STATUSES = {"starting", "processing"}

# ── Model versions ───────────────────────────────────────────────────────────

MODEL_VERSIONS = {
    "flux-ultra": "c6e5086a542c99e7e523a83d3017654e8618fe64ef427c772a1def05bb599f0c",  # FLUX 1.1 Pro Ultra
    "flux-pro": "1e237aa703bf3a8ab480d5b595563128807af649c50afc0b4f22a9174e90d1d6",
    "juggernaut": "6a52feace43ce1f6bbc2cdabfc68423cb2319d7444a1a1dae529c5e88b976382",  # SDXL
}
IDM_VTON_VERSION = "c871bb9b046607b680449ecbae55fd8c6d945e0a1948644bf2361b3d021d3ff4"

MODEL_PRIORITY = ["flux-ultra", "flux-pro", "juggernaut"]

NEGATIVE_PROMPT = (
    "nude, naked, nsfw, revealing, underwear, lingerie, swimsuit, bikini, bare skin, exposed, "
    "inappropriate, cartoon, illustration, CGI, 3d render, painting, sketch, bad anatomy, "
    "bad hands, deformed"
)

# ── Polling schedules ────────────────────────────────────────────────────────

MAX_POLL_ATTEMPTS = 60
MODEL_GEN_BACKOFF = Backoff(steps=((3, 1.0),), final=2.0)
TRYON_BACKOFF = Backoff(steps=((5, 1.0), (15, 2.0)), final=3.0)


class ReplicateError(RuntimeError):
    pass


def _headers() -> dict:
    if not REPLICATE_API_TOKEN:
        raise ReplicateError("Replicate API token not configured")
    return {
        "Authorization": f"Token {REPLICATE_API_TOKEN}",
        "Content-Type": "application/json",
    }


def _random_seed() -> int:
    return random.randint(0, 999999)


def extract_output_url(output) -> str:
    """Prediction output is a URL string or a list whose first item is one."""
    if not output:
        raise ReplicateError("No output in result")
    if isinstance(output, str):
        url = output
    elif isinstance(output, list):
        url = output[0]
    else:
        raise ReplicateError("Unexpected output format")

    if not isinstance(url, str) or len(url) < 10 or not url.startswith("http"):
        raise ReplicateError(f"Invalid image URL: {url}")
    return url


async def run_prediction(
    version: str,
    input_data: dict,
    *,
    max_attempts: int = MAX_POLL_ATTEMPTS,
    backoff: Backoff = MODEL_GEN_BACKOFF,
    label: str = "Replicate prediction",
    timeout_message: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """
    Create a prediction and poll it to completion.

    Returns {image_url, prediction_id, attempts, processing_time}.
    Raises ReplicateError on HTTP errors, failed predictions, timeouts and
    malformed output.
    """
    headers = _headers()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    start = time.monotonic()
    attempts = 0

    try:
        response = await client.post(
            f"{REPLICATE_API_BASE}/predictions",
            headers=headers,
            json={"version": version, "input": input_data},
        )
        if response.status_code >= 400:
            raise ReplicateError(f"Replicate API error: {response.status_code} - {response.text}")
        prediction = response.json()
        prediction_id = prediction.get("id")
        logger.info(f"{label} created: id={prediction_id} status={prediction.get('status')}")

        async def fetch() -> dict:
            nonlocal attempts
            attempts += 1
            poll = await client.get(f"{REPLICATE_API_BASE}/predictions/{prediction_id}", headers=headers)
            if poll.status_code >= 400:
                raise ReplicateError(f"Polling error: {poll.status_code} - {poll.text}")
            return poll.json()

        result = await poll_until(
            fetch,
            lambda r: r.get("status") in PENDING_STATUSES,
            max_attempts=max_attempts,
            backoff=backoff,
            label=label,
            initial=prediction,
            timeout_message=timeout_message,
        )
    finally:
        if owns_client:
            await client.aclose()

    if result.get("status") == "failed":
        raise ReplicateError(f"Generation failed: {result.get('error') or 'Unknown error'}")

    image_url = extract_output_url(result.get("output"))
    processing_time = round(time.monotonic() - start)
    logger.info(f"{label} completed in {processing_time}s after {attempts} poll(s)")

    return {
        "image_url": image_url,
        "prediction_id": result.get("id", prediction_id),
        "attempts": attempts,
        "processing_time": processing_time,
    }


# ── Model photo generation ───────────────────────────────────────────────────

def build_model_input(model: str, prompt: str, aspect_ratio: str = "3:4") -> dict:
    """Model-specific input; unknown models get the SDXL parameter set."""
    base = {"prompt": prompt, "seed": _random_seed()}

    if model == "flux-ultra":
        return {
            **base,
            "raw": True,
            "aspect_ratio": aspect_ratio or "3:4",
            "safety_tolerance": 3,
            "guidance": 3.5,
            "steps": 28,
        }

    if model == "flux-pro":
        return {
            **base,
            "aspect_ratio": aspect_ratio or "3:4",
            "guidance": 3,
            "steps": 25,
            "output_format": "jpg",
        }

    portrait = aspect_ratio == "3:4"
    return {
        **base,
        "negative_prompt": NEGATIVE_PROMPT,
        "width": 768 if portrait else 1024,
        "height": 1024 if portrait else 768,
        "num_outputs": 1,
        "num_inference_steps": 30,
        "guidance_scale": 7,
        "scheduler": "K_EULER_ANCESTRAL",
    }


async def generate_model_image(
    prompt: str,
    aspect_ratio: str = "3:4",
    model: str = "flux-ultra",
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Generate a fashion-model photo; returns the image URL."""
    version = MODEL_VERSIONS.get(model, MODEL_VERSIONS["flux-ultra"])
    logger.info(f"Starting AI model generation with {model}")
    try:
        with metrics.step_timer(f"Replicate {model}", f"vendor.replicate.{model}"):
            result = await run_prediction(
                version,
                build_model_input(model, prompt, aspect_ratio),
                backoff=MODEL_GEN_BACKOFF,
                label=f"Model generation ({model})",
                timeout_message="Model generation timeout after 2 minutes - please try again",
                client=client,
            )
    except Exception as e:
        logger.error(f"AI model generation failed: {e}")
        raise ReplicateError(f"AI model generation failed: {e}")
    return result["image_url"]


# ── Virtual try-on ───────────────────────────────────────────────────────────

def build_tryon_input(clothing_image_url: str, model_image_url: str, clothing_type: str) -> dict:
    return {
        "human_img": model_image_url,
        "garm_img": clothing_image_url,
        "garment_des": f"A high-quality {clothing_type} that fits perfectly on the model",
        "is_checked": True,
        "is_checked_crop": False,
        "denoise_steps": 20,
        "guidance_scale": 1.5,
        "seed": _random_seed(),
    }


async def virtual_tryon(
    clothing_image_url: str,
    model_image_url: str,
    clothing_type: str,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Dress the model photo in the garment via IDM-VTON; returns the image URL."""
    if not clothing_image_url or not model_image_url or not clothing_type:
        raise ValueError("Missing required parameters: clothing_image_url, model_image_url, clothing_type")

    logger.info(f"Starting virtual try-on for {clothing_type}")
    try:
        with metrics.step_timer("Replicate IDM-VTON", "vendor.replicate.vton"):
            result = await run_prediction(
                IDM_VTON_VERSION,
                build_tryon_input(clothing_image_url, model_image_url, clothing_type),
                backoff=TRYON_BACKOFF,
                label="Virtual try-on",
                timeout_message=(
                    "Virtual try-on timeout after 2 minutes - please try again "
                    "or check if images are valid"
                ),
                client=client,
            )
    except Exception as e:
        logger.error(f"Replicate virtual try-on failed: {e}")
        raise ReplicateError(f"Virtual try-on generation failed: {e}")
    return result["image_url"]
