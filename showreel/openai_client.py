"""
OpenAI integration: DALL-E 3 mannequin photos and GPT marketing copy.

Both calls are synchronous (OpenAI SDK); the pipeline runs them in a worker
thread.
"""

import os
import json
import logging
from typing import Optional

from openai import OpenAI

from . import metrics
from .pipeline.models import Script

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

IMAGE_MODEL = "dall-e-3"
IMAGE_SIZE = "1024x1024"
SCRIPT_MODEL = "gpt-4o-mini"

SCRIPT_SYSTEM_PROMPT = (
    "You are a professional marketing copywriter specializing in short, "
    "impactful product video scripts."
)

# Product type → mannequin pose for the DALL-E prompt
MANNEQUIN_POSES = {
    "t-shirt": "standing straight, arms slightly away from body, front view",
    "hoodie": "standing straight, arms slightly away from body, front view",
    "tote bag": "standing straight, holding a tote bag over the shoulder, front view",
    "mug": "sitting at a desk, holding a mug, front view",
    "phone case": "holding a phone with the case visible, front view",
    "poster": "standing next to a wall with a poster, front view",
}
DEFAULT_POSE = "neutral pose, front view"

_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    """Lazy-init OpenAI client."""
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            raise RuntimeError("OpenAI API key is not configured")
        _client = OpenAI(api_key=OPENAI_API_KEY, timeout=60.0)
    return _client


# ── Mannequin ────────────────────────────────────────────────────────────────

def build_mannequin_prompt(product_type: str, gender: str = "neutral") -> str:
    pose = MANNEQUIN_POSES.get(product_type.lower(), DEFAULT_POSE)
    mannequin = "gender-neutral" if gender == "neutral" else gender
    return (
        f"A studio photograph of a {mannequin} mannequin, {pose}, "
        f"wearing a plain white {product_type}. "
        "High-quality professional lighting with soft shadows, clean minimal white background, "
        "photorealistic, detailed, 4K."
    )


def generate_mannequin_image(product_type: str, gender: str = "neutral") -> str:
    """
    Generate a mannequin photo with DALL-E 3.

    Returns the (temporary) OpenAI image URL; callers re-host it.
    """
    prompt = build_mannequin_prompt(product_type, gender)
    try:
        with metrics.step_timer("DALL-E mannequin", "vendor.dalle"):
            response = _get_client().images.generate(
                model=IMAGE_MODEL,
                prompt=prompt,
                n=1,
                size=IMAGE_SIZE,
                quality="standard",
                response_format="url",
            )
        url = response.data[0].url if response.data else None
        if not url:
            raise RuntimeError("No image URL returned from DALL-E")
        return url
    except Exception as e:
        logger.error(f"Error generating mannequin image: {e}")
        raise RuntimeError(f"DALL-E API error: {e}")


# ── Marketing script ─────────────────────────────────────────────────────────

def build_script_prompt(product_name: str, product_type: str, product_description: Optional[str] = None) -> str:
    description = f"Product Description: {product_description}" if product_description else ""
    return f"""Create a short marketing script for a {product_type} called "{product_name}".
{description}

The script should include:
1. A catchy headline (max 30 characters)
2. Three bullet points highlighting key features or benefits (each max 40 characters)
3. A call-to-action (max 20 characters)
4. A color palette with 3 hex colors that would complement this product

Format the response as a JSON object with the following structure:
{{
  "headline": "Your catchy headline here",
  "bullets": ["First bullet point", "Second bullet point", "Third bullet point"],
  "cta": "Your call to action",
  "colorPalette": ["#HEXCODE1", "#HEXCODE2", "#HEXCODE3"]
}}"""


def parse_script(content: Optional[str]) -> Script:
    """
    Validate the model's JSON answer.

    Raises ValueError("Invalid script format: ...") when anything is off.
    """
    if not content:
        raise ValueError("Invalid script format: empty response")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid script format: {e}")
    if not isinstance(data, dict):
        raise ValueError("Invalid script format: expected a JSON object")

    headline = data.get("headline")
    bullets = data.get("bullets")
    cta = data.get("cta")
    palette = data.get("colorPalette", data.get("color_palette"))

    if not isinstance(headline, str) or not headline.strip():
        raise ValueError("Invalid script format: headline must be a string")
    if not isinstance(bullets, list) or len(bullets) != 3 or not all(isinstance(b, str) for b in bullets):
        raise ValueError("Invalid script format: bullets must be a list of 3 strings")
    if not isinstance(cta, str) or not cta.strip():
        raise ValueError("Invalid script format: cta must be a string")
    if not isinstance(palette, list) or len(palette) != 3 or not all(isinstance(c, str) for c in palette):
        raise ValueError("Invalid script format: colorPalette must be a list of 3 colors")

    return Script(headline=headline, bullets=bullets, cta=cta, color_palette=palette)


def generate_marketing_script(
    product_name: str,
    product_type: str,
    product_description: Optional[str] = None,
) -> Script:
    """Ask gpt-4o-mini for headline, 3 bullets, CTA and a 3-colour palette."""
    try:
        with metrics.step_timer("GPT marketing script", "vendor.gpt"):
            response = _get_client().chat.completions.create(
                model=SCRIPT_MODEL,
                messages=[
                    {"role": "system", "content": SCRIPT_SYSTEM_PROMPT},
                    {"role": "user", "content": build_script_prompt(product_name, product_type, product_description)},
                ],
                temperature=0.7,
                max_tokens=500,
                response_format={"type": "json_object"},
            )
        content = response.choices[0].message.content
        return parse_script(content)
    except Exception as e:
        logger.error(f"Error generating marketing script: {e}")
        raise RuntimeError(f"OpenAI API error: {e}")
