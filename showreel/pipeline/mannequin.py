"""
Step 2: Mannequin photo.

Sources (MANNEQUIN_SOURCE):
  - dalle:   DALL-E 3 render, re-hosted in our storage since OpenAI URLs expire
  - catalog: curated photo from the mannequin catalogue, no API cost
"""

import os
import time
import asyncio
import logging

from .. import openai_client, presets
from .models import Project
from .simulation import simulate_delay
from .storage import download_bytes, upload_project_asset

logger = logging.getLogger(__name__)

MANNEQUIN_SOURCES = ("dalle", "catalog")


def mannequin_source() -> str:
    source = os.getenv("MANNEQUIN_SOURCE", "dalle").lower()
    if source not in MANNEQUIN_SOURCES:
        raise ValueError(f"Unknown MANNEQUIN_SOURCE '{source}', expected one of {MANNEQUIN_SOURCES}")
    return source


def _task_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


async def generate_mannequin(project: Project, real: bool, gender: str = "neutral") -> tuple[str, str]:
    """
    Returns (mannequin_image_url, mannequin_task_id).
    """
    if not real:
        await simulate_delay("mannequin")
        logger.info(f"[Project {project.id}] [MANNEQUIN] Simulated mannequin for {project.product_type}")
        return presets.get_placeholder_image(project.product_type), _task_id("mannequin-task")

    if mannequin_source() == "catalog":
        photo = presets.get_mannequin_photo(project.product_type, gender)
        return photo["url"], f"catalog-{photo['id']}"

    dalle_url = await asyncio.to_thread(openai_client.generate_mannequin_image, project.product_type, gender)
    image_bytes = await download_bytes(dalle_url)
    url = await upload_project_asset(project.id, "mannequin", "mannequin.png", image_bytes, "image/png")
    logger.info(f"[Project {project.id}] [MANNEQUIN] DALL-E mannequin stored: {url}")
    return url, _task_id("dalle")
