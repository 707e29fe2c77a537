"""
Step 1: Background removal (ClipDrop).

Real mode cuts the product out and stores the PNG as the project's
`transparent` asset. Simulation hands back the original upload.
"""

import logging

from .. import clipdrop
from .models import Project
from .simulation import simulate_delay
from .storage import upload_project_asset

logger = logging.getLogger(__name__)


async def remove_background(project: Project, real: bool) -> str:
    """
    Returns the public URL of the transparent product image.
    """
    if not real:
        await simulate_delay("background")
        logger.info(f"[Project {project.id}] [BACKGROUND] Simulated background removal")
        return project.original_image_url

    png_bytes = await clipdrop.remove_image_background(project.original_image_url)
    url = await upload_project_asset(project.id, "transparent", "transparent.png", png_bytes, "image/png")
    logger.info(f"[Project {project.id}] [BACKGROUND] Transparent image stored: {url}")
    return url
