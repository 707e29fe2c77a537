"""
Step 3: Marketing copy (GPT, JSON mode).
"""

import asyncio
import logging

from .. import openai_client, presets
from .models import Project, Script
from .simulation import simulate_delay

logger = logging.getLogger(__name__)


async def generate_script(project: Project, real: bool) -> Script:
    if not real:
        await simulate_delay("script")
        logger.info(f"[Project {project.id}] [SCRIPT] Using placeholder script")
        return Script(**presets.get_placeholder_script(project.product_name, project.product_type))

    script = await asyncio.to_thread(
        openai_client.generate_marketing_script,
        project.product_name,
        project.product_type,
        project.product_description,
    )
    logger.info(f"[Project {project.id}] [SCRIPT] Headline: {script.headline}")
    return script
