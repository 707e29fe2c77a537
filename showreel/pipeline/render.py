"""
Step 4: Video render (Runway Gen-2).

Submits the composite frame, then polls Runway every 15 seconds for up to
30 attempts.
"""

import time
import asyncio
import logging

from .. import presets, runway
from ..polling import PollTimeout, fixed, poll_until
from .models import Project
from .simulation import simulate_delay
from .storage import download_bytes

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

POLL_INTERVAL = 15       # seconds
MAX_POLL_ATTEMPTS = 30   # 7.5 minutes max


async def start_render(project: Project, real: bool) -> str:
    """Submit the render job; returns the generation id."""
    if not real:
        return f"runway-task-{int(time.time() * 1000)}"

    image_bytes = await download_bytes(project.composite_image_url)
    generation_id = await asyncio.to_thread(
        runway.generate_video, project.composite_image_url, project.product_type, image_bytes
    )
    logger.info(f"[Project {project.id}] [RENDER] Runway job submitted: {generation_id}")
    return generation_id


async def wait_for_video(project: Project, generation_id: str, real: bool) -> str:
    """
    Poll the render job to completion and return the raw video URL.

    Raises RuntimeError on FAILED, on a COMPLETED job without a URL and
    when the poll budget runs out.
    """
    if not real:
        await simulate_delay("video")
        logger.info(f"[Project {project.id}] [RENDER] Simulated render complete")
        return presets.get_placeholder_video(project.product_type)

    async def fetch() -> dict:
        result = await asyncio.to_thread(runway.get_task_status, generation_id)
        logger.info(f"[Project {project.id}] [RENDER] Runway status: {result['status']}")
        return result

    try:
        result = await poll_until(
            fetch,
            lambda r: r["status"] in runway.PENDING_STATUSES,
            max_attempts=MAX_POLL_ATTEMPTS,
            backoff=fixed(POLL_INTERVAL),
            label=f"Runway job {generation_id}",
        )
    except PollTimeout:
        raise RuntimeError("Video generation timed out")

    if result["status"] == "FAILED":
        raise RuntimeError(f"Video generation failed: {result.get('error') or 'Task failed'}")
    if result["status"] != "COMPLETED":
        raise RuntimeError(f"Unexpected Runway status: {result['status']}")
    if not result.get("video_url"):
        raise RuntimeError("Video generation completed but no video URL was returned")

    return result["video_url"]
