"""
Text overlay for rendered videos (FFmpeg drawtext).

Layout:
  headline  top centre, 36px
  bullets   left third, from mid-height down in 40px steps, 24px
  CTA       bottom centre, 32px

All text is white on a half-transparent black box. Burning the overlay in is
opt-in (VIDEO_TEXT_OVERLAY=true) and needs ffmpeg on PATH; otherwise the raw
vendor URL is kept.
"""

import os
import shutil
import asyncio
import logging
import tempfile
import subprocess
from pathlib import Path

import httpx

from .. import metrics
from .models import Script
from .storage import download_bytes, upload_project_asset

logger = logging.getLogger(__name__)

FFMPEG_TIMEOUT = 300

HEADLINE_STYLE = "fontcolor=white:fontsize=36:box=1:boxcolor=black@0.5:boxborderw=5"
BULLET_STYLE = "fontcolor=white:fontsize=24:box=1:boxcolor=black@0.5:boxborderw=3"
CTA_STYLE = "fontcolor=white:fontsize=32:box=1:boxcolor=black@0.5:boxborderw=4"
BULLET_SPACING = 40


def overlay_enabled() -> bool:
    return os.getenv("VIDEO_TEXT_OVERLAY", "false").lower() == "true"


def escape_drawtext(text: str) -> str:
    """Make text safe inside a single-quoted drawtext value."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "’")
        .replace(":", "\\:")
        .replace("%", "\\%")
        .replace("\n", " ")
    )


def build_drawtext_filter(script: Script) -> str:
    """Comma-joined drawtext chain for `-vf`."""
    filters = [
        f"drawtext=text='{escape_drawtext(script.headline)}':{HEADLINE_STYLE}:x=(w-text_w)/2:y=h/8"
    ]
    for i, bullet in enumerate(script.bullets):
        filters.append(
            f"drawtext=text='{escape_drawtext('• ' + bullet)}':{BULLET_STYLE}"
            f":x=w/8:y=(h/2)+{i * BULLET_SPACING}"
        )
    filters.append(
        f"drawtext=text='{escape_drawtext(script.cta)}':{CTA_STYLE}:x=(w-text_w)/2:y=h-h/8"
    )
    return ",".join(filters)


def _run_ffmpeg(input_path: Path, output_path: Path, vf: str):
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vf", vf,
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-c:a", "copy",
        str(output_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8", errors="replace", timeout=FFMPEG_TIMEOUT)
    if result.returncode != 0:
        raise RuntimeError(f"ffmpeg exited with {result.returncode}: {result.stderr[-500:]}")


async def apply_text_overlay(video_url: str, script: Script, project_id: str) -> str:
    """
    Burn the script into the video and upload it as the project's `video`
    asset. Returns the URL to store on the project.
    """
    if not overlay_enabled():
        return video_url
    if shutil.which("ffmpeg") is None:
        logger.warning(f"[Project {project_id}] [OVERLAY] ffmpeg not found, keeping raw video")
        return video_url

    try:
        with metrics.step_timer("Text overlay", "step.overlay"):
            url = await _burn_and_upload(video_url, build_drawtext_filter(script), project_id)
    except (httpx.HTTPError, OSError, RuntimeError, subprocess.TimeoutExpired) as e:
        logger.error(f"[Project {project_id}] [OVERLAY] Text overlay failed, keeping raw video: {e}")
        metrics.record_error("overlay", str(e), project_id)
        return video_url

    logger.info(f"[Project {project_id}] [OVERLAY] Overlay video stored: {url}")
    return url


async def _burn_and_upload(video_url: str, vf: str, project_id: str) -> str:
    video_bytes = await download_bytes(video_url)

    with tempfile.TemporaryDirectory(prefix="showreel_overlay_") as tmp:
        input_path = Path(tmp) / "input.mp4"
        output_path = Path(tmp) / "output.mp4"
        input_path.write_bytes(video_bytes)
        await asyncio.to_thread(_run_ffmpeg, input_path, output_path, vf)
        final_bytes = output_path.read_bytes()

    return await upload_project_asset(project_id, "video", "video.mp4", final_bytes, "video/mp4")
