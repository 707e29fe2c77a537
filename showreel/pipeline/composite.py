"""
Step 3b: Product-on-mannequin composite.

Pastes the transparent product cut-out over the mannequin photo with PIL and
uploads the result as the project's `composite` asset. This is the frame the
video step animates.
"""

import logging
from io import BytesIO

from PIL import Image

from .models import Project
from .storage import download_bytes, upload_project_asset

logger = logging.getLogger(__name__)

# ── Layout constants ─────────────────────────────────────────────────────────

PRODUCT_WIDTH_RATIO = 0.45   # product width relative to the mannequin photo
PRODUCT_CENTER_Y = 0.45      # vertical centre of the product (chest height)
MAX_CANVAS_SIDE = 1536


def composite_images(mannequin_bytes: bytes, product_bytes: bytes) -> bytes:
    """
    Centre the product on the mannequin and return PNG bytes.

    Layout:
    ┌─────────────────┐
    │                 │
    │   ┌─────────┐   │
    │   │ product │   │  ← centred at PRODUCT_CENTER_Y
    │   └─────────┘   │
    │                 │
    └─────────────────┘
    """
    canvas = Image.open(BytesIO(mannequin_bytes)).convert("RGBA")
    if max(canvas.size) > MAX_CANVAS_SIDE:
        canvas.thumbnail((MAX_CANVAS_SIDE, MAX_CANVAS_SIDE), Image.Resampling.LANCZOS)

    product = Image.open(BytesIO(product_bytes)).convert("RGBA")

    # Fit product to target width while keeping its aspect ratio
    target_width = max(int(canvas.width * PRODUCT_WIDTH_RATIO), 1)
    ratio = product.width / product.height
    target_height = max(int(target_width / ratio), 1)
    if target_height > canvas.height:
        target_height = canvas.height
        target_width = max(int(target_height * ratio), 1)

    resized = product.resize((target_width, target_height), Image.Resampling.LANCZOS)

    x = (canvas.width - target_width) // 2
    y = int(canvas.height * PRODUCT_CENTER_Y - target_height / 2)
    y = min(max(y, 0), canvas.height - target_height)

    canvas.paste(resized, (x, y), resized)  # alpha channel as mask

    output = BytesIO()
    canvas.save(output, format="PNG")
    return output.getvalue()


async def create_composite(project: Project, real: bool) -> str:
    """
    Returns the composite URL. Simulation reuses the mannequin image.
    """
    if not real:
        return project.mannequin_image_url

    mannequin_bytes = await download_bytes(project.mannequin_image_url)
    product_bytes = await download_bytes(project.transparent_image_url)
    composite_bytes = composite_images(mannequin_bytes, product_bytes)

    url = await upload_project_asset(project.id, "composite", "composite.png", composite_bytes, "image/png")
    logger.info(f"[Project {project.id}] [COMPOSITE] Composite created: {url}")
    return url
