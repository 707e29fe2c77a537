"""
Uwear virtual try-on service.

Flow for one generation project:
  1. processing
  2. Model photo: uploaded template, else AI model (flux-ultra → flux-pro →
     juggernaut), else the curated model database
  3. IDM-VTON try-on → generated_image_url
  4. Optional enhancement (enhancing)
  5. Optional sample video
  6. complete | error
"""

import time
import asyncio
import logging
from typing import Callable, Optional
from uuid import uuid4

from .. import metrics, presets, replicate
from .api_mode import use_real_apis
from .models import (
    CLOTHING_TYPES,
    GenerationProject,
    GenerationRequest,
    GenerationStatus,
    ModelOptions,
)
from .simulation import simulate_delay
from .storage import tryon_asset_key, upload_asset
from .store import get_uwear_store, now_iso

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# ── Prompt building ──────────────────────────────────────────────────────────

CLOTHING_CONTEXT = {
    "tshirt": "casual confident pose, upper body focus, showing torso area clearly",
    "dress": "elegant standing pose, full body, graceful posture, showing dress silhouette",
    "jacket": "confident business pose, slight angle, showing jacket details",
    "hoodie": "casual relaxed pose, showing hoodie fit and style",
    "pants": "standing pose, full body, showing leg silhouette and fit",
    "jeans": "casual standing pose, full body, showing denim fit",
    "skirt": "elegant standing pose, showing skirt length and style",
    "shirt": "professional pose, upper body focus, showing shirt details",
    "blouse": "professional elegant pose, showing blouse style and fit",
    "shorts": "casual standing pose, showing shorts fit and style",
}

ANGLE_CONTEXT = {
    "front": "straight front view, facing camera directly",
    "side": "clean side profile, showing garment silhouette",
    "45-degree": "three-quarter angle view, dynamic professional pose",
    "angle": "slight angle turn, showcasing garment details",
    "back": "back view pose, showing rear garment details",
}


def build_model_prompt(
    options: ModelOptions,
    clothing_type: str,
    camera_angle: str = "front",
    custom_instructions: Optional[str] = None,
) -> str:
    """Photorealistic fashion-model prompt for the generators."""
    prompt = (
        f"photorealistic professional fashion model, {options.gender} {options.ethnicity} person, "
        f"{options.age} years old, {options.body_type} body type, wearing business casual clothing, "
        f"{CLOTHING_CONTEXT.get(clothing_type, 'confident standing pose')}, "
        f"{ANGLE_CONTEXT.get(camera_angle, 'front facing')}, "
        "fully clothed, professional attire, clean minimal white backdrop, commercial fashion photography, "
        "ecommerce product photography, fashion catalog photo, high quality photo, detailed realistic skin, "
        "natural lighting, professional model pose, shot with 85mm lens, soft studio lighting, "
        "fashion photography, sharp focus, 8k resolution"
    )
    if custom_instructions and custom_instructions.strip():
        return f"{prompt}, {custom_instructions.strip()}"
    return prompt


# ── Steps ────────────────────────────────────────────────────────────────────

async def generate_model(project: GenerationProject) -> str:
    """
    Try each generator in priority order; if all fail, fall back to the
    curated model database.
    """
    prompt = build_model_prompt(
        project.model_options,
        project.clothing_type,
        project.camera_options.angle,
        project.custom_instructions,
    )
    logger.info(f"AI Model Prompt: {prompt}")
    aspect_ratio = "3:4" if project.camera_options.zoom == "full-body" else "1:1"

    for model in replicate.MODEL_PRIORITY:
        try:
            logger.info(f"Attempting AI model generation with {model}")
            url = await replicate.generate_model_image(prompt, aspect_ratio, model)
            logger.info(f"Successfully generated model with {model}")
            return url
        except Exception as e:
            logger.error(f"{model} failed: {e}")
            metrics.inc_counter(f"tryon.model.{model}.failed")

    logger.info("Falling back to curated model database")
    return _database_photo(project)


def _database_photo(project: GenerationProject) -> str:
    options = project.model_options
    return presets.select_model_photo(
        options.gender, options.ethnicity, options.body_type, project.camera_options.angle
    )


async def run(project_id: str, real: Optional[bool] = None) -> Optional[GenerationProject]:
    """Process one generation project; any failure ends in `error`."""
    store = get_uwear_store()
    project = store.get_project(project_id)
    if project is None:
        logger.error(f"Project {project_id} not found")
        return None

    if real is None:
        real = use_real_apis()
    start = time.monotonic()

    try:
        store.update_status(project_id, GenerationStatus.PROCESSING)
        logger.info(f"Starting virtual try-on generation for {project_id}")

        # ── Model photo ──────────────────────────────────────────────────
        if project.template_image_url:
            model_image_url = project.template_image_url
            logger.info("Using custom template image")
        elif real:
            model_image_url = await generate_model(project)
        else:
            await simulate_delay("mannequin")
            model_image_url = _database_photo(project)
        store.update_data(project_id, model_image_url=model_image_url)

        # ── Try-on ───────────────────────────────────────────────────────
        if real:
            generated_image_url = await replicate.virtual_tryon(
                project.clothing_image_url, model_image_url, project.clothing_type
            )
        else:
            await simulate_delay("tryon")
            generated_image_url = model_image_url

        store.update_data(
            project_id,
            generated_image_url=generated_image_url,
            processing_time=round(time.monotonic() - start, 2),
        )

        # ── Enhancement ──────────────────────────────────────────────────
        if project.enhance:
            store.update_status(project_id, GenerationStatus.ENHANCING)
            await simulate_delay("enhance")
            store.update_data(project_id, enhanced_image_url=generated_image_url)

        # ── Video ────────────────────────────────────────────────────────
        if project.generate_video:
            await simulate_delay("tryon_video")
            store.update_data(project_id, video_url=presets.PLACEHOLDER_VIDEO_URL)

        store.update_status(project_id, GenerationStatus.COMPLETE)
        metrics.inc_counter("tryon.completed")
        logger.info(f"Virtual try-on completed for {project_id}")

    except Exception as e:
        logger.error(f"Processing error for {project_id}: {e}", exc_info=True)
        metrics.inc_counter("tryon.failed")
        metrics.record_error("tryon", str(e), project_id)
        store.update_status(project_id, GenerationStatus.ERROR, str(e))

    return store.get_project(project_id)


# ── Service operations ───────────────────────────────────────────────────────

def _validate_image(data: bytes, content_type: str, label: str):
    if not data:
        raise ValueError(f"Please upload a {label} image")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValueError(f"{label.capitalize()} image must be JPEG, PNG or WebP")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValueError(f"{label.capitalize()} image must be less than 10MB")


async def create_generation_project(
    request: GenerationRequest,
    clothing: bytes,
    clothing_filename: str,
    clothing_content_type: str,
    template: Optional[bytes] = None,
    template_filename: str = "template.jpg",
    template_content_type: str = "image/jpeg",
    schedule: Optional[Callable[..., None]] = None,
) -> GenerationProject:
    """Upload the inputs, insert a pending project and schedule `run`."""
    if request.clothing_type not in CLOTHING_TYPES:
        raise ValueError(f"Unknown clothing type '{request.clothing_type}'. Choose one of: {', '.join(CLOTHING_TYPES)}")
    _validate_image(clothing, clothing_content_type, "clothing")
    if template:
        _validate_image(template, template_content_type, "template")

    project_id = str(uuid4())
    logger.info(f"Creating new generation project: {project_id}")

    clothing_url = await upload_asset(
        tryon_asset_key(project_id, "clothing", clothing_filename or "clothing.jpg"),
        clothing, clothing_content_type,
    )
    template_url = None
    if template:
        template_url = await upload_asset(
            tryon_asset_key(project_id, "template", template_filename or "template.jpg"),
            template, template_content_type,
        )

    timestamp = now_iso()
    project = GenerationProject(
        id=project_id,
        clothing_image_url=clothing_url,
        clothing_type=request.clothing_type,
        model_options=request.model_options,
        background_options=request.background_options,
        background_url=presets.resolve_background_url(
            request.background_options.custom_url, request.background_options.preset,
        ),
        camera_options=request.camera_options,
        template_image_url=template_url,
        custom_instructions=request.custom_instructions,
        enhance=request.enhance,
        generate_video=request.generate_video,
        created_at=timestamp,
        updated_at=timestamp,
    )
    get_uwear_store().insert(project)
    metrics.inc_counter("tryon.created")

    if schedule is not None:
        schedule(run, project_id)
    else:
        run_background(project_id)
    return project


_background_tasks: set[asyncio.Task] = set()


def run_background(project_id: str):
    """Fire-and-forget wrapper for run (needs a running loop)."""
    task = asyncio.create_task(run(project_id))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


def get_generation_projects() -> list[GenerationProject]:
    return sorted(get_uwear_store().get_projects(), key=lambda p: p.created_at, reverse=True)


def get_generation_project(project_id: str) -> Optional[GenerationProject]:
    return get_uwear_store().get_project(project_id)


def generate_variations(project_id: str, count: int = 4) -> list[str]:
    """Alternative model photos matching the project's options."""
    project = get_uwear_store().get_project(project_id)
    if project is None:
        raise LookupError("Project not found")
    return [_database_photo(project) for _ in range(count)]
