"""
Project service: ShowReel project lifecycle.

  - Create (validate upload → store original → pending record → run pipeline)
  - Retry (error → pending → run pipeline again)
  - Read / list / delete / clear

Pipeline runs are handed to a `schedule` callable (FastAPI BackgroundTasks
in the API); without one they start as fire-and-forget asyncio tasks.
"""

import logging
from typing import Callable, Optional
from uuid import uuid4

from .. import metrics
from .models import (
    PRODUCT_TYPES,
    Project,
    ProjectCreationParams,
    ProjectStateError,
    ProjectStatus,
)
from .orchestrator import ShowReelPipeline
from .storage import upload_project_asset
from .store import get_showreel_store, now_iso

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB

# Outputs of a previous run, cleared when a failed project is retried
RUN_ARTIFACT_FIELDS = (
    "transparent_image_url",
    "mannequin_image_url",
    "mannequin_task_id",
    "composite_image_url",
    "script",
    "video_generation_id",
    "video_url",
)

Scheduler = Callable[..., None]

_pipeline = ShowReelPipeline()


def get_pipeline() -> ShowReelPipeline:
    return _pipeline


def _schedule_run(project_id: str, schedule: Optional[Scheduler]):
    if schedule is not None:
        schedule(_pipeline.run, project_id)
    else:
        _pipeline.run_background(project_id)


# ═════════════════════════════════════════════════════════════════════════════
# A. Create
# ═════════════════════════════════════════════════════════════════════════════

def validate_upload(params: ProjectCreationParams, data: bytes, content_type: str):
    """Raise ValueError describing the first problem with an upload."""
    if not params.product_type or not params.product_type.strip():
        raise ValueError("Please select a product type")
    if params.product_type not in PRODUCT_TYPES:
        raise ValueError(f"Unknown product type '{params.product_type}'. Choose one of: {', '.join(PRODUCT_TYPES)}")
    if not params.product_name or not params.product_name.strip():
        raise ValueError("Please enter a product name")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValueError("Only JPEG and PNG images are supported")
    if not data:
        raise ValueError("Please upload a product image")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValueError("Image must be less than 5MB")


async def create_project(
    params: ProjectCreationParams,
    data: bytes,
    filename: str,
    content_type: str,
    schedule: Optional[Scheduler] = None,
) -> Project:
    """
    1. Validate metadata and image
    2. Upload the original image
    3. Insert the project as `pending`
    4. Schedule the pipeline run
    """
    validate_upload(params, data, content_type)

    project_id = str(uuid4())
    logger.info(f"Creating new project: {project_id}")

    image_url = await upload_project_asset(project_id, "original", filename or "upload.jpg", data, content_type)
    logger.info(f"Uploaded image to: {image_url}")

    timestamp = now_iso()
    project = Project(
        id=project_id,
        status=ProjectStatus.PENDING,
        product_type=params.product_type,
        product_name=params.product_name.strip(),
        product_description=(params.product_description or "").strip() or None,
        original_image_url=image_url,
        created_at=timestamp,
        updated_at=timestamp,
    )
    get_showreel_store().insert(project)
    metrics.inc_counter("projects.created")

    _schedule_run(project_id, schedule)
    return project


# ═════════════════════════════════════════════════════════════════════════════
# B. Retry
# ═════════════════════════════════════════════════════════════════════════════

def retry_project(project_id: str, schedule: Optional[Scheduler] = None) -> Project:
    """
    Restart a failed project from the top.

    Raises LookupError for unknown ids and ProjectStateError unless the
    project is in `error`.
    """
    store = get_showreel_store()
    project = store.get_project(project_id)
    if project is None:
        raise LookupError(f"Project {project_id} not found")
    if project.status != ProjectStatus.ERROR:
        raise ProjectStateError(
            f"Only failed projects can be retried. Current status: {project.status.value}"
        )
    if _pipeline.is_running(project_id):
        raise ProjectStateError(f"Pipeline already running for project {project_id}")

    store.update_status(project_id, ProjectStatus.PENDING)
    project = store.update_data(project_id, error=None, **dict.fromkeys(RUN_ARTIFACT_FIELDS))
    metrics.inc_counter("projects.retried")
    logger.info(f"Retrying project {project_id}")

    _schedule_run(project_id, schedule)
    return project


# ═════════════════════════════════════════════════════════════════════════════
# C. Read / delete
# ═════════════════════════════════════════════════════════════════════════════

def get_projects() -> list[Project]:
    """All projects, newest first."""
    return sorted(get_showreel_store().get_projects(), key=lambda p: p.created_at, reverse=True)


def get_project(project_id: str) -> Optional[Project]:
    return get_showreel_store().get_project(project_id)


def delete_project(project_id: str) -> bool:
    deleted = get_showreel_store().delete(project_id)
    if deleted:
        logger.info(f"Deleted project {project_id}")
    return deleted


def clear_projects():
    get_showreel_store().clear()
