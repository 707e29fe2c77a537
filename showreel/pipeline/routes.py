"""
FastAPI routes for the ShowReel and try-on pipelines.

Project Endpoints:
  POST   /projects               — Upload a product photo (multipart) and start the pipeline
  GET    /projects               — List projects, newest first
  GET    /projects/{id}          — Project with progress label + percentage
  POST   /projects/{id}/retry    — Re-run a failed project
  DELETE /projects/{id}          — Delete one project
  DELETE /projects               — Delete all projects

Try-On Endpoints:
  POST   /tryon                  — Upload clothing (+ optional template) and start generation
  GET    /tryon                  — List generation projects
  GET    /tryon/{id}             — Generation project
  POST   /tryon/{id}/variations  — Alternative model photos

Settings Endpoints:
  GET | PUT | DELETE /settings/api-mode — Simulation / real API switch
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from .. import metrics
from . import api_mode, project_service, tryon
from .models import (
    ApiModeUpdate,
    BackgroundOptions,
    CameraOptions,
    GenerationProject,
    GenerationRequest,
    ModelOptions,
    ProjectCreationParams,
    ProjectResponse,
    ProjectStateError,
    VariationsRequest,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Project Router
# ═════════════════════════════════════════════════════════════════════════════

project_router = APIRouter(prefix="/projects", tags=["projects"])


@project_router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    background_tasks: BackgroundTasks,
    image: UploadFile = File(...),
    product_type: str = Form(...),
    product_name: str = Form(...),
    product_description: Optional[str] = Form(None),
):
    """
    Upload → pending project → pipeline runs in the background.

    Errors:
      - 400: Missing fields, unsupported image type or image too large
    """
    metrics.inc_counter("requests.projects.create")
    try:
        data = await image.read()
        project = await project_service.create_project(
            ProjectCreationParams(
                product_type=product_type,
                product_name=product_name,
                product_description=product_description,
            ),
            data,
            image.filename or "upload.jpg",
            image.content_type or "",
            schedule=background_tasks.add_task,
        )
        return ProjectResponse.from_project(project)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Project creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@project_router.get("", response_model=list[ProjectResponse])
async def list_projects():
    return [ProjectResponse.from_project(p) for p in project_service.get_projects()]


@project_router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str):
    project = project_service.get_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.from_project(project)


@project_router.post("/{project_id}/retry", response_model=ProjectResponse)
async def retry_project(project_id: str, background_tasks: BackgroundTasks):
    """
    Errors:
      - 404: Unknown project
      - 409: Project is not in `error`
    """
    metrics.inc_counter("requests.projects.retry")
    try:
        project = project_service.retry_project(project_id, schedule=background_tasks.add_task)
        return ProjectResponse.from_project(project)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProjectStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@project_router.delete("/{project_id}")
async def delete_project(project_id: str):
    if not project_service.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"status": "deleted", "id": project_id}


@project_router.delete("")
async def clear_projects():
    project_service.clear_projects()
    return {"status": "cleared"}


# ═════════════════════════════════════════════════════════════════════════════
# Try-On Router
# ═════════════════════════════════════════════════════════════════════════════

tryon_router = APIRouter(prefix="/tryon", tags=["tryon"])


def _parse_options(raw: Optional[str], model, field: str):
    """Multipart forms carry the option groups as JSON strings."""
    if not raw:
        return model()
    try:
        return model(**json.loads(raw))
    except (ValueError, TypeError, ValidationError) as e:
        raise ValueError(f"Invalid {field}: {e}")


@tryon_router.post("", response_model=GenerationProject, status_code=201)
async def create_generation(
    background_tasks: BackgroundTasks,
    clothing_image: UploadFile = File(...),
    template_image: Optional[UploadFile] = File(None),
    clothing_type: str = Form("tshirt"),
    model_options: Optional[str] = Form(None),
    background_options: Optional[str] = Form(None),
    camera_options: Optional[str] = Form(None),
    custom_instructions: Optional[str] = Form(None),
    generate_video: bool = Form(False),
    enhance: bool = Form(False),
):
    """
    Errors:
      - 400: Bad clothing type, option JSON or image
    """
    metrics.inc_counter("requests.tryon.create")
    try:
        request = GenerationRequest(
            clothing_type=clothing_type,
            model_options=_parse_options(model_options, ModelOptions, "model_options"),
            background_options=_parse_options(background_options, BackgroundOptions, "background_options"),
            camera_options=_parse_options(camera_options, CameraOptions, "camera_options"),
            custom_instructions=custom_instructions,
            generate_video=generate_video,
            enhance=enhance,
        )
        clothing = await clothing_image.read()
        template = await template_image.read() if template_image is not None else None

        return await tryon.create_generation_project(
            request,
            clothing,
            clothing_image.filename or "clothing.jpg",
            clothing_image.content_type or "",
            template=template or None,
            template_filename=(template_image.filename if template_image else None) or "template.jpg",
            template_content_type=(template_image.content_type if template_image else None) or "image/jpeg",
            schedule=background_tasks.add_task,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Try-on creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@tryon_router.get("", response_model=list[GenerationProject])
async def list_generations():
    return tryon.get_generation_projects()


@tryon_router.get("/{project_id}", response_model=GenerationProject)
async def get_generation(project_id: str):
    project = tryon.get_generation_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@tryon_router.post("/{project_id}/variations")
async def generate_variations(project_id: str, request: Optional[VariationsRequest] = None):
    count = request.count if request else 4
    try:
        return {"id": project_id, "variations": tryon.generate_variations(project_id, count)}
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ═════════════════════════════════════════════════════════════════════════════
# Settings Router
# ═════════════════════════════════════════════════════════════════════════════

settings_router = APIRouter(prefix="/settings", tags=["settings"])


@settings_router.get("/api-mode")
async def get_api_mode():
    return api_mode.describe_api_mode()


@settings_router.put("/api-mode")
async def set_api_mode(update: ApiModeUpdate):
    api_mode.set_api_mode(update.use_real_apis)
    return api_mode.describe_api_mode()


@settings_router.delete("/api-mode")
async def reset_api_mode():
    api_mode.clear_api_mode_override()
    return api_mode.describe_api_mode()
