"""
Pydantic models and enums for the ShowReel and try-on pipelines.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


# ── ShowReel Status ──────────────────────────────────────────────────────────

class ProjectStatus(str, Enum):
    PENDING = "pending"
    PROCESSING_BACKGROUND = "processing-background"
    PROCESSING_MANNEQUIN = "processing-mannequin"
    PROCESSING_SCRIPT = "processing-script"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"


# Linear order of the pipeline; ERROR sits outside it
STATUS_ORDER = [
    ProjectStatus.PENDING,
    ProjectStatus.PROCESSING_BACKGROUND,
    ProjectStatus.PROCESSING_MANNEQUIN,
    ProjectStatus.PROCESSING_SCRIPT,
    ProjectStatus.RENDERING,
    ProjectStatus.COMPLETE,
]

STATUS_DISPLAY = {
    ProjectStatus.PENDING: ("Uploading", 10),
    ProjectStatus.PROCESSING_BACKGROUND: ("Removing Background", 25),
    ProjectStatus.PROCESSING_MANNEQUIN: ("Generating Mannequin", 45),
    ProjectStatus.PROCESSING_SCRIPT: ("Creating Marketing Copy", 65),
    ProjectStatus.RENDERING: ("Rendering Video", 85),
    ProjectStatus.COMPLETE: ("Complete", 100),
    ProjectStatus.ERROR: ("Error", 100),
}

TERMINAL_STATUSES = {ProjectStatus.COMPLETE, ProjectStatus.ERROR}


class ProjectStateError(ValueError):
    """Raised when a project is asked to move somewhere its status forbids."""


def is_valid_transition(old: ProjectStatus, new: ProjectStatus) -> bool:
    """
    Check a status change against the pipeline order.

    Allowed:
      - staying on the same status
      - moving exactly one step forward
      - any non-terminal status → error
      - error → pending (retry)
    """
    old = ProjectStatus(old)
    new = ProjectStatus(new)

    if old == new:
        return True
    if new == ProjectStatus.ERROR:
        return old not in TERMINAL_STATUSES
    if old == ProjectStatus.ERROR:
        return new == ProjectStatus.PENDING
    if old == ProjectStatus.COMPLETE:
        return False
    return STATUS_ORDER.index(new) == STATUS_ORDER.index(old) + 1


def status_display(status: ProjectStatus) -> tuple[str, int]:
    """Human label and progress percentage for a status."""
    return STATUS_DISPLAY.get(ProjectStatus(status), ("Processing", 50))


# ── Marketing Script ─────────────────────────────────────────────────────────

class Script(BaseModel):
    headline: str
    bullets: list[str]
    cta: str
    color_palette: list[str] = Field(default_factory=list)


# ── ShowReel Project ─────────────────────────────────────────────────────────

PRODUCT_TYPES = [
    "t-shirt",
    "hoodie",
    "tote bag",
    "mug",
    "phone case",
    "poster",
]

ASSET_TYPES = ("original", "transparent", "mannequin", "composite", "video")


class Project(BaseModel):
    id: str
    status: ProjectStatus = ProjectStatus.PENDING
    product_type: str
    product_name: str
    product_description: Optional[str] = None

    original_image_url: str
    transparent_image_url: Optional[str] = None
    mannequin_image_url: Optional[str] = None
    mannequin_task_id: Optional[str] = None
    composite_image_url: Optional[str] = None

    script: Optional[Script] = None

    video_generation_id: Optional[str] = None
    video_url: Optional[str] = None

    error: Optional[str] = None
    created_at: str  # ISO timestamp
    updated_at: str


class ProjectCreationParams(BaseModel):
    product_type: str
    product_name: str
    product_description: Optional[str] = None


class ProjectResponse(Project):
    """Project plus the display fields a progress view needs."""
    status_label: str = ""
    progress_pct: int = 0

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        label, progress = status_display(project.status)
        return cls(**project.model_dump(), status_label=label, progress_pct=progress)


# ── Try-On (Uwear) ───────────────────────────────────────────────────────────

class GenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ENHANCING = "enhancing"
    COMPLETE = "complete"
    ERROR = "error"


CLOTHING_TYPES = ["tshirt", "dress", "pants", "jacket", "skirt", "hoodie", "shirt", "other"]


class ModelOptions(BaseModel):
    ethnicity: str = "caucasian"  # caucasian, african, asian, hispanic, middle-eastern, mixed
    body_type: str = "average"    # slim, athletic, average, curvy, plus-size
    age: str = "young"            # young, middle-aged, mature
    gender: str = "female"
    hair_color: Optional[str] = None
    pose: Optional[str] = None


class BackgroundOptions(BaseModel):
    type: str = "studio"  # studio, outdoor, urban, lifestyle, custom
    preset: Optional[str] = None
    custom_url: Optional[str] = None


class CameraOptions(BaseModel):
    angle: str = "front"      # front, side, back, 45-degree, angle
    zoom: str = "full-body"   # full-body, half-body, close-up, three-quarter
    pose: Optional[str] = None


class GenerationRequest(BaseModel):
    clothing_type: str = "tshirt"
    model_options: ModelOptions = Field(default_factory=ModelOptions)
    background_options: BackgroundOptions = Field(default_factory=BackgroundOptions)
    camera_options: CameraOptions = Field(default_factory=CameraOptions)
    custom_instructions: Optional[str] = None
    generate_video: bool = False
    enhance: bool = False


class GenerationProject(BaseModel):
    id: str
    status: GenerationStatus = GenerationStatus.PENDING

    clothing_image_url: str
    clothing_type: str = "other"

    model_options: ModelOptions = Field(default_factory=ModelOptions)
    background_options: BackgroundOptions = Field(default_factory=BackgroundOptions)
    camera_options: CameraOptions = Field(default_factory=CameraOptions)
    background_url: Optional[str] = None  # resolved from background_options

    template_image_url: Optional[str] = None
    custom_instructions: Optional[str] = None
    enhance: bool = False
    generate_video: bool = False

    model_image_url: Optional[str] = None
    generated_image_url: Optional[str] = None
    enhanced_image_url: Optional[str] = None
    video_url: Optional[str] = None

    error: Optional[str] = None
    created_at: str
    updated_at: str
    processing_time: Optional[float] = None  # seconds


class VariationsRequest(BaseModel):
    count: int = Field(4, ge=1, le=12)


class ApiModeUpdate(BaseModel):
    use_real_apis: bool
