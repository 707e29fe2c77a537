"""
ShowReel Pipeline

Orchestration for:
  ShowReel — Upload → Background removal → Mannequin → Script → Composite → Video
  Uwear    — Clothing upload → Model photo → Virtual try-on → Enhance / Video
  Projects — Persistent project records with a validated status machine
"""

from .orchestrator import ShowReelPipeline
from .routes import project_router, tryon_router, settings_router
from .models import ProjectStatus, GenerationStatus

__all__ = [
    "ShowReelPipeline",
    "project_router",
    "tryon_router",
    "settings_router",
    "ProjectStatus",
    "GenerationStatus",
]
