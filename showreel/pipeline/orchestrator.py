"""
ShowReelPipeline: the ShowReel state machine.

Chains the steps with status tracking, full asyncio support:
  Step 1: Background removal  (ClipDrop)        processing-background
  Step 2: Mannequin           (DALL-E / catalog) processing-mannequin
  Step 3: Marketing script    (GPT-4o-mini)     processing-script
  Step 4: Composite + render  (PIL + Runway)    rendering
  Done:                                          complete

Every step result is written back into the project record, which is then
re-read before the next step. Any failure moves the project to `error` with a
step-prefixed message and stops the run.
"""

import logging
import asyncio
import threading
from typing import Awaitable, Callable, Optional

from .. import metrics
from .api_mode import use_real_apis
from .models import Project, ProjectStatus, ProjectStateError
from .store import ProjectStore, get_showreel_store
from .background import remove_background
from .mannequin import generate_mannequin
from .script import generate_script
from .composite import create_composite
from .render import start_render, wait_for_video
from .overlay import apply_text_overlay

logger = logging.getLogger(__name__)


class PipelineStepError(RuntimeError):
    """A step failed; the project has already been moved to `error`."""


class ShowReelPipeline:
    """
    Usage:
        pipeline = ShowReelPipeline()
        project = await pipeline.run(project_id)
    """

    def __init__(self, store: Optional[ProjectStore] = None):
        self._store = store
        self._running: set[str] = set()
        self._lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def store(self) -> ProjectStore:
        return self._store or get_showreel_store()

    def is_running(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._running

    def _claim(self, project_id: str):
        with self._lock:
            if project_id in self._running:
                raise ProjectStateError(f"Pipeline already running for project {project_id}")
            self._running.add(project_id)

    def _release(self, project_id: str):
        with self._lock:
            self._running.discard(project_id)

    # ── Status helpers ───────────────────────────────────────────────────

    def _fail(self, project_id: str, message: str):
        logger.error(f"[Project {project_id}] [ERROR] {message}")
        metrics.record_error("pipeline", message, project_id)
        try:
            self.store.update_status(project_id, ProjectStatus.ERROR, message)
        except ProjectStateError as e:
            logger.error(f"[Project {project_id}] Could not record error: {e}")

    def _advance(self, project_id: str, status: ProjectStatus) -> Project:
        project = self.store.update_status(project_id, status)
        if project is None:
            raise PipelineStepError(f"Project {project_id} disappeared")
        return project

    async def _step(
        self,
        project_id: str,
        status: ProjectStatus,
        name: str,
        failure_label: str,
        action: Callable[[Project], Awaitable[dict]],
        required_field: str,
        missing_after: str,
    ) -> Project:
        """
        Move to `status`, run `action`, merge its fields and re-read the
        record. Raises PipelineStepError once the project is in `error`.
        """
        project = self._advance(project_id, status)
        logger.info(f"[Project {project_id}] [{name.upper()}] Starting")

        try:
            with metrics.step_timer(f"[Project {project_id}] {name}", f"step.{name}"):
                fields = await action(project)
        except Exception as e:
            logger.error(f"[Project {project_id}] [{name.upper()}] {e}", exc_info=True)
            metrics.inc_counter(f"steps.{name}.failed")
            self._fail(project_id, f"{failure_label} failed: {e}")
            raise PipelineStepError(str(e))

        self.store.update_data(project_id, **fields)
        project = self.store.get_project(project_id)
        if project is None or not getattr(project, required_field):
            message = f"Project data missing after {missing_after}"
            logger.error(f"{message} for {project_id}")
            if project is not None:
                self._fail(project_id, message)
            raise PipelineStepError(message)

        metrics.inc_counter(f"steps.{name}.completed")
        return project

    # ── The run ──────────────────────────────────────────────────────────

    async def run(self, project_id: str, real: Optional[bool] = None) -> Optional[Project]:
        """
        Drive one project from `pending` to `complete` or `error`.

        Returns the final record, or None when the project does not exist.
        Raises ProjectStateError when the project is not pending or a run for
        it is already in flight.
        """
        project = self.store.get_project(project_id)
        if project is None:
            logger.error(f"Project {project_id} not found")
            return None
        if project.status != ProjectStatus.PENDING:
            raise ProjectStateError(
                f"Project {project_id} is {project.status.value}, only pending projects can be processed"
            )

        self._claim(project_id)
        if real is None:
            real = use_real_apis()
        mode = "real APIs" if real else "simulation"
        logger.info(f"[Project {project_id}] Starting pipeline ({mode})")
        metrics.inc_counter("pipeline.runs")
        metrics.add_gauge("active_pipeline_runs", 1)

        try:
            # ── Step 1: Background removal ───────────────────────────
            async def background(p: Project) -> dict:
                return {"transparent_image_url": await remove_background(p, real)}

            await self._step(
                project_id, ProjectStatus.PROCESSING_BACKGROUND, "background",
                "Background removal", background,
                "transparent_image_url", "background removal",
            )

            # ── Step 2: Mannequin ────────────────────────────────────
            async def mannequin(p: Project) -> dict:
                url, task_id = await generate_mannequin(p, real)
                return {"mannequin_image_url": url, "mannequin_task_id": task_id}

            await self._step(
                project_id, ProjectStatus.PROCESSING_MANNEQUIN, "mannequin",
                "Mannequin generation", mannequin,
                "mannequin_image_url", "mannequin generation",
            )

            # ── Step 3: Script ───────────────────────────────────────
            async def script(p: Project) -> dict:
                return {"script": (await generate_script(p, real)).model_dump()}

            await self._step(
                project_id, ProjectStatus.PROCESSING_SCRIPT, "script",
                "Script generation", script,
                "script", "script generation",
            )

            # ── Step 4: Composite + render ───────────────────────────
            async def render(p: Project) -> dict:
                composite_url = await create_composite(p, real)
                p = self.store.update_data(project_id, composite_image_url=composite_url) or p

                generation_id = await start_render(p, real)
                p = self.store.update_data(project_id, video_generation_id=generation_id) or p

                video_url = await wait_for_video(p, generation_id, real)
                if real:
                    video_url = await apply_text_overlay(video_url, p.script, project_id)
                return {"video_url": video_url}

            await self._step(
                project_id, ProjectStatus.RENDERING, "render",
                "Video rendering", render,
                "video_url", "video rendering",
            )

            # ── Done ─────────────────────────────────────────────────
            project = self._advance(project_id, ProjectStatus.COMPLETE)
            metrics.inc_counter("pipeline.completed")
            logger.info(f"[Project {project_id}] [COMPLETE] Video ready: {project.video_url}")
            return project

        except PipelineStepError:
            metrics.inc_counter("pipeline.failed")
            return self.store.get_project(project_id)

        except Exception as e:
            logger.error(f"Processing error for {project_id}: {e}", exc_info=True)
            metrics.inc_counter("pipeline.failed")
            self._fail(project_id, str(e))
            return self.store.get_project(project_id)

        finally:
            self._release(project_id)
            metrics.add_gauge("active_pipeline_runs", -1)

    def run_background(self, project_id: str):
        """Fire-and-forget wrapper for run (needs a running loop)."""
        task = asyncio.create_task(self.run(project_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
