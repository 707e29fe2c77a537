"""
ShowReel pipeline end to end.

Simulation runs need no patches. Real-mode runs replace the vendor calls and
keep every asset in local media storage so the composite step works on real
PNGs.
"""
import asyncio

import httpx
import pytest

from showreel import clipdrop, metrics, openai_client, runway
from showreel.pipeline import orchestrator, overlay, project_service, render
from showreel.pipeline.models import ProjectCreationParams, ProjectStateError, ProjectStatus, Script
from showreel.pipeline.orchestrator import ShowReelPipeline
from showreel.pipeline.store import get_showreel_store
from showreel import presets
from tests.conftest import make_image, put_media

SCRIPT = Script(
    headline="Sip Happens",
    bullets=["Holds 12oz", "Dishwasher safe", "Keeps heat"],
    cta="Order Today",
    color_palette=["#000000", "#ffffff", "#ff0000"],
)


def create(product_type="mug", name="Morning Mug", description=None) -> str:
    """Insert a pending project without starting a run."""
    params = ProjectCreationParams(product_type=product_type, product_name=name, product_description=description)
    project = asyncio.run(project_service.create_project(
        params, make_image(fmt="JPEG"), "mug photo.jpg", "image/jpeg", schedule=lambda *_: None,
    ))
    return project.id


@pytest.fixture
def real_vendors(monkeypatch):
    """Working fakes for every vendor; tests override single pieces."""
    calls = {"statuses": [
        {"status": "PROCESSING"},
        {"status": "COMPLETED", "video_url": "https://runway/out.mp4"},
    ]}
    mannequin_url = put_media("fixtures/mannequin.png", make_image((200, 300), color="white"))

    async def fake_clipdrop(url, client=None):
        calls["clipdrop"] = url
        return make_image((50, 50), color=(255, 0, 0, 255), mode="RGBA")

    def fake_dalle(product_type, gender="neutral"):
        calls["dalle"] = product_type
        return mannequin_url

    def fake_script(name, product_type, description=None):
        calls["script"] = (name, product_type, description)
        return SCRIPT

    def fake_generate_video(image_url, product_type, image_bytes=None):
        calls["runway"] = (image_url, product_type, image_bytes)
        return "gen-123"

    def fake_status(generation_id):
        status = dict(calls["statuses"].pop(0))
        status.setdefault("video_url", None)
        status.setdefault("error", None)
        return {"id": generation_id, **status}

    monkeypatch.setattr(clipdrop, "remove_image_background", fake_clipdrop)
    monkeypatch.setattr(openai_client, "generate_mannequin_image", fake_dalle)
    monkeypatch.setattr(openai_client, "generate_marketing_script", fake_script)
    monkeypatch.setattr(runway, "generate_video", fake_generate_video)
    monkeypatch.setattr(runway, "get_task_status", fake_status)
    monkeypatch.setattr(render, "POLL_INTERVAL", 0)
    return calls


class TestSimulation:

    def test_runs_to_complete(self):
        project_id = create("t-shirt", "Cosmic Tee")
        project = asyncio.run(ShowReelPipeline().run(project_id, real=False))

        assert project.status == ProjectStatus.COMPLETE
        assert project.error is None
        assert project.transparent_image_url == project.original_image_url
        assert project.mannequin_image_url == presets.get_placeholder_image("t-shirt")
        assert project.mannequin_task_id.startswith("mannequin-task-")
        assert project.composite_image_url == project.mannequin_image_url
        assert project.video_generation_id.startswith("runway-task-")
        assert project.video_url == presets.PLACEHOLDER_VIDEO_URL
        assert project.script.headline == presets.PLACEHOLDER_SCRIPTS["t-shirt"]["headline"]

    def test_follows_environment_mode(self):
        project_id = create()
        project = asyncio.run(ShowReelPipeline().run(project_id))
        assert project.status == ProjectStatus.COMPLETE

    def test_unknown_project(self):
        assert asyncio.run(ShowReelPipeline().run("missing")) is None

    def test_only_pending_projects_run(self):
        project_id = create()
        pipeline = ShowReelPipeline()
        asyncio.run(pipeline.run(project_id, real=False))
        with pytest.raises(ProjectStateError, match="only pending projects"):
            asyncio.run(pipeline.run(project_id, real=False))

    def test_second_concurrent_run_is_rejected(self):
        project_id = create()
        pipeline = ShowReelPipeline()

        async def both():
            return await asyncio.gather(
                pipeline.run(project_id, real=False),
                pipeline.run(project_id, real=False),
                return_exceptions=True,
            )

        results = asyncio.run(both())
        assert sum(isinstance(r, ProjectStateError) for r in results) == 1
        assert get_showreel_store().get_project(project_id).status == ProjectStatus.COMPLETE
        assert not pipeline.is_running(project_id)

    def test_metrics(self):
        project_id = create()
        asyncio.run(ShowReelPipeline().run(project_id, real=False))
        snapshot = metrics.get_snapshot()
        assert snapshot["counters"]["pipeline.completed"] == 1
        assert snapshot["counters"]["steps.render.completed"] == 1
        assert snapshot["gauges"]["active_pipeline_runs"] == 0
        assert "step.mannequin" in snapshot["latency"]
        assert snapshot["steps"]["background"] == {"completed": 1}


class TestRealMode:

    def test_happy_path(self, real_vendors):
        project_id = create("mug", "Morning Mug", "Ceramic")
        project = asyncio.run(ShowReelPipeline().run(project_id, real=True))

        assert project.status == ProjectStatus.COMPLETE
        assert project.transparent_image_url.endswith(f"projects/{project_id}/transparent/transparent.png")
        assert project.mannequin_image_url.endswith(f"projects/{project_id}/mannequin/mannequin.png")
        assert project.mannequin_task_id.startswith("dalle-")
        assert project.composite_image_url.endswith(f"projects/{project_id}/composite/composite.png")
        assert project.video_generation_id == "gen-123"
        assert project.video_url == "https://runway/out.mp4"
        assert project.script == SCRIPT

        assert real_vendors["clipdrop"] == project.original_image_url
        assert real_vendors["script"] == ("Morning Mug", "mug", "Ceramic")
        image_url, product_type, image_bytes = real_vendors["runway"]
        assert image_url == project.composite_image_url
        assert image_bytes.startswith(b"\x89PNG")

    def test_catalog_mannequin(self, real_vendors, monkeypatch):
        monkeypatch.setenv("MANNEQUIN_SOURCE", "catalog")
        project_id = create("poster", "Sunset Poster")
        store = get_showreel_store()

        async def no_composite(project, real):
            return put_media("fixtures/composite.png", make_image())

        monkeypatch.setattr(orchestrator, "create_composite", no_composite)
        project = asyncio.run(ShowReelPipeline().run(project_id, real=True))

        assert project.status == ProjectStatus.COMPLETE
        assert project.mannequin_task_id == "catalog-poster-wall-1"
        assert project.mannequin_image_url == presets.get_mannequin_photo("poster")["url"]
        assert "dalle" not in real_vendors
        assert store.get_project(project_id).video_url == "https://runway/out.mp4"

    def test_background_failure(self, real_vendors, monkeypatch):
        async def broken(url, client=None):
            raise RuntimeError("ClipDrop API error: 402 Out of credits")

        monkeypatch.setattr(clipdrop, "remove_image_background", broken)
        project_id = create()
        project = asyncio.run(ShowReelPipeline().run(project_id, real=True))

        assert project.status == ProjectStatus.ERROR
        assert project.error == "Background removal failed: ClipDrop API error: 402 Out of credits"
        assert project.transparent_image_url is None
        assert "dalle" not in real_vendors
        assert metrics.get_snapshot()["counters"]["steps.background.failed"] == 1

    def test_script_failure(self, real_vendors, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("OpenAI API error: Invalid script format: empty response")

        monkeypatch.setattr(openai_client, "generate_marketing_script", broken)
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))

        assert project.status == ProjectStatus.ERROR
        assert project.error.startswith("Script generation failed: OpenAI API error")
        assert project.mannequin_image_url is not None
        assert project.video_generation_id is None

    def test_render_failed(self, real_vendors):
        real_vendors["statuses"][:] = [{"status": "FAILED", "error": "Content policy"}]
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))

        assert project.status == ProjectStatus.ERROR
        assert project.error == "Video rendering failed: Video generation failed: Content policy"
        assert project.video_generation_id == "gen-123"
        assert project.composite_image_url is not None

    def test_render_timeout(self, real_vendors, monkeypatch):
        monkeypatch.setattr(render, "MAX_POLL_ATTEMPTS", 3)
        real_vendors["statuses"][:] = [{"status": "PROCESSING"}] * 3
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))

        assert project.status == ProjectStatus.ERROR
        assert project.error == "Video rendering failed: Video generation timed out"

    def test_completed_without_url(self, real_vendors):
        real_vendors["statuses"][:] = [{"status": "COMPLETED"}]
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))
        assert "no video URL" in project.error

    def test_overlay_download_failure_keeps_vendor_video(self, real_vendors, monkeypatch):
        monkeypatch.setenv("VIDEO_TEXT_OVERLAY", "true")
        monkeypatch.setattr(overlay.shutil, "which", lambda name: "/usr/bin/ffmpeg")

        async def unreachable(url):
            raise httpx.ConnectError("vendor CDN unreachable")

        monkeypatch.setattr(overlay, "download_bytes", unreachable)
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))

        assert project.status == ProjectStatus.COMPLETE
        assert project.error is None
        assert project.video_url == "https://runway/out.mp4"
        assert metrics.get_snapshot()["recent_errors"][-1]["source"] == "overlay"

    def test_step_returning_nothing(self, real_vendors, monkeypatch):
        async def empty_mannequin(project, real, gender="neutral"):
            return "", "task-0"

        monkeypatch.setattr(orchestrator, "generate_mannequin", empty_mannequin)
        project = asyncio.run(ShowReelPipeline().run(create(), real=True))

        assert project.status == ProjectStatus.ERROR
        assert project.error == "Project data missing after mannequin generation"


class TestProjectService:

    def test_validation(self):
        params = ProjectCreationParams(product_type="mug", product_name="Mug")
        image = make_image(fmt="JPEG")

        with pytest.raises(ValueError, match="Only JPEG and PNG"):
            project_service.validate_upload(params, image, "image/gif")
        with pytest.raises(ValueError, match="less than 5MB"):
            project_service.validate_upload(params, b"x" * (5 * 1024 * 1024 + 1), "image/png")
        with pytest.raises(ValueError, match="Unknown product type"):
            project_service.validate_upload(
                ProjectCreationParams(product_type="lamp", product_name="Lamp"), image, "image/png"
            )
        with pytest.raises(ValueError, match="product name"):
            project_service.validate_upload(
                ProjectCreationParams(product_type="mug", product_name="  "), image, "image/png"
            )

    def test_create_stores_original_and_schedules(self):
        scheduled = []
        params = ProjectCreationParams(product_type="hoodie", product_name=" Zip Hoodie ")
        project = asyncio.run(project_service.create_project(
            params, make_image(fmt="PNG"), "my hoodie!.png", "image/png",
            schedule=lambda fn, pid: scheduled.append(pid),
        ))

        assert scheduled == [project.id]
        assert project.status == ProjectStatus.PENDING
        assert project.product_name == "Zip Hoodie"
        assert project.original_image_url.endswith(f"projects/{project.id}/original/my_hoodie_.png")
        assert project_service.get_project(project.id) == project

    def test_list_is_newest_first(self):
        first = create(name="First")
        second = create(name="Second")
        ids = [p.id for p in project_service.get_projects()]
        assert ids.index(second) < ids.index(first)

    def test_retry_failed_project(self, real_vendors, monkeypatch):
        async def broken(url, client=None):
            raise RuntimeError("ClipDrop API error: timeout")

        original = clipdrop.remove_image_background
        monkeypatch.setattr(clipdrop, "remove_image_background", broken)
        pipeline = project_service.get_pipeline()
        project_id = create()
        assert asyncio.run(pipeline.run(project_id, real=True)).status == ProjectStatus.ERROR

        scheduled = []
        retried = project_service.retry_project(project_id, schedule=lambda fn, pid: scheduled.append(pid))
        assert retried.status == ProjectStatus.PENDING
        assert retried.error is None
        assert scheduled == [project_id]

        monkeypatch.setattr(clipdrop, "remove_image_background", original)
        assert asyncio.run(pipeline.run(project_id, real=True)).status == ProjectStatus.COMPLETE

    def test_retry_clears_previous_run_outputs(self, real_vendors, monkeypatch):
        real_vendors["statuses"][:] = [{"status": "FAILED", "error": "Content policy"}]
        project_id = create()
        failed = asyncio.run(project_service.get_pipeline().run(project_id, real=True))
        assert failed.transparent_image_url and failed.video_generation_id

        retried = project_service.retry_project(project_id, schedule=lambda *_: None)

        for field in project_service.RUN_ARTIFACT_FIELDS:
            assert getattr(retried, field) is None, field
        stored = get_showreel_store().get_project(project_id)
        assert stored.script is None
        assert stored.composite_image_url is None
        assert stored.original_image_url == failed.original_image_url

    def test_retry_rules(self):
        with pytest.raises(LookupError):
            project_service.retry_project("missing")

        project_id = create()
        with pytest.raises(ProjectStateError, match="Only failed projects"):
            project_service.retry_project(project_id, schedule=lambda *_: None)

    def test_delete_and_clear(self):
        a, b = create(), create()
        assert project_service.delete_project(a) is True
        assert project_service.delete_project(a) is False
        assert project_service.get_project(b) is not None
        project_service.clear_projects()
        assert project_service.get_projects() == []
