"""Shared fixtures: every test gets its own data and media directories."""
import os
from io import BytesIO

# Keep a developer .env from pointing tests at real services
for _var in ("STORAGE_BUCKET", "CLIPDROP_API_KEY", "OPENAI_API_KEY", "RUNWAY_API_KEY", "REPLICATE_API_TOKEN"):
    os.environ[_var] = ""

import pytest
from PIL import Image

from showreel import metrics
from showreel.pipeline.store import reset_stores
from showreel.pipeline.storage import media_dir, public_base_url


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Local JSON store under tmp_path, instant simulation, env-driven API mode."""
    monkeypatch.setenv("SHOWREEL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("MEDIA_DIR", str(tmp_path / "media"))
    monkeypatch.setenv("SIMULATION_TIME_SCALE", "0")
    monkeypatch.setenv("SHOWREEL_USE_REAL_APIS", "false")
    monkeypatch.setenv("PROJECT_STORE", "local")
    monkeypatch.setenv("MANNEQUIN_SOURCE", "dalle")
    monkeypatch.delenv("VIDEO_TEXT_OVERLAY", raising=False)
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    reset_stores()
    metrics.reset()
    yield
    reset_stores()


def make_image(size=(64, 64), color="white", fmt="PNG", mode="RGB") -> bytes:
    img = Image.new(mode, size, color=color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def put_media(key: str, data: bytes) -> str:
    """Write a file where local storage keeps assets and return its public URL."""
    path = media_dir() / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return f"{public_base_url()}/media/{key}"


@pytest.fixture
def jpeg_bytes():
    return make_image((120, 160), color="navy", fmt="JPEG")


@pytest.fixture
def png_bytes():
    return make_image((120, 160), color="orange", fmt="PNG")
