import os
import time
import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import metrics, presets
from .pipeline.api_mode import describe_api_mode
from .pipeline import project_router, tryon_router, settings_router
from .pipeline.storage import STORAGE_BUCKET, media_dir
from .pipeline.store import data_dir


def configure_logging():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("ShowReel starting up...")
    metrics.set_gauge("start_time", time.time())
    metrics.set_gauge("active_pipeline_runs", 0)
    mode = describe_api_mode()
    logger.info(f"API mode: {'real' if mode['use_real_apis'] else 'simulation'} (from {mode['source']})")
    logger.info(f"Project data in {data_dir().resolve()}")
    yield
    logger.info("ShowReel shutting down...")


app = FastAPI(title="ShowReel", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(project_router)
app.include_router(tryon_router)
app.include_router(settings_router)

# Locally stored assets (no bucket configured)
app.mount("/media", StaticFiles(directory=str(media_dir()), check_dir=False), name="media")


@app.get("/health")
def health_check():
    """Verify the service is running and which vendors are configured."""
    return {
        "status": "ok",
        "use_real_apis": describe_api_mode()["use_real_apis"],
        "clipdrop_key_set": bool(os.getenv("CLIPDROP_API_KEY")),
        "openai_key_set": bool(os.getenv("OPENAI_API_KEY")),
        "runway_key_set": bool(os.getenv("RUNWAY_API_KEY")),
        "replicate_token_set": bool(os.getenv("REPLICATE_API_TOKEN")),
        "storage": "bucket" if STORAGE_BUCKET else "local",
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all service metrics."""
    return metrics.get_snapshot()


@app.get("/presets")
def presets_endpoint():
    """Product types, model/background presets and demo items for clients."""
    return presets.list_presets()


def serve(host: str = "0.0.0.0", port: int = None, reload: bool = False):
    media_dir().mkdir(parents=True, exist_ok=True)
    port = port or int(os.environ.get("PORT", 8080))
    uvicorn.run("showreel.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    serve(reload=True)
