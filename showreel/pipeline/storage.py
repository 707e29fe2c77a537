"""
Object storage helpers for the pipeline.

All project assets are stored under:
  projects/{project_id}/{asset_type}/{clean_filename}

With STORAGE_BUCKET set, assets go to an S3-compatible bucket through boto3.
Otherwise they are written below MEDIA_DIR and served by the app at
{PUBLIC_BASE_URL}/media/{key}.
"""

import os
import re
import asyncio
import logging
from pathlib import Path
from typing import Optional

import boto3
import httpx
from botocore.config import Config as BotoConfig

from .models import ASSET_TYPES

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "")
STORAGE_ENDPOINT_URL = os.getenv("STORAGE_ENDPOINT_URL", "")
STORAGE_ACCESS_KEY_ID = os.getenv("STORAGE_ACCESS_KEY_ID", "")
STORAGE_SECRET_ACCESS_KEY = os.getenv("STORAGE_SECRET_ACCESS_KEY", "")
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "")

DOWNLOAD_TIMEOUT = 60


def media_dir() -> Path:
    return Path(os.getenv("MEDIA_DIR", "media"))


def public_base_url() -> str:
    port = os.getenv("PORT", "8080")
    return os.getenv("PUBLIC_BASE_URL", f"http://localhost:{port}").rstrip("/")


# ── Keys ─────────────────────────────────────────────────────────────────────

def clean_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.]", "_", filename)


def project_asset_key(project_id: str, asset_type: str, filename: str) -> str:
    """Generate the storage key for a project asset."""
    if asset_type not in ASSET_TYPES:
        raise ValueError(f"Unknown asset type '{asset_type}'")
    return f"projects/{project_id}/{asset_type}/{clean_filename(filename)}"


def tryon_asset_key(project_id: str, role: str, filename: str) -> str:
    """Storage key for try-on inputs, e.g. uwear/{id}_clothing_shirt.png"""
    return f"uwear/{project_id}_{role}_{clean_filename(filename)}"


# ── Upload ───────────────────────────────────────────────────────────────────

_s3_client = None


def _get_s3_client():
    """Lazy-init boto3 S3 client for the configured bucket."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client(
            "s3",
            endpoint_url=STORAGE_ENDPOINT_URL or None,
            aws_access_key_id=STORAGE_ACCESS_KEY_ID or None,
            aws_secret_access_key=STORAGE_SECRET_ACCESS_KEY or None,
            config=BotoConfig(signature_version="s3v4"),
            region_name="auto",
        )
    return _s3_client


def _put_object(key: str, data: bytes, content_type: str) -> str:
    s3 = _get_s3_client()
    s3.put_object(
        Bucket=STORAGE_BUCKET,
        Key=key,
        Body=data,
        ContentType=content_type,
    )
    if STORAGE_PUBLIC_URL:
        return f"{STORAGE_PUBLIC_URL.rstrip('/')}/{key}"
    return s3.generate_presigned_url(
        "get_object",
        Params={"Bucket": STORAGE_BUCKET, "Key": key},
        ExpiresIn=7 * 24 * 3600,
    )


def _write_local(key: str, data: bytes) -> str:
    path = media_dir() / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return f"{public_base_url()}/media/{key}"


async def upload_asset(key: str, data: bytes, content_type: str = "image/png") -> str:
    """
    Store bytes under `key` and return the public URL.
    """
    try:
        if STORAGE_BUCKET:
            public_url = await asyncio.to_thread(_put_object, key, data, content_type)
        else:
            public_url = _write_local(key, data)
    except Exception as e:
        logger.error(f"Upload failed for key={key}: {e}")
        raise RuntimeError(f"Failed to upload file: {e}")

    logger.info(f"Uploaded {len(data)} bytes: {public_url}")
    return public_url


async def upload_project_asset(
    project_id: str, asset_type: str, filename: str, data: bytes, content_type: str = "image/png"
) -> str:
    """Upload a pipeline artifact (original, transparent, mannequin, composite, video)."""
    key = project_asset_key(project_id, asset_type, filename)
    return await upload_asset(key, data, content_type)


# ── Download ─────────────────────────────────────────────────────────────────

def _local_media_path(url: str) -> Optional[Path]:
    """Map one of our own /media URLs back to the file on disk."""
    prefix = f"{public_base_url()}/media/"
    if STORAGE_BUCKET or not url.startswith(prefix):
        return None
    path = media_dir() / url[len(prefix):]
    return path if path.is_file() else None


async def download_bytes(url: str) -> bytes:
    """Download a file from a public URL and return raw bytes."""
    local = _local_media_path(url)
    if local is not None:
        return local.read_bytes()

    async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.content
