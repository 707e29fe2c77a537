"""
Project persistence.

Each pipeline keeps its projects as one key-value blob under a storage key
(`showreel_projects`, `uwear_projects`). Writes replace the whole blob, so the
last write wins; a process-local lock serialises read-modify-write cycles.

Backends:
  - LocalProjectStore:    JSON file per key under SHOWREEL_DATA_DIR (default)
  - SupabaseProjectStore: one row per project in a table named after the key
"""

import os
import json
import logging
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from supabase import create_client, Client

from .models import GenerationProject, Project, ProjectStateError, is_valid_transition

logger = logging.getLogger(__name__)

SHOWREEL_STORAGE_KEY = "showreel_projects"
UWEAR_STORAGE_KEY = "uwear_projects"
SETTINGS_FILE = "settings.json"

T = TypeVar("T", bound=BaseModel)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def data_dir() -> Path:
    """Directory holding the local blobs. Read on every call so tests can redirect it."""
    return Path(os.getenv("SHOWREEL_DATA_DIR", ".showreel"))


def _normalise_dates(row: dict) -> dict:
    """Fill missing or unparsable timestamps so every record carries ISO dates."""
    for field in ("created_at", "updated_at"):
        value = row.get(field)
        try:
            if not value:
                raise ValueError
            datetime.fromisoformat(str(value))
        except ValueError:
            row[field] = now_iso()
    return row


# ── Base ─────────────────────────────────────────────────────────────────────

class ProjectStore(Generic[T]):
    """
    Shared read-modify-write logic; backends only load and save raw rows.

    Args:
        storage_key:      Blob key / table name.
        model:            Pydantic model of one record.
        transition_check: Optional (old_status, new_status) -> bool guard.
    """

    def __init__(
        self,
        storage_key: str,
        model: Type[T],
        transition_check: Optional[Callable] = None,
    ):
        self.storage_key = storage_key
        self.model = model
        self.transition_check = transition_check
        self._lock = threading.RLock()

    # Backend hooks
    def _load_rows(self) -> list[dict]:
        raise NotImplementedError

    def _save_rows(self, rows: list[dict]):
        raise NotImplementedError

    def _parse(self, rows: list[dict]) -> list[T]:
        records = []
        for row in rows:
            if not isinstance(row, dict):
                logger.error(f"Skipping non-object record in {self.storage_key}: {row!r}")
                continue
            try:
                records.append(self.model(**_normalise_dates(dict(row))))
            except ValidationError as e:
                logger.error(f"Skipping unreadable record in {self.storage_key}: {e}")
        return records

    # ── Reads ────────────────────────────────────────────────────────────

    def get_projects(self) -> list[T]:
        """All records. A missing or corrupt blob yields an empty list."""
        try:
            rows = self._load_rows()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to parse projects from {self.storage_key}: {e}")
            return []
        return self._parse(rows)

    def get_project(self, project_id: str) -> Optional[T]:
        for project in self.get_projects():
            if project.id == project_id:
                return project
        return None

    # ── Writes ───────────────────────────────────────────────────────────

    def insert(self, project: T) -> T:
        with self._lock:
            projects = self.get_projects()
            projects.append(project)
            self._save(projects)
        return project

    def update_status(self, project_id: str, status, error: Optional[str] = None) -> Optional[T]:
        with self._lock:
            projects = self.get_projects()
            index = self._index_of(projects, project_id)
            if index is None:
                logger.error(f"Failed to update status for project {project_id}: Project not found")
                return None

            current = projects[index]
            old_status = current.status
            if self.transition_check and not self.transition_check(old_status, status):
                raise ProjectStateError(
                    f"Invalid status transition for project {project_id}: "
                    f"{_value(old_status)} → {_value(status)}"
                )

            if old_status != status:
                suffix = f" (Error: {error})" if error else ""
                logger.info(f"Project {project_id} status: {_value(old_status)} → {_value(status)}{suffix}")

            changes = {"status": status, "updated_at": now_iso()}
            if error:
                changes["error"] = error
            projects[index] = current.model_copy(update=changes)
            self._save(projects)
            return projects[index]

    def update_data(self, project_id: str, **fields) -> Optional[T]:
        with self._lock:
            projects = self.get_projects()
            index = self._index_of(projects, project_id)
            if index is None:
                logger.error(f"Failed to update data for project {project_id}: Project not found")
                return None

            merged = projects[index].model_dump()
            merged.update(fields)
            merged["updated_at"] = now_iso()
            projects[index] = self.model(**merged)
            self._save(projects)
            return projects[index]

    def delete(self, project_id: str) -> bool:
        with self._lock:
            projects = self.get_projects()
            remaining = [p for p in projects if p.id != project_id]
            if len(remaining) == len(projects):
                return False
            self._save(remaining)
            return True

    def clear(self):
        with self._lock:
            self._save([])
        logger.info(f"Cleared all projects in {self.storage_key}")

    # ── Helpers ──────────────────────────────────────────────────────────

    def _save(self, projects: list[T]):
        self._save_rows([p.model_dump(mode="json") for p in projects])

    @staticmethod
    def _index_of(projects: list, project_id: str) -> Optional[int]:
        for i, project in enumerate(projects):
            if project.id == project_id:
                return i
        return None


def _value(status) -> str:
    return getattr(status, "value", status)


# ── Local JSON blob ──────────────────────────────────────────────────────────

class LocalProjectStore(ProjectStore[T]):
    """One JSON array per storage key, replaced atomically on each write."""

    def __init__(self, storage_key: str, model: Type[T], transition_check=None, directory: Optional[Path] = None):
        super().__init__(storage_key, model, transition_check)
        self.directory = Path(directory) if directory else data_dir()

    @property
    def path(self) -> Path:
        return self.directory / f"{self.storage_key}.json"

    def _load_rows(self) -> list[dict]:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return []
        rows = json.loads(text)
        if not isinstance(rows, list):
            raise ValueError(f"expected a JSON array, got {type(rows).__name__}")
        return rows

    def _save_rows(self, rows: list[dict]):
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{self.storage_key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save projects to {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


# ── Supabase table ───────────────────────────────────────────────────────────

class SupabaseProjectStore(ProjectStore[T]):
    """
    Rows of {id, payload, created_at, updated_at} in a table named after the
    storage key. The whole project lives in the `payload` JSON column.
    """

    def __init__(self, storage_key: str, model: Type[T], transition_check=None, client: Optional[Client] = None):
        super().__init__(storage_key, model, transition_check)
        self._client = client

    def _get_client(self) -> Client:
        """Lazy-init Supabase client using the service role key."""
        if self._client is None:
            url = os.getenv("SUPABASE_URL", "")
            key = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
            if not url or not key:
                raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
            self._client = create_client(url, key)
        return self._client

    def _load_rows(self) -> list[dict]:
        result = (
            self._get_client()
            .table(self.storage_key)
            .select("payload")
            .order("created_at")
            .execute()
        )
        return [row["payload"] for row in (result.data or [])]

    def _save_rows(self, rows: list[dict]):
        sb = self._get_client()
        table = sb.table(self.storage_key)
        keep_ids = [row["id"] for row in rows]

        existing = table.select("id").execute()
        stale = [r["id"] for r in (existing.data or []) if r["id"] not in keep_ids]
        if stale:
            table.delete().in_("id", stale).execute()

        if rows:
            table.upsert([
                {
                    "id": row["id"],
                    "payload": row,
                    "created_at": row.get("created_at"),
                    "updated_at": row.get("updated_at"),
                }
                for row in rows
            ]).execute()


# ── Settings blob ────────────────────────────────────────────────────────────

class SettingsStore:
    """Small key-value JSON file for user-level switches (e.g. API mode)."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else data_dir()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.directory / SETTINGS_FILE

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except ValueError as e:
            logger.error(f"Settings file {self.path} is corrupt, ignoring: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default=None):
        return self._read().get(key, default)

    def set(self, key: str, value):
        with self._lock:
            data = self._read()
            data[key] = value
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def remove(self, key: str):
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ── Factory ──────────────────────────────────────────────────────────────────

_stores: dict[str, ProjectStore] = {}


def get_project_store(storage_key: str, model: Type[T], transition_check=None) -> ProjectStore[T]:
    """Return the configured store for a key (PROJECT_STORE=local|supabase)."""
    store = _stores.get(storage_key)
    if store is None:
        backend = os.getenv("PROJECT_STORE", "local").lower()
        if backend == "supabase":
            store = SupabaseProjectStore(storage_key, model, transition_check)
        elif backend == "local":
            store = LocalProjectStore(storage_key, model, transition_check)
        else:
            raise RuntimeError(f"Unknown PROJECT_STORE backend '{backend}'")
        _stores[storage_key] = store
        logger.info(f"Project store for {storage_key}: {backend}")
    return store


def reset_stores():
    """Drop cached store instances (used when the data dir or backend changes)."""
    _stores.clear()


# ── Pipeline stores ──────────────────────────────────────────────────────────

def get_showreel_store() -> ProjectStore:
    return get_project_store(SHOWREEL_STORAGE_KEY, Project, is_valid_transition)


def get_uwear_store() -> ProjectStore:
    return get_project_store(UWEAR_STORAGE_KEY, GenerationProject)
