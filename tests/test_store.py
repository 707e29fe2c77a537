"""Project stores: blob handling, transitions, the Supabase backend, settings."""
import json
from types import SimpleNamespace

import pytest

from showreel.pipeline.models import (
    GenerationProject,
    Project,
    ProjectStateError,
    ProjectStatus,
    is_valid_transition,
)
from showreel.pipeline.store import (
    LocalProjectStore,
    SettingsStore,
    SupabaseProjectStore,
    get_project_store,
    get_showreel_store,
    get_uwear_store,
    now_iso,
    reset_stores,
)


def make_project(project_id="p1", **fields) -> Project:
    ts = now_iso()
    data = dict(
        id=project_id,
        product_type="t-shirt",
        product_name="Tee",
        original_image_url="http://localhost/media/a.png",
        created_at=ts,
        updated_at=ts,
    )
    data.update(fields)
    return Project(**data)


@pytest.fixture
def store(tmp_path):
    return LocalProjectStore("showreel_projects", Project, is_valid_transition, directory=tmp_path)


class TestReads:

    def test_missing_blob_is_empty(self, store):
        assert store.get_projects() == []

    def test_corrupt_blob_is_empty(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text("{not json", encoding="utf-8")
        assert store.get_projects() == []

    def test_non_array_blob_is_empty(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text('{"id": "p1"}', encoding="utf-8")
        assert store.get_projects() == []

    def test_unknown_id(self, store):
        store.insert(make_project())
        assert store.get_project("nope") is None

    def test_missing_dates_are_filled(self, store):
        row = make_project().model_dump(mode="json")
        row.pop("created_at")
        row["updated_at"] = "yesterday"
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps([row]), encoding="utf-8")

        project = store.get_project("p1")
        assert project.created_at
        assert project.updated_at != "yesterday"

    def test_unreadable_record_is_skipped(self, store):
        good = make_project("good").model_dump(mode="json")
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps([{"id": "bad"}, good]), encoding="utf-8")
        assert [p.id for p in store.get_projects()] == ["good"]


class TestWrites:

    def test_insert_and_read_back(self, store):
        store.insert(make_project())
        project = store.get_project("p1")
        assert project.status == ProjectStatus.PENDING
        assert project.product_name == "Tee"

    def test_update_status_forward(self, store):
        store.insert(make_project())
        updated = store.update_status("p1", ProjectStatus.PROCESSING_BACKGROUND)
        assert updated.status == ProjectStatus.PROCESSING_BACKGROUND
        assert store.get_project("p1").status == ProjectStatus.PROCESSING_BACKGROUND

    def test_invalid_transition_raises_and_keeps_record(self, store):
        store.insert(make_project())
        with pytest.raises(ProjectStateError, match="pending → rendering"):
            store.update_status("p1", ProjectStatus.RENDERING)
        assert store.get_project("p1").status == ProjectStatus.PENDING

    def test_error_message_is_stored(self, store):
        store.insert(make_project())
        store.update_status("p1", ProjectStatus.ERROR, "Background removal failed: boom")
        project = store.get_project("p1")
        assert project.status == ProjectStatus.ERROR
        assert project.error == "Background removal failed: boom"

    def test_update_status_unknown_project(self, store):
        assert store.update_status("ghost", ProjectStatus.ERROR, "x") is None

    def test_update_data_merges_fields(self, store):
        store.insert(make_project())
        store.update_data("p1", transparent_image_url="http://a/t.png")
        store.update_data("p1", mannequin_image_url="http://a/m.png")
        project = store.get_project("p1")
        assert project.transparent_image_url == "http://a/t.png"
        assert project.mannequin_image_url == "http://a/m.png"
        assert project.status == ProjectStatus.PENDING

    def test_update_data_unknown_project(self, store):
        assert store.update_data("ghost", video_url="x") is None

    def test_delete_and_clear(self, store):
        store.insert(make_project("a"))
        store.insert(make_project("b"))
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert [p.id for p in store.get_projects()] == ["b"]
        store.clear()
        assert store.get_projects() == []

    def test_blob_is_a_json_array(self, store):
        store.insert(make_project())
        rows = json.loads(store.path.read_text(encoding="utf-8"))
        assert isinstance(rows, list)
        assert rows[0]["status"] == "pending"


class TestFactory:

    def test_pipeline_stores_use_their_own_keys(self):
        assert get_showreel_store().storage_key == "showreel_projects"
        assert get_uwear_store().storage_key == "uwear_projects"
        assert get_uwear_store().model is GenerationProject

    def test_stores_are_cached(self):
        assert get_showreel_store() is get_showreel_store()

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("PROJECT_STORE", "redis")
        reset_stores()
        with pytest.raises(RuntimeError, match="Unknown PROJECT_STORE"):
            get_project_store("showreel_projects", Project)


class TestSettingsStore:

    def test_set_get_remove(self, tmp_path):
        settings = SettingsStore(tmp_path)
        assert settings.get("flag") is None
        settings.set("flag", "true")
        assert SettingsStore(tmp_path).get("flag") == "true"
        settings.remove("flag")
        assert settings.get("flag", "default") == "default"

    def test_corrupt_settings_are_ignored(self, tmp_path):
        (tmp_path / "settings.json").write_text("[[[", encoding="utf-8")
        assert SettingsStore(tmp_path).get("flag") is None


class TestNonObjectRows:

    def test_scalar_rows_are_skipped(self, store):
        good = make_project("good").model_dump(mode="json")
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps([1, None, "x", good]), encoding="utf-8")
        assert [p.id for p in store.get_projects()] == ["good"]

    def test_writes_still_work_over_junk_rows(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps([1, None, "x"]), encoding="utf-8")
        store.insert(make_project())
        assert [p.id for p in store.get_projects()] == ["p1"]


# ── Supabase backend against an in-memory table ─────────────────────────────

class FakeQuery:
    def __init__(self, table, op, arg=None):
        self.table = table
        self.op = op
        self.arg = arg
        self.order_by = None
        self.ids = None

    def order(self, column):
        self.order_by = column
        return self

    def in_(self, column, values):
        self.ids = list(values)
        return self

    def execute(self):
        return SimpleNamespace(data=self.table.run(self))


class FakeTable:
    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.log: list[tuple] = []

    def select(self, columns):
        return FakeQuery(self, "select", columns)

    def delete(self):
        return FakeQuery(self, "delete")

    def upsert(self, rows):
        return FakeQuery(self, "upsert", rows)

    def run(self, query):
        self.log.append((query.op, query.ids))
        if query.op == "select":
            rows = list(self.rows.values())
            if query.order_by:
                rows.sort(key=lambda r: r[query.order_by])
            return [{c: r[c] for c in query.arg.split(",")} for r in rows]
        if query.op == "delete":
            for row_id in query.ids:
                self.rows.pop(row_id, None)
            return []
        for row in query.arg:
            self.rows[row["id"]] = row
        return query.arg


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, FakeTable] = {}

    def table(self, name):
        return self.tables.setdefault(name, FakeTable())


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def remote(supabase):
    return SupabaseProjectStore("showreel_projects", Project, is_valid_transition, client=supabase)


class TestSupabaseStore:

    def test_rows_load_in_creation_order(self, remote, supabase):
        table = supabase.table("showreel_projects")
        for project_id, created in (("late", "2024-01-02T00:00:00+00:00"), ("early", "2024-01-01T00:00:00+00:00")):
            payload = make_project(project_id, created_at=created).model_dump(mode="json")
            table.rows[project_id] = {"id": project_id, "payload": payload, "created_at": created, "updated_at": created}

        assert [p.id for p in remote.get_projects()] == ["early", "late"]

    def test_upsert_row_shape(self, remote, supabase):
        remote.insert(make_project())
        row = supabase.table("showreel_projects").rows["p1"]
        assert set(row) == {"id", "payload", "created_at", "updated_at"}
        assert row["payload"]["product_name"] == "Tee"
        assert row["payload"]["status"] == "pending"
        assert row["created_at"] == row["payload"]["created_at"]

    def test_status_update_round_trips(self, remote):
        remote.insert(make_project())
        remote.update_status("p1", ProjectStatus.PROCESSING_BACKGROUND)
        assert remote.get_project("p1").status == ProjectStatus.PROCESSING_BACKGROUND

    def test_deleted_ids_are_removed_remotely(self, remote, supabase):
        remote.insert(make_project("a"))
        remote.insert(make_project("b"))
        table = supabase.table("showreel_projects")
        table.log.clear()

        assert remote.delete("a") is True
        assert set(table.rows) == {"b"}
        assert ("delete", ["a"]) in table.log

    def test_unchanged_rows_are_not_deleted(self, remote, supabase):
        remote.insert(make_project("a"))
        table = supabase.table("showreel_projects")
        table.log.clear()
        remote.update_data("a", video_url="http://a/v.mp4")
        assert all(op != "delete" for op, _ in table.log)

    def test_clear(self, remote, supabase):
        remote.insert(make_project("a"))
        remote.insert(make_project("b"))
        remote.clear()
        assert supabase.table("showreel_projects").rows == {}
        assert remote.get_projects() == []

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
        store = SupabaseProjectStore("showreel_projects", Project)
        with pytest.raises(RuntimeError, match="SUPABASE_URL"):
            store.get_projects()
