"""HTTP API via TestClient. Background tasks finish before each call returns."""
import json

import pytest
from fastapi.testclient import TestClient

from showreel.main import app
from tests.conftest import make_image


@pytest.fixture
def client():
    return TestClient(app)


def post_project(client, image=None, content_type="image/jpeg", **fields):
    data = {"product_type": "t-shirt", "product_name": "Cosmic Tee"}
    data.update(fields)
    return client.post(
        "/projects",
        data=data,
        files={"image": ("tee.jpg", image or make_image(fmt="JPEG"), content_type)},
    )


class TestProjects:

    def test_create_runs_pipeline(self, client):
        response = post_project(client, product_description="Glow in the dark")
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "pending"
        assert created["status_label"] == "Uploading"
        assert created["progress_pct"] == 10

        project = client.get(f"/projects/{created['id']}").json()
        assert project["status"] == "complete"
        assert project["progress_pct"] == 100
        assert project["video_url"]
        assert len(project["script"]["bullets"]) == 3

    def test_list(self, client):
        first = post_project(client).json()["id"]
        second = post_project(client, product_name="Other").json()["id"]
        ids = [p["id"] for p in client.get("/projects").json()]
        assert ids[:2] == [second, first]

    def test_bad_image_type(self, client):
        response = post_project(client, image=b"GIF89a", content_type="image/gif")
        assert response.status_code == 400
        assert response.json()["detail"] == "Only JPEG and PNG images are supported"

    def test_image_too_large(self, client):
        response = post_project(client, image=b"x" * (5 * 1024 * 1024 + 1))
        assert response.status_code == 400
        assert "5MB" in response.json()["detail"]

    def test_missing_field(self, client):
        response = client.post(
            "/projects",
            data={"product_type": "mug"},
            files={"image": ("a.jpg", make_image(fmt="JPEG"), "image/jpeg")},
        )
        assert response.status_code == 422

    def test_unknown_project(self, client):
        assert client.get("/projects/nope").status_code == 404
        assert client.delete("/projects/nope").status_code == 404
        assert client.post("/projects/nope/retry").status_code == 404

    def test_retry_needs_error_status(self, client):
        project_id = post_project(client).json()["id"]
        response = client.post(f"/projects/{project_id}/retry")
        assert response.status_code == 409
        assert "Only failed projects" in response.json()["detail"]

    def test_delete_and_clear(self, client):
        a = post_project(client).json()["id"]
        post_project(client)
        assert client.delete(f"/projects/{a}").json() == {"status": "deleted", "id": a}
        assert client.get(f"/projects/{a}").status_code == 404
        assert client.delete("/projects").json() == {"status": "cleared"}
        assert client.get("/projects").json() == []


class TestTryOn:

    def post(self, client, **fields):
        return client.post(
            "/tryon",
            data=fields,
            files={"clothing_image": ("shirt.png", make_image(fmt="PNG"), "image/png")},
        )

    def test_create_and_complete(self, client):
        response = self.post(
            client,
            clothing_type="shirt",
            model_options=json.dumps({"gender": "male", "ethnicity": "african"}),
            camera_options=json.dumps({"angle": "side"}),
            enhance="true",
        )
        assert response.status_code == 201
        project_id = response.json()["id"]
        assert response.json()["model_options"]["gender"] == "male"
        assert response.json()["background_url"].startswith("https://")

        project = client.get(f"/tryon/{project_id}").json()
        assert project["status"] == "complete"
        assert project["enhanced_image_url"] == project["generated_image_url"]
        assert [p["id"] for p in client.get("/tryon").json()] == [project_id]

    def test_bad_options_json(self, client):
        response = self.post(client, model_options="{broken")
        assert response.status_code == 400
        assert "Invalid model_options" in response.json()["detail"]

    def test_bad_clothing_type(self, client):
        assert self.post(client, clothing_type="cape").status_code == 400

    def test_variations(self, client):
        project_id = self.post(client).json()["id"]
        assert len(client.post(f"/tryon/{project_id}/variations").json()["variations"]) == 4
        body = client.post(f"/tryon/{project_id}/variations", json={"count": 2}).json()
        assert body["id"] == project_id
        assert len(body["variations"]) == 2

    def test_unknown(self, client):
        assert client.get("/tryon/nope").status_code == 404
        assert client.post("/tryon/nope/variations").status_code == 404


class TestSettingsAndService:

    def test_api_mode_switch(self, client):
        assert client.get("/settings/api-mode").json() == {
            "use_real_apis": False, "source": "environment", "env_value": False,
        }
        body = client.put("/settings/api-mode", json={"use_real_apis": True}).json()
        assert body["use_real_apis"] is True
        assert body["source"] == "override"

        body = client.delete("/settings/api-mode").json()
        assert body["use_real_apis"] is False
        assert body["source"] == "environment"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["storage"] == "local"
        assert body["use_real_apis"] is False

    def test_presets(self, client):
        body = client.get("/presets").json()
        assert "t-shirt" in body["product_types"]
        assert "tshirt" in body["clothing_types"]
        assert body["demo_items"]

    def test_metrics(self, client):
        post_project(client)
        body = client.get("/metrics").json()
        assert body["counters"]["requests.projects.create"] == 1
        assert body["counters"]["pipeline.completed"] == 1
