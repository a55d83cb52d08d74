"""
Tests for the HTTP API
"""

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from backend.api import canvas as canvas_api
from backend.main import app
from maskcore.canvas import Canvas


@pytest.fixture
def client(monkeypatch):
    """Client with a fresh editing session."""
    monkeypatch.setattr(canvas_api, "_canvas", Canvas())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def loaded(client):
    """Client with a 50x50 image loaded (100x100 mask)."""
    response = client.post("/api/canvas/image", json={"width": 50, "height": 50})
    assert response.status_code == 200
    return client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestSession:
    """Tests for session endpoints."""

    def test_state_without_image(self, client):
        response = client.get("/api/canvas")
        assert response.status_code == 200
        assert response.json()["loaded"] is False

    def test_edit_without_image(self, client):
        response = client.post("/api/canvas/stroke/begin", json={"x": 1, "y": 1})
        assert response.status_code == 400

    def test_load_image(self, client):
        response = client.post(
            "/api/canvas/image",
            json={"width": 50, "height": 25, "view_width": 200, "view_height": 200},
        )
        data = response.json()

        assert response.status_code == 200
        assert (data["mask_width"], data["mask_height"]) == (100, 50)
        assert data["view"]["scale"] == pytest.approx(4.0)
        assert data["view"]["mask_scale"] == 2.0

    def test_load_invalid_size(self, client):
        response = client.post("/api/canvas/image", json={"width": 0, "height": 10})
        assert response.status_code == 400

    def test_unload(self, loaded):
        assert loaded.delete("/api/canvas/image").status_code == 200
        assert loaded.get("/api/canvas").json()["loaded"] is False

    def test_tool(self, loaded):
        response = loaded.put("/api/canvas/tool", json={"class_value": 3, "brush_radius": 4.5})
        data = response.json()
        assert data["current_class"] == 3
        assert data["brush_radius"] == 4.5

    def test_tool_invalid(self, loaded):
        assert loaded.put("/api/canvas/tool", json={"class_value": 9}).status_code == 422
        assert loaded.put("/api/canvas/tool", json={"brush_radius": -1}).status_code == 422


class TestView:
    """Tests for view endpoints."""

    def test_pan_and_pinch(self, loaded):
        loaded.post("/api/canvas/view/pan", json={"dx": 10, "dy": 20})
        response = loaded.post("/api/canvas/view/pinch", json={"scale": 2, "x": 10, "y": 20})
        data = response.json()

        assert data["translation"] == pytest.approx([10, 20])
        assert data["scale"] == pytest.approx(2.0)

    def test_locate(self, loaded):
        response = loaded.post("/api/canvas/view/locate", json={"x": 3, "y": 4})
        data = response.json()
        assert data["image"] == pytest.approx([3, 4])
        assert data["mask"] == pytest.approx([6, 8])

    def test_rotate_and_reset(self, loaded):
        rotated = loaded.post("/api/canvas/view/rotate", json={"angle": 0.5, "x": 0, "y": 0})
        assert rotated.json()["rotation"] == pytest.approx(0.5)

        reset = loaded.post("/api/canvas/view/reset")
        assert reset.json()["rotation"] == 0.0


class TestEdits:
    """Tests for stroke, fill and history endpoints."""

    def test_stroke_and_undo(self, loaded):
        loaded.post("/api/canvas/stroke/begin", json={"x": 10, "y": 10})
        loaded.post("/api/canvas/stroke/continue", json={"x": 20, "y": 10})
        response = loaded.post("/api/canvas/stroke/end")
        data = response.json()

        assert data["applied"] is True
        assert data["history"]["undo_count"] == 1

        undo = loaded.post("/api/canvas/undo").json()
        assert undo["applied"] is True
        assert undo["history"]["can_redo"] is True

        assert loaded.post("/api/canvas/undo").json()["applied"] is False

    def test_fill_and_clear(self, loaded):
        fill = loaded.post("/api/canvas/fill", json={"x": 5, "y": 5}).json()
        assert fill["applied"] is True
        assert fill["bbox"] == [0, 0, 100, 100]

        clear = loaded.post("/api/canvas/clear").json()
        assert clear["applied"] is True
        assert clear["history"]["undo_count"] == 2

    def test_download_mask(self, loaded):
        loaded.post("/api/canvas/fill", json={"x": 5, "y": 5})
        response = loaded.get("/api/canvas/mask")

        assert response.status_code == 200
        assert response.headers["x-mask-width"] == "100"
        assert len(response.content) == 100 * 100
        assert set(response.content) == {1}

    def test_restore_mask(self, loaded):
        data = np.zeros((100, 100), dtype=np.uint8)
        data[10:20, 10:20] = 4

        response = loaded.put("/api/canvas/mask", content=data.tobytes())
        assert response.status_code == 200

        downloaded = loaded.get("/api/canvas/mask").content
        assert downloaded == data.tobytes()

    def test_restore_mask_wrong_size(self, loaded):
        response = loaded.put("/api/canvas/mask", content=b"\x00" * 10)
        assert response.status_code == 422

    def test_restore_mask_too_large(self, loaded, monkeypatch):
        """Declared size over the limit is rejected and nothing is applied."""
        monkeypatch.setattr(canvas_api, "MAX_RESTORE_BYTES", 100)

        response = loaded.put("/api/canvas/mask", content=b"\x01" * 200)

        assert response.status_code == 413
        assert set(loaded.get("/api/canvas/mask").content) == {0}


class TestAnnotations:
    """Tests for import and polygon export."""

    def test_classes(self, client):
        classes = client.get("/api/annotations/classes").json()
        assert len(classes) == 8
        assert classes[0]["class_value"] == 1
        assert classes[0]["color"] == "#FF0000"

    def test_import(self, loaded, tmp_path):
        image = np.full((50, 50, 3), 255, dtype=np.uint8)
        image[:, :25] = (0, 0, 255)
        path = tmp_path / "labels.png"
        Image.fromarray(image).save(path)

        response = loaded.post("/api/annotations/import", json={"path": str(path)})
        data = response.json()

        assert response.status_code == 200
        assert len(data["classes"]) == 1
        assert data["pixel_counts"] == {"1": 25 * 50}

    def test_import_missing_file(self, loaded, tmp_path):
        response = loaded.post("/api/annotations/import", json={"path": str(tmp_path / "nope.png")})
        assert response.status_code == 400

    def test_polygons(self, loaded):
        loaded.post("/api/canvas/fill", json={"x": 5, "y": 5})

        response = loaded.get("/api/annotations/polygons")
        data = response.json()

        assert response.status_code == 200
        assert data["epsilon"] == 2.0
        assert [c["class_value"] for c in data["classes"]] == [1]
        assert len(data["classes"][0]["polygons"]) == 1
        assert data["classes"][0]["areas"][0] > 2000

    def test_polygons_negative_epsilon(self, loaded):
        response = loaded.get("/api/annotations/polygons", params={"epsilon": -1})
        assert response.status_code == 422
