"""Integration tests for pastforward.api.main — FastAPI REST API endpoints.

All tests use the FastAPI TestClient with a fake generator client so that no
network access occurs.  The TestClient runs background tasks before a
request returns, so a ``POST /api/generate`` has finished its batch by the
time the next request is made.  Tests cover every endpoint:

- ``GET /api/config`` — Configuration delivery.
- ``POST /api/photo`` — Photo upload.
- ``POST /api/generate`` — Batch generation.
- ``GET /api/results`` — Result snapshot.
- ``POST /api/decades/{d}/regenerate`` — Single-decade regeneration.
- ``PUT /api/decades/{d}/caption`` — Caption overrides.
- ``GET /api/decades/{d}/download`` / ``share`` — Per-decade exports.
- ``GET /api/album`` / ``GET /api/album/share`` — Album exports.
- ``POST /api/reset`` — Start over.
"""

from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from pastforward.core.images import to_data_url


@pytest.fixture
def uploaded(test_client, sample_photo):
    """TestClient with a photo already uploaded."""
    resp = test_client.post("/api/photo", json={"image": sample_photo})
    assert resp.status_code == 200
    return test_client


@pytest.fixture
def generated(uploaded):
    """TestClient after one finished batch."""
    resp = uploaded.post("/api/generate")
    assert resp.status_code == 202
    return uploaded


# ---------------------------------------------------------------------------
# Configuration endpoint tests.
# ---------------------------------------------------------------------------


class TestGetConfig:
    """Test GET /api/config — application configuration."""

    def test_config_returns_decades(self, test_client):
        resp = test_client.get("/api/config")
        assert resp.status_code == 200
        data = resp.json()
        assert [d["id"] for d in data["decades"]] == ["1950s", "1960s", "1970s"]
        assert data["decades"][0]["label"] == "1950s"

    def test_config_returns_version_and_workers(self, test_client):
        data = test_client.get("/api/config").json()
        assert "version" in data
        assert data["worker_count"] == 2
        assert data["backend"] == "fake"


# ---------------------------------------------------------------------------
# Photo upload tests.
# ---------------------------------------------------------------------------


class TestUploadPhoto:
    """Test POST /api/photo."""

    def test_upload_returns_pending_results(self, test_client, sample_photo):
        resp = test_client.post("/api/photo", json={"image": sample_photo})
        assert resp.status_code == 200
        data = resp.json()
        assert data["has_photo"] is True
        assert data["album_ready"] is False
        assert [d["status"] for d in data["decades"]] == ["pending"] * 3

    def test_upload_rejects_non_image(self, test_client):
        resp = test_client.post("/api/photo", json={"image": to_data_url(b"hello")})
        assert resp.status_code == 400

    def test_upload_rejects_plain_text(self, test_client):
        resp = test_client.post("/api/photo", json={"image": "hello"})
        assert resp.status_code == 400

    def test_upload_requires_image(self, test_client):
        resp = test_client.post("/api/photo", json={"image": ""})
        assert resp.status_code == 422

    def test_new_upload_clears_results(self, generated, sample_photo):
        generated.put("/api/decades/1970s/caption", json={"caption": "Groovy Me"})
        data = generated.post("/api/photo", json={"image": sample_photo}).json()
        assert all(d["status"] == "pending" and d["image"] is None for d in data["decades"])
        assert all(d["caption"] is None for d in data["decades"])


# ---------------------------------------------------------------------------
# Generation tests.
# ---------------------------------------------------------------------------


class TestGenerate:
    """Test POST /api/generate and GET /api/results."""

    def test_generate_without_photo(self, test_client):
        resp = test_client.post("/api/generate")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Upload a photo before generating."

    def test_generate_marks_everything_pending(self, uploaded):
        data = uploaded.post("/api/generate").json()
        assert data["generating"] is True
        assert [d["status"] for d in data["decades"]] == ["pending"] * 3

    def test_results_after_batch(self, generated, fake_client):
        data = generated.get("/api/results").json()
        assert data["generating"] is False
        assert data["album_ready"] is True
        assert all(d["status"] == "done" for d in data["decades"])
        assert all(d["image"].startswith("data:image/png;base64,") for d in data["decades"])
        assert len(fake_client.calls) == 3

    def test_failed_decade_reported(self, uploaded, fake_client):
        fake_client.failures["1960s"] = "quota exceeded"
        uploaded.post("/api/generate")
        decades = {d["decade"]: d for d in uploaded.get("/api/results").json()["decades"]}
        assert decades["1960s"]["status"] == "error"
        assert decades["1960s"]["error"] == "quota exceeded"
        assert decades["1960s"]["image"] is None


# ---------------------------------------------------------------------------
# Per-decade endpoint tests.
# ---------------------------------------------------------------------------


class TestRegenerate:
    """Test POST /api/decades/{decade}/regenerate."""

    def test_regenerate_failed_decade(self, uploaded, fake_client):
        fake_client.failures["1960s"] = "quota exceeded"
        uploaded.post("/api/generate")
        resp = uploaded.post("/api/decades/1960s/regenerate")
        assert resp.status_code == 200
        data = resp.json()
        assert data["regenerated"] is True
        assert data["result"]["status"] == "done"
        assert uploaded.get("/api/results").json()["album_ready"] is True

    def test_regenerate_unknown_decade(self, uploaded):
        resp = uploaded.post("/api/decades/1890s/regenerate")
        assert resp.status_code == 404
        assert "1890s" in resp.json()["detail"]

    def test_regenerate_without_photo(self, test_client):
        assert test_client.post("/api/decades/1950s/regenerate").status_code == 400


class TestCaption:
    """Test PUT /api/decades/{decade}/caption."""

    def test_set_caption(self, generated):
        resp = generated.put("/api/decades/1970s/caption", json={"caption": "Groovy Me"})
        assert resp.status_code == 200
        assert resp.json()["caption"] == "Groovy Me"

    def test_clear_caption(self, generated):
        generated.put("/api/decades/1970s/caption", json={"caption": "Groovy Me"})
        resp = generated.put("/api/decades/1970s/caption", json={"caption": None})
        assert resp.json()["caption"] is None

    def test_caption_unknown_decade(self, generated):
        resp = generated.put("/api/decades/1890s/caption", json={"caption": "x"})
        assert resp.status_code == 404

    def test_caption_too_long(self, generated):
        resp = generated.put("/api/decades/1970s/caption", json={"caption": "x" * 121})
        assert resp.status_code == 422


class TestDecadeExports:
    """Test per-decade download and share."""

    def test_download(self, generated):
        resp = generated.get("/api/decades/1950s/download")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert 'filename="past-forward-1950s.jpg"' in resp.headers["content-disposition"]
        assert Image.open(BytesIO(resp.content)).size == (48, 64)

    def test_download_before_done(self, uploaded):
        resp = uploaded.get("/api/decades/1950s/download")
        assert resp.status_code == 409

    def test_download_unknown_decade(self, generated):
        assert generated.get("/api/decades/1890s/download").status_code == 404

    def test_share(self, generated):
        data = generated.get("/api/decades/1970s/share").json()
        assert data["filename"] == "past-forward-1970s.jpg"
        assert data["title"] == "My 1970s Look!"
        assert data["data_url"].startswith("data:image/png;base64,")


# ---------------------------------------------------------------------------
# Album endpoint tests.
# ---------------------------------------------------------------------------


class TestAlbum:
    """Test GET /api/album and GET /api/album/share."""

    def test_album_before_ready(self, uploaded):
        resp = uploaded.get("/api/album")
        assert resp.status_code == 409
        data = resp.json()
        assert data["detail"] == "Please wait for all images to finish generating."
        assert data["missing"] == ["1950s", "1960s", "1970s"]

    def test_album_download(self, generated):
        resp = generated.get("/api/album")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/jpeg"
        assert 'filename="past-forward-album.jpg"' in resp.headers["content-disposition"]
        assert Image.open(BytesIO(resp.content)).format == "JPEG"

    def test_album_composition_failure(self, generated, monkeypatch):
        from pastforward.core import session as session_module
        from pastforward.core.errors import CompositionFailure

        def broken(*args, **kwargs):
            raise CompositionFailure("disk on fire")

        monkeypatch.setattr(session_module, "compose_album", broken)
        resp = generated.get("/api/album")
        assert resp.status_code == 500
        assert resp.json()["detail"] == (
            "Sorry, there was an error creating your album. Please try again."
        )

    def test_album_share(self, generated):
        data = generated.get("/api/album/share").json()
        assert data["filename"] == "past-forward-album-1950s-1970s.jpg"
        assert data["title"] == "My Past Forward Album: 1950s - 1970s"
        assert data["mime_type"] == "image/jpeg"
        assert data["data_url"].startswith("data:image/jpeg;base64,")


# ---------------------------------------------------------------------------
# Reset tests.
# ---------------------------------------------------------------------------


class TestReset:
    """Test POST /api/reset."""

    def test_reset_clears_everything(self, generated):
        generated.put("/api/decades/1970s/caption", json={"caption": "Groovy Me"})
        data = generated.post("/api/reset").json()
        assert data["has_photo"] is False
        assert data["album_ready"] is False
        assert all(d["status"] == "pending" and d["caption"] is None for d in data["decades"])

    def test_generate_after_reset_needs_photo(self, generated):
        generated.post("/api/reset")
        assert generated.post("/api/generate").status_code == 400
