"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the HTTP layer end to end with the FastAPI TestClient against the
in-memory database:

- Auth guards on player and admin endpoints
- Result → status code mapping (201/202/404/409/422/503)
- Upload handling for artwork submissions
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import auth, get_points, make_event, make_token
from sqlalchemy.exc import OperationalError

from artbattle.database.models import EventStatus
from artbattle.services import scoring_service

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _points_down(*args, **kwargs):
    raise OperationalError("upsert", {}, Exception("connection reset"))


@pytest.fixture
def upload_dir(tmp_path, monkeypatch) -> Path:
    monkeypatch.setattr("artbattle.services.upload_service.UPLOAD_DIR", tmp_path)
    return tmp_path


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    ADMIN_POST_ENDPOINTS = [
        "/api/admin/events/refresh-status",
        "/api/admin/reconcile",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_admin_rejects_no_auth(self, client, endpoint):
        assert client.post(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_admin_rejects_invalid_token(self, client, endpoint):
        resp = client.post(endpoint, headers=auth("not-a-jwt"))
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_admin_rejects_non_admin(self, client, endpoint):
        resp = client.post(endpoint, headers=auth(make_token(uuid.uuid4())))
        assert resp.status_code == 403

    def test_subject_must_be_uuid(self, client, battle):
        resp = client.post(
            f"/api/events/{battle['event_id']}/join", headers=auth(make_token("12345"))
        )
        assert resp.status_code == 401

    def test_like_requires_token(self, client, battle):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/like"
        )
        assert resp.status_code == 401


# ===========================================================================
# Events
# ===========================================================================
class TestEventRoutes:
    def test_join_then_rejoin(self, client, db_engine):
        event_id = make_event(db_engine)
        headers = auth(make_token(uuid.uuid4(), username="newcomer"))

        first = client.post(f"/api/events/{event_id}/join", headers=headers)
        second = client.post(f"/api/events/{event_id}/join", headers=headers)

        assert first.status_code == 201
        assert first.json()["team"] == "A"
        assert first.json()["team_name"] == "Crimson"
        assert second.status_code == 200
        assert second.json()["joined"] is False

    def test_join_ended_event(self, client, db_engine):
        event_id = make_event(db_engine, status=EventStatus.ENDED)
        resp = client.post(
            f"/api/events/{event_id}/join", headers=auth(make_token(uuid.uuid4()))
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["reason"] == "event_not_ongoing"

    def test_scores(self, client, battle):
        resp = client.get(f"/api/events/{battle['event_id']}/scores")
        assert resp.status_code == 200
        body = resp.json()
        assert [t["team"] for t in body["teams"]] == ["A", "B"]
        assert body["leader"] is None

    def test_scores_unknown_event(self, client):
        assert client.get(f"/api/events/{uuid.uuid4()}/scores").status_code == 404

    def test_theme(self, client, battle):
        resp = client.get(f"/api/events/{battle['event_id']}/theme")
        assert resp.status_code == 200
        assert resp.json()["theme"] == "Falling leaves"
        assert resp.json()["uploads_open"] is True

    def test_theme_before_midway(self, client, db_engine):
        event_id = make_event(
            db_engine,
            midway=datetime.now(UTC) + timedelta(minutes=30),
            midway_theme="Bare branches",
        )
        body = client.get(f"/api/events/{event_id}/theme").json()
        assert body["theme"] == "Falling leaves"
        assert body["uploads_open"] is False
        assert body["midway_time"] is not None


# ===========================================================================
# Artworks
# ===========================================================================
class TestArtworkRoutes:
    def test_upload_creates_artwork(self, client, db_engine, battle, upload_dir):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks",
            headers=auth(make_token(battle["u2"])),
            data={"title": "Tide", "description": "Waves"},
            files={"file": ("tide.png", PNG, "image/png")},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["points_awarded"] == 3
        stored = upload_dir / body["image_url"].rsplit("/", 1)[-1]
        assert stored.read_bytes() == PNG
        assert get_points(db_engine, battle["u2"], battle["event_id"]).artwork_points == 3

    def test_rejected_upload_removes_image(self, client, db_engine, upload_dir):
        event_id = make_event(db_engine)
        resp = client.post(
            f"/api/events/{event_id}/artworks",
            headers=auth(make_token(uuid.uuid4())),
            data={"title": "Tide"},
            files={"file": ("tide.png", PNG, "image/png")},
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["reason"] == "not_participant"
        assert list(upload_dir.iterdir()) == []

    def test_non_image_upload(self, client, battle, upload_dir):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks",
            headers=auth(make_token(battle["u2"])),
            data={"title": "Notes"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert resp.status_code == 422

    def test_like_toggle(self, client, db_engine, battle):
        url = f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/like"
        headers = auth(make_token(battle["u2"]))

        liked = client.post(url, headers=headers)
        assert liked.status_code == 200
        assert liked.json()["liked"] is True
        assert get_points(db_engine, battle["u1"], battle["event_id"]).like_points == 1

        unliked = client.post(url, headers=headers)
        assert unliked.json()["liked"] is False
        assert get_points(db_engine, battle["u1"], battle["event_id"]).like_points == 0

    def test_like_own_artwork(self, client, battle):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/like",
            headers=auth(make_token(battle["u1"])),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["reason"] == "own_artwork"

    def test_like_unknown_artwork(self, client, battle):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks/{uuid.uuid4()}/like",
            headers=auth(make_token(battle["u2"])),
        )
        assert resp.status_code == 404

    def test_attack_requires_counter_art(self, client, battle):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/attack",
            headers=auth(make_token(battle["u2"])),
            data={"fight_title": ""},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["reason"] == "counter_art_required"

    def test_attack_with_counter_art(self, client, db_engine, battle, upload_dir):
        url = f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/attack"
        headers = auth(make_token(battle["u2"]))

        first = client.post(
            url, headers=headers, data={"fight_title": "Riposte"},
            files={"file": ("r.png", PNG, "image/png")},
        )
        second = client.post(
            url, headers=headers, data={"fight_title": "Riposte"},
            files={"file": ("r2.png", PNG, "image/png")},
        )

        assert first.status_code == 201
        assert first.json()["fight_artwork_id"] is not None
        assert second.status_code == 409
        assert second.json()["detail"]["reason"] == "already_attacked"
        # Only the accepted counter art is kept
        assert len(list(upload_dir.iterdir())) == 1
        assert get_points(db_engine, battle["u2"], battle["event_id"]).attack_points == 2

    def test_overlong_fight_title_is_422(self, client, db_engine, battle, upload_dir):
        resp = client.post(
            f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/attack",
            headers=auth(make_token(battle["u2"])),
            data={"fight_title": "R" * 201},
            files={"file": ("r.png", PNG, "image/png")},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["reason"] == "invalid_input"
        assert list(upload_dir.iterdir()) == []
        assert get_points(db_engine, battle["u2"], battle["event_id"]) is None

    def test_storage_failure_is_503(self, client, battle):
        def down(*args, **kwargs):
            raise OperationalError("insert", {}, Exception("server closed the connection"))

        with patch.object(scoring_service, "_toggle_like_row", side_effect=down):
            resp = client.post(
                f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/like",
                headers=auth(make_token(battle["u2"])),
            )
        assert resp.status_code == 503
        assert resp.json()["detail"]["reason"] == "storage_unavailable"


# ===========================================================================
# Partial success & admin retry
# ===========================================================================
class TestPendingAwards:
    def test_partial_then_retry(self, client, db_engine, battle):
        with patch.object(scoring_service, "record_award", side_effect=_points_down):
            resp = client.post(
                f"/api/events/{battle['event_id']}/artworks/{battle['artwork_id']}/like",
                headers=auth(make_token(battle["u2"])),
            )
        assert resp.status_code == 202
        body = resp.json()
        assert body["liked"] is True
        assert body["warning"]
        assert get_points(db_engine, battle["u1"], battle["event_id"]) is None

        admin = auth(make_token(uuid.uuid4(), is_admin=True))
        retried = client.post("/api/admin/awards/retry", headers=admin, json=body["pending"])
        again = client.post("/api/admin/awards/retry", headers=admin, json=body["pending"])

        assert retried.status_code == 200
        assert retried.json()["points_awarded"] == 1
        assert again.json()["already_awarded"] is True
        assert get_points(db_engine, battle["u1"], battle["event_id"]).like_points == 1

    def test_retry_rejects_bad_award_type(self, client):
        resp = client.post(
            "/api/admin/awards/retry",
            headers=auth(make_token(uuid.uuid4(), is_admin=True)),
            json={
                "user_id": str(uuid.uuid4()),
                "event_id": str(uuid.uuid4()),
                "award_type": "bonus",
                "source_key": str(uuid.uuid4()),
            },
        )
        assert resp.status_code == 422


# ===========================================================================
# Admin maintenance
# ===========================================================================
class TestAdminRoutes:
    def test_refresh_status(self, client, db_engine):
        now = datetime.now(UTC)
        make_event(
            db_engine, status=EventStatus.UPCOMING,
            start=now - timedelta(minutes=1), end=now + timedelta(hours=1),
        )
        resp = client.post(
            "/api/admin/events/refresh-status",
            headers=auth(make_token(uuid.uuid4(), is_admin=True)),
        )
        assert resp.status_code == 200
        assert resp.json() == {"started": 1, "ended": 0}

    def test_reconcile(self, client, db_engine, battle):
        resp = client.post(
            "/api/admin/reconcile", headers=auth(make_token(uuid.uuid4(), is_admin=True))
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["missing_awards"]["applied"] == 1
        assert get_points(db_engine, battle["u1"], battle["event_id"]).artwork_points == 3


# ===========================================================================
# Users
# ===========================================================================
class TestUserRoutes:
    def test_stats(self, client, battle):
        resp = client.get(f"/api/users/{battle['u1']}/stats")
        assert resp.status_code == 200
        assert resp.json()["username"] == "painter_one"
        assert resp.json()["events_participated"] == 1

    def test_unknown_user(self, client):
        assert client.get(f"/api/users/{uuid.uuid4()}/stats").status_code == 404
