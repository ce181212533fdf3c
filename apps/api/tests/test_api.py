"""
API tests through the FastAPI app.
"""
import io
import pytest
from datetime import datetime, timedelta, timezone
from fastapi import UploadFile
from fastapi.testclient import TestClient

from core.exceptions import ValidationError
from main import app
from models import AssignmentDistribution, FormatSubmission
from routers.content import read_upload
from services.object_storage import get_object_store

client = TestClient(app)


def _future(days=7):
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture
def local_store(store):
    app.dependency_overrides[get_object_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_object_store, None)


class TestHealth:
    def test_ping(self):
        response = client.get("/ping")
        assert response.status_code == 200
        assert response.json() == {"pong": True}

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_security_headers(self):
        response = client.get("/ping")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Process-Time" in response.headers
        assert "Cache-Control" not in response.headers

    def test_request_id_echoed_or_minted(self):
        assert client.get("/ping", headers={"X-Request-ID": "front-desk-42"}).headers["X-Request-ID"] == "front-desk-42"
        minted = client.get("/ping", headers={"X-Request-ID": "bad id; drop table"}).headers["X-Request-ID"]
        assert len(minted) == 32

    def test_auth_responses_not_cached(self, gym_a):
        response = client.post("/v1/auth/pin-login", json={"pin_code": "1111"})
        assert response.headers["Cache-Control"] == "no-store"


class TestAuthEndpoints:
    def test_pin_login_returns_token_and_gym(self, gym_a):
        response = client.post("/v1/auth/pin-login", json={"pin_code": "1111"})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["gym"]["id"] == "CPF"
        assert "pin_code" not in data["gym"]

        me = client.get("/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["gym_name"] == "Capital Fitness"

    def test_unknown_pin_is_404(self, gym_a):
        response = client.post("/v1/auth/pin-login", json={"pin_code": "0000"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_missing_token_is_401(self):
        assert client.get("/v1/auth/me").status_code == 401

    def test_garbage_token_is_401(self):
        assert client.get("/v1/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_deactivated_gym_token_is_rejected(self, db_session, gym_a, auth_headers):
        headers = auth_headers(gym_a)
        gym_a.active = False
        db_session.commit()
        assert client.get("/v1/auth/me", headers=headers).status_code == 403

    def test_gym_list_admin_only(self, admin_gym, gym_a, auth_headers):
        assert client.get("/v1/auth/gyms", headers=auth_headers(gym_a)).status_code == 403
        response = client.get("/v1/auth/gyms", headers=auth_headers(admin_gym))
        assert response.status_code == 200
        assert {g["id"] for g in response.json()} == {"HQ", "CPF"}


class TestGymAssignments:
    def test_list_only_own_assignments(self, gym_a, gym_b, auth_headers, make_distribution):
        mine = make_distribution(gym_a, due_date=_future())
        make_distribution(gym_b, due_date=_future())

        response = client.get("/v1/assignments", headers=auth_headers(gym_a))
        assert response.status_code == 200
        data = response.json()
        assert [a["id"] for a in data] == [mine.id]
        assert data[0]["title"] == "Handstand Week"
        assert data[0]["available_actions"] == ["acknowledge", "start"]
        assert data[0]["is_overdue"] is False
        assert [f["format_key"] for f in data[0]["formats"]] == ["video-reel"]

    def test_other_gyms_assignment_is_forbidden(self, gym_a, gym_b, auth_headers, make_distribution):
        theirs = make_distribution(gym_b, due_date=_future())
        assert client.get(f"/v1/assignments/{theirs.id}", headers=auth_headers(gym_a)).status_code == 403
        assert client.post(f"/v1/assignments/{theirs.id}/start", headers=auth_headers(gym_a)).status_code == 403

    def test_walk_gym_half_of_lifecycle(self, db_session, gym_a, auth_headers, make_distribution, make_submission):
        d = make_distribution(gym_a, due_date=_future())
        headers = auth_headers(gym_a)

        response = client.post(f"/v1/assignments/{d.id}/acknowledge", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        assert response.json()["progress"] == 20

        assert client.post(f"/v1/assignments/{d.id}/start", headers=headers).json()["status"] == "in-progress"
        make_submission(d)
        submitted = client.post(f"/v1/assignments/{d.id}/submit", headers=headers).json()
        assert submitted["status"] == "submitted"
        assert submitted["submitted_at"] is not None

        db_session.expire_all()
        assert db_session.get(AssignmentDistribution, d.id).status == "submitted"

    def test_submit_with_no_uploads_is_422(self, gym_a, auth_headers, make_distribution):
        d = make_distribution(gym_a, status="in-progress", due_date=_future())
        response = client.post(f"/v1/assignments/{d.id}/submit", headers=auth_headers(gym_a))
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_FILES"

    def test_skipping_a_state_is_422(self, gym_a, auth_headers, make_distribution):
        d = make_distribution(gym_a, due_date=_future())
        response = client.post(f"/v1/assignments/{d.id}/submit", headers=auth_headers(gym_a))
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_TRANSITION"

    def test_status_and_search_filters(self, gym_a, auth_headers, make_distribution):
        make_distribution(gym_a, status="approved", title="Rowing Form", due_date=_future())
        make_distribution(gym_a, status="completed", title="Kettlebell Flow", due_date=_future())
        make_distribution(gym_a, status="assigned", title="Rowing Intervals", due_date=_future())
        headers = auth_headers(gym_a)

        approved = client.get("/v1/assignments", params={"status": "completed"}, headers=headers).json()
        assert {a["title"] for a in approved} == {"Rowing Form", "Kettlebell Flow"}

        rowing = client.get("/v1/assignments", params={"search": "rowing"}, headers=headers).json()
        assert len(rowing) == 2

        assert len(client.get("/v1/assignments", params={"status": "all"}, headers=headers).json()) == 3
        assert client.get("/v1/assignments", params={"status": "archived"}, headers=headers).status_code == 422

    def test_dashboard_and_stats(self, gym_a, auth_headers, make_distribution):
        for _ in range(8):
            make_distribution(gym_a, due_date=_future())
        make_distribution(gym_a, status="in-progress", due_date=_future(-1))
        headers = auth_headers(gym_a)

        assert len(client.get("/v1/assignments/dashboard", headers=headers).json()) == 6
        stats = client.get("/v1/assignments/stats", headers=headers).json()
        assert stats["total_assignments"] == 9
        assert stats["overdue_assignments"] == 1


class TestContentEndpoints:
    def test_format_catalog(self, gym_a, formats, auth_headers):
        response = client.get("/v1/content/formats", headers=auth_headers(gym_a))
        assert response.status_code == 200
        keys = {f["format_key"] for f in response.json()}
        assert keys == set(formats)

        reel = client.get("/v1/content/formats/video-reel", headers=auth_headers(gym_a)).json()
        assert reel["dimensions"] == "1080x1920"
        assert client.get("/v1/content/formats/nope", headers=auth_headers(gym_a)).status_code == 404

    def test_upload_and_progress(self, db_session, gym_a, formats, auth_headers, local_store, make_distribution):
        d = make_distribution(gym_a, due_date=_future())
        headers = auth_headers(gym_a)

        response = client.post(
            "/v1/content/formats/video-reel/submissions",
            headers=headers,
            files=[
                ("files", ("squat.mp4", b"video-bytes", "video/mp4")),
                ("files", ("lunge.mov", b"more-bytes", "video/quicktime")),
            ],
            data={"notes": "first cut", "distribution_id": str(d.id)},
        )
        assert response.status_code == 201
        uploaded = response.json()
        assert [s["status"] for s in uploaded] == ["pending", "pending"]
        assert {s["file_type"] for s in uploaded} == {"video"}
        assert uploaded[0]["submission_notes"] == "first cut"

        listed = client.get("/v1/content/formats/video-reel/submissions", headers=headers).json()
        assert len(listed) == 2

        progress = {p["format_key"]: p for p in client.get("/v1/content/progress", headers=headers).json()}
        assert progress["video-reel"]["pending_count"] == 2
        assert progress["video-reel"]["percent_complete"] == 0

        summary = client.get("/v1/content/progress/summary", headers=headers).json()
        assert summary["total_pending"] == 2
        assert summary["overall_progress"] == 0

        withdrawn = client.delete(f"/v1/content/submissions/{uploaded[0]['id']}", headers=headers)
        assert withdrawn.status_code == 204
        db_session.expire_all()
        assert db_session.query(FormatSubmission).count() == 1

    def test_rejected_file_type(self, gym_a, formats, auth_headers, local_store):
        response = client.post(
            "/v1/content/formats/static-photo/submissions",
            headers=auth_headers(gym_a),
            files=[("files", ("brief.pdf", b"%PDF", "application/pdf"))],
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_FILES"

    def test_over_limit_file_rejected(self, db_session, gym_a, formats, auth_headers, local_store, monkeypatch):
        monkeypatch.setattr("routers.content.settings.UPLOAD_MAX_FILE_BYTES", 16)
        response = client.post(
            "/v1/content/formats/static-photo/submissions",
            headers=auth_headers(gym_a),
            files=[("files", ("huge.jpg", b"x" * 64, "image/jpeg"))],
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_FILES"
        db_session.expire_all()
        assert db_session.query(FormatSubmission).count() == 0

    def test_read_upload_stops_at_the_limit(self, monkeypatch):
        monkeypatch.setattr("routers.content.settings.UPLOAD_MAX_FILE_BYTES", 8)
        monkeypatch.setattr("routers.content.UPLOAD_CHUNK_BYTES", 4)
        body = io.BytesIO(b"x" * 1000)
        with pytest.raises(ValidationError):
            read_upload(UploadFile(file=body, filename="huge.jpg"))
        assert body.tell() == 12

    def test_read_upload_within_limit(self, monkeypatch):
        monkeypatch.setattr("routers.content.UPLOAD_CHUNK_BYTES", 4)
        assert read_upload(UploadFile(file=io.BytesIO(b"0123456789"), filename="a.jpg")) == b"0123456789"


class TestAdminEndpoints:
    def test_member_gym_gets_403(self, gym_a, auth_headers):
        headers = auth_headers(gym_a)
        assert client.get("/v1/admin/gym-performance", headers=headers).status_code == 403
        assert client.get("/v1/admin/stats", headers=headers).status_code == 403
        assert client.post("/v1/admin/assignments", json={}, headers=headers).status_code == 403

    def test_distribute_to_gyms(self, db_session, admin_gym, gym_a, gym_b, formats, auth_headers):
        response = client.post(
            "/v1/admin/assignments",
            headers=auth_headers(admin_gym),
            json={
                "title": "Spring Challenge",
                "formats": ["video-reel", "static-photo"],
                "gym_ids": ["CPF", "NSG"],
                "due_date": _future(14).isoformat(),
                "priority": "urgent",
                "content_requirements": [{"title": "Intro clip", "duration": "15s"}],
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["gym_count"] == 2
        assert {d["assigned_to_gym_id"] for d in data["distributions"]} == {"CPF", "NSG"}
        assert {d["status"] for d in data["distributions"]} == {"assigned"}

        gym_view = client.get("/v1/assignments", headers=auth_headers(gym_b)).json()
        assert gym_view[0]["title"] == "Spring Challenge"
        assert gym_view[0]["priority"] == "urgent"
        assert gym_view[0]["content_requirements"][0]["title"] == "Intro clip"

    def test_distribute_missing_field_names_it(self, admin_gym, gym_a, formats, auth_headers):
        response = client.post(
            "/v1/admin/assignments",
            headers=auth_headers(admin_gym),
            json={"title": "No gyms", "formats": ["story"], "due_date": _future().isoformat()},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_GYM_IDS"

    def test_review_assignment(self, admin_gym, gym_a, auth_headers, make_distribution):
        d = make_distribution(gym_a, status="submitted", due_date=_future())
        headers = auth_headers(admin_gym)

        bad = client.post(f"/v1/admin/assignments/{d.id}/review", json={"event": "start"}, headers=headers)
        assert bad.status_code == 422
        assert bad.json()["error_code"] == "VALIDATION_ERROR_EVENT"

        response = client.post(
            f"/v1/admin/assignments/{d.id}/review",
            json={"event": "request_revision", "admin_notes": "Needs captions"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "needs-revision"
        assert response.json()["admin_notes"] == "Needs captions"

        resumed = client.post(f"/v1/assignments/{d.id}/resume", headers=auth_headers(gym_a))
        assert resumed.json()["status"] == "in-progress"

    def test_extend_due_date(self, admin_gym, gym_a, auth_headers, make_distribution):
        d = make_distribution(gym_a, due_date=_future(-2))
        new_due = _future(10)
        response = client.post(
            f"/v1/admin/assignments/{d.id}/extend",
            json={"due_date": new_due.isoformat()},
            headers=auth_headers(admin_gym),
        )
        assert response.status_code == 200
        view = client.get(f"/v1/assignments/{d.id}", headers=auth_headers(gym_a)).json()
        assert view["is_overdue"] is False

    def test_list_distributions_with_status_alias(self, admin_gym, gym_a, gym_b, auth_headers, make_distribution):
        make_distribution(gym_a, status="completed", due_date=_future())
        make_distribution(gym_b, status="assigned", due_date=_future())
        headers = auth_headers(admin_gym)

        assert len(client.get("/v1/admin/assignments", headers=headers).json()) == 2
        approved = client.get("/v1/admin/assignments", params={"status": "approved"}, headers=headers).json()
        assert [d["assigned_to_gym_id"] for d in approved] == ["CPF"]
        by_gym = client.get("/v1/admin/gyms/NSG/assignments", headers=headers).json()
        assert len(by_gym) == 1

    def test_drafts(self, admin_gym, auth_headers):
        headers = auth_headers(admin_gym)
        created = client.post("/v1/admin/drafts", json={"title": "Later", "formats": ["story"]}, headers=headers)
        assert created.status_code == 201
        assert created.json()["formats_required"] == ["story"]
        assert [d["title"] for d in client.get("/v1/admin/drafts", headers=headers).json()] == ["Later"]

    def test_submission_review_flow(self, admin_gym, gym_a, formats, auth_headers, local_store):
        uploaded = client.post(
            "/v1/content/formats/static-photo/submissions",
            headers=auth_headers(gym_a),
            files=[("files", ("front.jpg", b"jpeg", "image/jpeg"))],
        ).json()
        headers = auth_headers(admin_gym)

        listing = client.get("/v1/admin/submissions", params={"status": "pending"}, headers=headers).json()
        assert listing["counts"]["pending"] == 1
        assert listing["submissions"][0]["file_name"] == "front.jpg"

        reviewed = client.post(
            f"/v1/admin/submissions/{uploaded[0]['id']}/review",
            json={"decision": "approved"},
            headers=headers,
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "approved"

        summary = client.get("/v1/content/progress/summary", headers=auth_headers(gym_a)).json()
        assert summary["total_completed"] == 1
        assert summary["overall_progress"] == 100

    def test_gym_performance_and_stats(self, admin_gym, gym_a, gym_b, auth_headers, make_distribution):
        now = datetime.now(timezone.utc)
        for _ in range(9):
            make_distribution(gym_a, status="approved", due_date=_future(), created_at=now - timedelta(days=3),
                              submitted_at=now - timedelta(days=1))
        make_distribution(gym_a, status="in-progress", due_date=_future())
        headers = auth_headers(admin_gym)

        response = client.get("/v1/admin/gym-performance", headers=headers)
        assert response.status_code == 200
        rows = {r["id"]: r for r in response.json()}
        assert rows["CPF"]["status"] == "good"
        assert rows["CPF"]["completion_rate"] == 90
        assert rows["CPF"]["average_response_time"] == 2.0
        assert rows["NSG"]["status"] == "warning"
        assert rows["NSG"]["completion_rate"] == 0

        stats = client.get("/v1/admin/stats", headers=headers).json()
        assert stats["total_assignments"] == 10
        assert stats["completed_assignments"] == 9
        assert stats["completion_rate"] == 90
