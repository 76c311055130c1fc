# tests/test_api.py
"""HTTP-level tests: routing, status codes, error bodies, session cookie."""

import smtplib
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from app.main import app
from app.database import get_db
from app.dependencies import get_caller
from app.config import settings
from app.models.vehicle_request import RequestStatus, VehicleRequest
from app.utils.timeutils import utcnow, utc_to_local
from conftest import make_request, caller_for, hours


@pytest.fixture
def client(db):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login_as(user):
    app.dependency_overrides[get_caller] = lambda: caller_for(user)


class TestSession:
    def test_requires_session(self, client):
        resp = client.get("/api/v1/requests/status")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Unauthorized"

    def test_login_sets_cookie(self, client, user):
        resp = client.post("/api/v1/auth/login", json={"email": user.email, "password": "secret1"})
        assert resp.status_code == 200
        me = client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.json()["email"] == user.email

        client.post("/api/v1/auth/logout")
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_wrong_password(self, client, user):
        resp = client.post("/api/v1/auth/login", json={"email": user.email, "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "INVALID_PASSWORD"

    def test_register(self, client):
        resp = client.post("/api/v1/register", json={
            "name": "Sari", "email": "sari@tamvems.id", "employee_id": "E-77",
            "division": "D", "password": "rahasia1", "confirm_password": "rahasia1",
        })
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "USER"


class TestRequestsApi:
    def test_availability(self, client, user, vehicle):
        login_as(user)
        resp = client.get("/api/v1/requests/availability",
                          params={"start_date": "2025-01-06", "start_time": "10:00", "end_time": "12:00"})
        assert resp.status_code == 200
        item = resp.json()["data"][0]
        assert item["plate"] == vehicle.plate
        assert item["is_available"] is True
        assert item["pending_count"] == 0

    def test_availability_window_must_be_ordered(self, client, user, vehicle):
        login_as(user)
        resp = client.get("/api/v1/requests/availability",
                          params={"start_date": "2025-01-06", "start_time": "12:00", "end_time": "10:00"})
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "end_time"

    def test_malformed_query_is_400(self, client, user):
        login_as(user)
        resp = client.get("/api/v1/requests/availability", params={"start_date": "yesterday"})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    def test_create_request_multipart(self, client, user, vehicle):
        login_as(user)
        tomorrow = (utc_to_local(utcnow()) + timedelta(days=1)).date().isoformat()
        resp = client.post(
            "/api/v1/requests",
            data={
                "vehicle_id": str(vehicle.id), "destination": "Pelabuhan",
                "start_date": tomorrow, "end_date": tomorrow, "start_time": "08:00", "end_time": "10:00",
            },
            files={"document": ("surat.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "PENDING"
        assert "/uploads/documents/" in body["document_url"]

    def test_create_request_without_document(self, client, user, vehicle):
        login_as(user)
        tomorrow = (utc_to_local(utcnow()) + timedelta(days=1)).date().isoformat()
        resp = client.post("/api/v1/requests", data={
            "vehicle_id": str(vehicle.id), "destination": "Pelabuhan",
            "start_date": tomorrow, "end_date": tomorrow, "start_time": "08:00", "end_time": "10:00",
        })
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "document"

    def test_create_request_bad_form(self, client, user):
        login_as(user)
        resp = client.post("/api/v1/requests", data={"vehicle_id": "abc"})
        assert resp.status_code == 400
        fields = {d["field"] for d in resp.json()["details"]}
        assert "vehicle_id" in fields

    def test_return_twice_is_409(self, client, db, user, vehicle):
        login_as(user)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now - hours(2),
                           end=now - hours(1), status=RequestStatus.APPROVED)
        assert client.post(f"/api/v1/requests/{req.id}/return").status_code == 200
        resp = client.post(f"/api/v1/requests/{req.id}/return")
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "ALREADY_CHECKED_OUT"

    def test_unknown_request_is_404(self, client, user):
        login_as(user)
        assert client.post("/api/v1/requests/999/cancel").status_code == 404


class TestAdminApi:
    def test_approve_schedules_approval_email(self, client, db, user, admin, vehicle):
        login_as(admin)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now + hours(1), end=now + hours(2))
        with patch("app.routers.admin.send_approval_email", return_value=True) as send:
            resp = client.post(f"/api/v1/admin/requests/{req.id}/approve")
        assert resp.status_code == 200
        send.assert_called_once()
        email = send.call_args[0][0]
        assert email.to == user.email
        assert email.request_id == req.id

    def test_approval_stands_when_email_is_not_delivered(self, client, db, user, admin, vehicle):
        login_as(admin)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now + hours(1), end=now + hours(2))
        with patch("app.routers.admin.send_approval_email", return_value=False) as send:
            resp = client.post(f"/api/v1/admin/requests/{req.id}/approve")
        assert resp.status_code == 200
        send.assert_called_once()
        assert db.get(VehicleRequest, req.id).status == RequestStatus.APPROVED

    def test_approval_stands_when_smtp_relay_fails(self, client, db, user, admin, vehicle):
        login_as(admin)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now + hours(1), end=now + hours(2))
        with patch.object(settings, "SMTP_HOST", "smtp.tamvems.id"), \
                patch("app.services.notification_service._deliver",
                      side_effect=smtplib.SMTPException("relay down")) as deliver:
            resp = client.post(f"/api/v1/admin/requests/{req.id}/approve")
        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"
        deliver.assert_called_once()
        db.expire_all()
        assert db.get(VehicleRequest, req.id).status == RequestStatus.APPROVED

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"page": -1, "limit": 10}])
    def test_pagination_must_be_positive(self, client, admin, params):
        login_as(admin)
        resp = client.get("/api/v1/admin/requests", params=params)
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    def test_user_cannot_reach_admin_routes(self, client, user):
        login_as(user)
        assert client.get("/api/v1/admin/requests").status_code == 403

    def test_approve_and_list(self, client, db, user, admin, vehicle):
        login_as(admin)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now + hours(1), end=now + hours(2))
        resp = client.post(f"/api/v1/admin/requests/{req.id}/approve")
        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"

        page = client.get("/api/v1/admin/requests", params={"status": "approved", "page": 1, "limit": 10}).json()
        assert page["pagination"]["total_count"] == 1
        assert page["data"][0]["id"] == req.id

    def test_reject_requires_reason(self, client, db, user, admin, vehicle):
        login_as(admin)
        now = utcnow()
        req = make_request(db=db, vehicle=vehicle, requester=user, start=now + hours(1), end=now + hours(2))
        assert client.post(f"/api/v1/admin/requests/{req.id}/reject", json={"reason": ""}).status_code == 400
        resp = client.post(f"/api/v1/admin/requests/{req.id}/reject", json={"reason": "Dipakai pimpinan"})
        assert resp.status_code == 200
        assert resp.json()["rejection_reason"] == "Dipakai pimpinan"

    def test_export_download(self, client, admin):
        login_as(admin)
        resp = client.get("/api/v1/admin/export/vehicle-requests",
                          params={"start_date": "2025-01-01", "end_date": "2025-01-31"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        assert "_2025-01-01_to_2025-01-31.xlsx" in resp.headers["content-disposition"]

    def test_deactivate_user(self, client, user, admin):
        login_as(admin)
        resp = client.put(f"/api/v1/admin/users/{user.id}", json={"action": "deactivate"})
        assert resp.status_code == 200
        assert resp.json()["user"]["is_active"] is False


class TestHealth:
    def test_health(self, client):
        body = client.get("/api/v1/health").json()
        assert body["database"] == "ok"
        assert body["storage"] == "ok"
        assert body["mail"] == "disabled"
