import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import database.db as db
import swiftpass.config as config
import swiftpass.main as main
import swiftpass.routers.core as core
from swiftpass.credentials import encode_credential
from swiftpass.services import runtime
from swiftpass.services.dispatcher import ControllerDispatcher
from swiftpass.services.station import ScanStation

MONDAY_10 = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


@pytest.fixture()
def client(temp_db):
    runtime.reset_runtime()
    with TestClient(main.app) as c:
        yield c
    runtime.reset_runtime()


@pytest.fixture()
def auth_headers(client):
    res = client.post(
        "/auth/login",
        json={
            "username": config.ADMIN_USERNAME,
            "password": config.ADMIN_PASSWORD,
        },
    )
    assert res.status_code == 200
    token = res.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def fixed_station(client):
    station = ScanStation(
        dispatcher=ControllerDispatcher(host=""),
        cooldown_seconds=0,
        clock=lambda: MONDAY_10,
    )
    runtime.set_station(station)
    return station


def _create_subject(client, auth_headers, subject_id="uid-ana", **extra):
    payload = {
        "id": subject_id,
        "full_name": "Ana Cruz",
        "student_number": f"NUM-{subject_id}",
        "course": "BSIT",
        "section": "A",
        **extra,
    }
    res = client.post("/admin/subjects", json=payload, headers=auth_headers)
    assert res.status_code == 200
    return res.json()


def _create_session(client, auth_headers, **overrides):
    payload = {
        "name": "Networks Lab",
        "day_of_week": "Monday",
        "start_time": "09:00",
        "end_time": "11:00",
        "section": "A",
        **overrides,
    }
    res = client.post("/admin/sessions", json=payload, headers=auth_headers)
    assert res.status_code == 200
    return res.json()


def _subject_headers(client, subject_id="uid-ana"):
    res = client.post(
        "/auth/subject",
        json={"subject_id": subject_id, "device_secret": config.DEVICE_SECRET},
    )
    assert res.status_code == 200
    assert res.json()["role"] == "subject"
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_access_config_reports_defaults(client):
    res = client.get("/config/access")
    assert res.status_code == 200
    data = res.json()
    assert data["credential_period_ms"] == config.CREDENTIAL_PERIOD_MS
    assert data["overlap_tie_break"] in {"lowest_id", "earliest_start"}


def test_debug_dbpath_disabled_by_default(client, auth_headers):
    res = client.get("/debug/dbpath", headers=auth_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Not found."


def test_debug_dbpath_requires_session_when_enabled(client, monkeypatch, auth_headers):
    monkeypatch.setattr(core, "ENABLE_DEBUG_ENDPOINTS", True)

    res = client.get("/debug/dbpath")
    assert res.status_code == 401

    res = client.get("/debug/dbpath", headers=auth_headers)
    assert res.status_code == 200
    assert "db_path" in res.json()


def test_login_rejects_invalid_credentials(client):
    res = client.post(
        "/auth/login",
        json={"username": config.ADMIN_USERNAME, "password": "wrong-password"},
    )
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid admin credentials."


def test_admin_can_add_an_operator_who_can_log_in(client, auth_headers):
    res = client.post(
        "/admin/admins",
        json={"username": " lab-tech ", "password": "s3cret-pass"},
        headers=auth_headers,
    )
    assert res.status_code == 201
    assert res.json()["username"] == "lab-tech"

    res = client.post("/auth/login", json={"username": "LAB-TECH", "password": "s3cret-pass"})
    assert res.status_code == 200
    assert res.json()["subject"] == "lab-tech"
    assert res.json()["role"] == "admin"

    usernames = [row["username"] for row in client.get("/admin/admins", headers=auth_headers).json()]
    assert "lab-tech" in usernames


def test_operator_accounts_reject_duplicates_and_blanks(client, auth_headers):
    dup = client.post(
        "/admin/admins",
        json={"username": config.ADMIN_USERNAME.upper(), "password": "x"},
        headers=auth_headers,
    )
    assert dup.status_code == 409

    blank = client.post("/admin/admins", json={"username": "  ", "password": "x"}, headers=auth_headers)
    assert blank.status_code == 400


def test_subject_session_cannot_add_operators(client, auth_headers):
    _create_subject(client, auth_headers)
    res = client.post(
        "/admin/admins",
        json={"username": "sneaky", "password": "pw"},
        headers=_subject_headers(client),
    )
    assert res.status_code == 403


def test_auth_me_reports_role(client, auth_headers):
    res = client.get("/auth/me", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["role"] == "admin"


def test_subject_login_requires_device_secret(client, auth_headers):
    _create_subject(client, auth_headers)

    res = client.post("/auth/subject", json={"subject_id": "uid-ana", "device_secret": "nope"})
    assert res.status_code == 401

    res = client.post("/auth/subject", json={"subject_id": "uid-nobody", "device_secret": config.DEVICE_SECRET})
    assert res.status_code == 404


def test_admin_routes_reject_subject_sessions(client, auth_headers):
    _create_subject(client, auth_headers)
    headers = _subject_headers(client)

    assert client.get("/admin/subjects").status_code == 401
    assert client.get("/admin/subjects", headers=headers).status_code == 403
    assert client.post("/scan", json={"qr_data": "x"}, headers=headers).status_code == 403


def test_credential_lifecycle(client, auth_headers):
    _create_subject(client, auth_headers)
    headers = _subject_headers(client)

    res = client.get("/credentials/current", headers=headers)
    assert res.status_code == 409

    res = client.post("/credentials/bind", headers=headers)
    assert res.status_code == 200
    bound = res.json()
    payload = json.loads(bound["qr_data"])
    assert payload["userId"] == "uid-ana"
    assert payload["name"] == "Ana Cruz"
    assert 0 < bound["time_remaining_ms"] <= config.CREDENTIAL_PERIOD_MS

    res = client.get("/credentials/current.png", headers=headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "image/png"
    assert res.content.startswith(b"\x89PNG")

    res = client.post("/credentials/refresh", headers=headers)
    assert res.status_code == 200
    assert res.json()["refreshed"] is True
    assert json.loads(res.json()["qr_data"])["nonce"] != payload["nonce"]

    res = client.post("/credentials/unbind", headers=headers)
    assert res.json() == {"ok": True, "released": True}
    assert client.get("/credentials/current", headers=headers).status_code == 409


def test_credentials_require_subject_session(client, auth_headers):
    res = client.post("/credentials/bind", headers=auth_headers)
    assert res.status_code == 403


def test_session_rules_are_validated(client, auth_headers):
    res = client.post(
        "/admin/sessions",
        json={"name": "Backwards", "day_of_week": "Monday", "start_time": "11:00", "end_time": "09:00"},
        headers=auth_headers,
    )
    assert res.status_code == 400

    res = client.post(
        "/admin/sessions",
        json={"name": "Bad day", "day_of_week": "Someday", "start_time": "09:00", "end_time": "11:00"},
        headers=auth_headers,
    )
    assert res.status_code == 400

    res = client.post(
        "/admin/sessions",
        json={"name": "Sloppy", "day_of_week": "monday", "start_time": "9:00", "end_time": "11:00"},
        headers=auth_headers,
    )
    assert res.status_code == 400


def test_enrollment_rules(client, auth_headers):
    _create_subject(client, auth_headers)
    open_lab = _create_session(client, auth_headers, section=None)
    section_b = _create_session(client, auth_headers, name="Section B Lab", section="B")

    res = client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": open_lab["id"]}, headers=auth_headers)
    assert res.status_code == 200

    res = client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": open_lab["id"]}, headers=auth_headers)
    assert res.status_code == 409

    res = client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": section_b["id"]}, headers=auth_headers)
    assert res.status_code == 400

    res = client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": 999}, headers=auth_headers)
    assert res.status_code == 404

    detail = client.get("/admin/subjects/uid-ana", headers=auth_headers).json()
    assert [s["id"] for s in detail["sessions"]] == [open_lab["id"]]


def test_duplicate_subject_is_rejected(client, auth_headers):
    _create_subject(client, auth_headers)
    res = client.post("/admin/subjects", json={"id": "uid-ana", "full_name": "Again"}, headers=auth_headers)
    assert res.status_code == 409


def test_scan_grants_records_and_audits(client, auth_headers, fixed_station):
    subject = _create_subject(client, auth_headers)
    lab = _create_session(client, auth_headers)
    client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": lab["id"]}, headers=auth_headers)
    qr_data = encode_credential(subject, MONDAY_10 - timedelta(seconds=5), MONDAY_10 + timedelta(seconds=55))

    res = client.post("/scan", json={"qr_data": qr_data}, headers=auth_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["accepted"]
    assert data["verdict"]["reason_code"] == "GRANTED"
    assert data["verdict"]["session_id"] == lab["id"]
    assert data["dispatch"]["status"] == "not_configured"
    assert data["dispatch"]["token"] == config.CONTROLLER_GRANT_TOKEN

    res = client.post("/scan", json={"qr_data": qr_data}, headers=auth_headers)
    assert res.json()["verdict"]["reason_code"] == "ALREADY_RECORDED_TODAY"

    rows = client.get("/attendance", params={"date": "2026-10-19"}, headers=auth_headers).json()
    assert len(rows) == 1
    assert rows[0]["session_name"] == "Networks Lab"

    summary = client.get("/attendance/summary", params={"date": "2026-10-19"}, headers=auth_headers).json()
    assert summary == {"total": 1, "open": 1, "closed": 0, "subjects": 1}

    events = client.get("/admin/scan-events", params={"reason_code": "GRANTED"}, headers=auth_headers).json()
    assert events["total"] == 1
    assert events["rows"][0]["dispatch_status"] == "not_configured"


def test_scan_of_garbage_is_denied(client, auth_headers, fixed_station):
    res = client.post("/scan", json={"qr_data": "hello"}, headers=auth_headers)
    data = res.json()
    assert data["verdict"]["granted"] is False
    assert data["verdict"]["reason_code"] == "MALFORMED_CREDENTIAL"
    assert data["dispatch"]["token"] == config.CONTROLLER_DENY_TOKEN
    assert client.get("/attendance", headers=auth_headers).json() == []


def test_close_and_delete_attendance(client, auth_headers, fixed_station):
    subject = _create_subject(client, auth_headers)
    lab = _create_session(client, auth_headers)
    client.post("/admin/enrollments", json={"subject_id": "uid-ana", "session_id": lab["id"]}, headers=auth_headers)
    qr_data = encode_credential(subject, MONDAY_10, MONDAY_10 + timedelta(seconds=60))
    record_id = client.post("/scan", json={"qr_data": qr_data}, headers=auth_headers).json()["verdict"]["attendance_id"]

    res = client.post(
        f"/attendance/{record_id}/close",
        json={"time_out": (MONDAY_10 + timedelta(hours=1)).isoformat()},
        headers=auth_headers,
    )
    assert res.status_code == 200

    res = client.post(f"/attendance/{record_id}/close", headers=auth_headers)
    assert res.status_code == 404

    summary = client.get("/attendance/summary", params={"date": "2026-10-19"}, headers=auth_headers).json()
    assert summary["closed"] == 1

    assert client.delete(f"/attendance/{record_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/attendance/{record_id}", headers=auth_headers).status_code == 404


def test_retry_signal_needs_a_previous_scan(client, auth_headers, fixed_station):
    res = client.post("/scan/retry-signal", headers=auth_headers)
    assert res.status_code == 409

    client.post("/scan", json={"qr_data": "hello"}, headers=auth_headers)
    res = client.post("/scan/retry-signal", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["reason_code"] == "MALFORMED_CREDENTIAL"


def test_controller_status_without_host(client, auth_headers, fixed_station):
    res = client.get("/controller/status", headers=auth_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["controller"]["reachable"] is False
    assert data["station"]["controller_configured"] is False


def test_scan_events_reject_unknown_reason(client, auth_headers):
    res = client.get("/admin/scan-events", params={"reason_code": "NOPE"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid reason_code filter."


def test_reset_attendance(client, auth_headers, fixed_station):
    client.post("/scan", json={"qr_data": "hello"}, headers=auth_headers)
    res = client.post("/admin/reset/attendance", headers=auth_headers)
    assert res.json()["ok"] is True
    assert client.get("/admin/scan-events", headers=auth_headers).json()["total"] == 0
