# tests/test_admin.py

"""
Back-office: admin sessions, document review and deletion requests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import bcrypt
import pytest
from fastapi.testclient import TestClient

from dependencies.auth import get_current_admin, CurrentAdmin
from supabase_mocks import make_supabase

PASSWORD_HASH = bcrypt.hashpw(b"s3cret-pass", bcrypt.gensalt(rounds=4)).decode()

ADMIN_ROW = {
    "id": "admin-1",
    "email": "admin@sakan.ma",
    "full_name": "Ops",
    "password_hash": PASSWORD_HASH,
    "is_active": True,
}


@pytest.fixture
def as_admin(app):
    admin = CurrentAdmin(id="admin-1", email="admin@sakan.ma", session_token="tok")
    app.dependency_overrides[get_current_admin] = lambda: admin
    return admin


def login(client, **overrides):
    body = {"email": "admin@sakan.ma", "password": "s3cret-pass", "accessHash": "hash-123", **overrides}
    return client.post("/admin/auth/login", json=body)


def test_login_sets_session_cookie(client: TestClient):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"admins": [ADMIN_ROW]})
        mock_supabase.return_value = supabase
        response = login(client)

    assert response.status_code == 200
    token = response.json()["data"]["session_token"]
    assert response.cookies.get("admin_session") == token
    session_row = supabase.queries["admin_sessions"].insert.call_args[0][0]
    assert session_row["admin_id"] == "admin-1"
    assert session_row["token"] == token


def test_login_wrong_password(client: TestClient):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"admins": [ADMIN_ROW]})
        response = login(client, password="nope")
    assert response.status_code == 401


def test_login_unknown_access_hash(client: TestClient):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"admins": []})
        response = login(client, accessHash="wrong")
    assert response.status_code == 403


def test_login_requires_all_fields(client: TestClient):
    response = client.post("/admin/auth/login", json={"email": "admin@sakan.ma"})
    assert response.status_code == 400


def test_expired_admin_session(client: TestClient):
    expired = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    with patch("dependencies.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "admin_sessions": [{"admin_id": "admin-1", "token": "tok", "expires_at": expired}],
        })
        response = client.get("/admin/residences", headers={"X-Admin-Session": "tok"})
    assert response.status_code == 401


def test_approve_document_needs_residence(client: TestClient, as_admin):
    response = client.post("/admin/documents/4/approve", json={})
    assert response.status_code == 400


def test_approve_document_assigns_residence(client: TestClient, as_admin):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "syndic_document_submissions": [{"id": 4, "user_id": "syndic-9", "status": "pending"}],
            "residences": [{"id": 3, "name": "Atlas", "syndic_user_id": None}],
        })
        mock_supabase.return_value = supabase
        response = client.post("/admin/documents/4/approve", json={"residenceId": 3})

    assert response.status_code == 200
    supabase.queries["residences"].update.assert_called_with({"syndic_user_id": "syndic-9"})
    supabase.queries["profiles"].update.assert_called_with({"verified": True})


def test_approve_document_residence_taken(client: TestClient, as_admin):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "syndic_document_submissions": [{"id": 4, "user_id": "syndic-9", "status": "pending"}],
            "residences": [{"id": 3, "name": "Atlas", "syndic_user_id": "someone-else"}],
        })
        response = client.post("/admin/documents/4/approve", json={"residenceId": 3})
    assert response.status_code == 400


def test_deletion_request_requires_successor(client: TestClient, as_admin):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "syndic_deletion_requests": [{
                "id": 2, "status": "pending", "syndic_user_id": "syndic-1",
                "residence_id": 3, "successor_user_id": None,
            }],
        })
        response = client.post("/admin/deletion-requests/2/approve", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "SUCCESSOR_REQUIRED"


def test_deletion_request_promotes_successor(client: TestClient, as_admin):
    with patch("routers.admin.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "syndic_deletion_requests": [{
                "id": 2, "status": "pending", "syndic_user_id": "syndic-1",
                "residence_id": 3, "successor_user_id": "resident-7",
            }],
            "profile_residences": [{"profile_id": "resident-7"}],
            "profiles": [{"role": "resident"}],
        })
        mock_supabase.return_value = supabase
        response = client.post("/admin/deletion-requests/2/approve", json={})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "completed"
    supabase.queries["residences"].update.assert_called_with({"syndic_user_id": "resident-7"})
