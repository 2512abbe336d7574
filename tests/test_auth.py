# tests/test_auth.py

"""
Tests for web login, the current-user endpoint and mobile OTP login.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, Mock

from core.config import settings
from dependencies.auth import decode_mobile_token, create_mobile_token
from supabase_mocks import make_supabase


def test_login_success(client: TestClient):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_client = make_supabase({"profiles": [{"role": "syndic", "onboarding_completed": True}]})
        mock_response = Mock()
        mock_response.session.access_token = "test-token"
        mock_response.session.refresh_token = "refresh"
        mock_response.user.id = "syndic-1"
        mock_client.auth.sign_in_with_password.return_value = mock_response
        mock_supabase.return_value = mock_client

        response = client.post(
            "/auth/login",
            json={"email": "Syndic@Example.com ", "password": "password123"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["access_token"] == "test-token"
        assert data["role"] == "syndic"
        mock_client.auth.sign_in_with_password.assert_called_with(
            {"email": "syndic@example.com", "password": "password123"}
        )


def test_login_invalid_credentials(client: TestClient):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.sign_in_with_password.side_effect = Exception("Invalid credentials")
        mock_supabase.return_value = mock_client

        response = client.post(
            "/auth/login",
            json={"email": "test@example.com", "password": "wrongpassword"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert "Invalid email or password" in body["error"]


def test_login_rate_limiting(client: TestClient):
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.sign_in_with_password.side_effect = Exception("nope")
        mock_supabase.return_value = mock_client

        for _ in range(10):
            response = client.post("/auth/login", json={"email": "a@example.com", "password": "x"})
            assert response.status_code == 401

        response = client.post("/auth/login", json={"email": "a@example.com", "password": "x"})
        assert response.status_code == 429


def test_me_requires_token(client: TestClient):
    response = client.get("/auth/me")
    assert response.status_code in (401, 403)


def test_me_returns_profile_and_residence(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"residences": [{"id": 12}]})
        response = client.get("/auth/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "syndic"
    assert data["residence_id"] == 12


def test_mobile_token_round_trip(monkeypatch):
    monkeypatch.setattr(settings, "MOBILE_JWT_SECRET", "test-secret")
    claims = decode_mobile_token(create_mobile_token("user-1", "u@example.com"))
    assert claims["sub"] == "user-1"
    assert claims["typ"] == "mobile"
    assert decode_mobile_token("not-a-token") is None


def test_verify_otp_rejects_bad_format(client: TestClient):
    response = client.post("/mobile/auth/verify-otp", json={"email": "r@example.com", "code": "12"})
    assert response.status_code == 400


def test_verify_otp_issues_mobile_token(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "MOBILE_JWT_SECRET", "test-secret")
    with patch("routers.mobile_auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "users": [{"id": "resident-1", "email": "r@example.com", "name": "R"}],
            "profiles": [{
                "id": "resident-1",
                "role": "resident",
                "resident_onboarding_code": "ab12cd",
                "resident_onboarding_code_expires_at": None,
            }],
        })
        response = client.post("/mobile/auth/verify-otp", json={"email": "R@example.com", "code": "AB12CD"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert decode_mobile_token(data["access_token"])["sub"] == "resident-1"
    assert "resident_onboarding_code" not in data["user"]


def test_verify_otp_wrong_code(client: TestClient):
    with patch("routers.mobile_auth.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "users": [{"id": "resident-1", "email": "r@example.com"}],
            "profiles": [{"id": "resident-1", "resident_onboarding_code": "ZZZZZZ"}],
        })
        response = client.post("/mobile/auth/verify-otp", json={"email": "r@example.com", "code": "AB12CD"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid verification code"
