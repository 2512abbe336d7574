# tests/test_registration.py

from unittest.mock import patch, Mock

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase, make_query

VALID = {
    "residence_id": 3,
    "full_name": "Salma Resident",
    "email": "Salma@Example.com",
    "phone_number": "+212600000000",
    "apartment_number": "12",
}


def test_missing_fields_are_listed(client: TestClient):
    response = client.post("/register/submit", json={"residence_id": 3, "full_name": " "})
    assert response.status_code == 400
    assert response.json()["error"].startswith("All fields are required")


def test_unknown_qr_code(client: TestClient):
    with patch("routers.registration.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"residences": []})
        response = client.get("/register/validate/res_unknown")
    assert response.status_code == 404


def test_occupied_apartment_is_refused(client: TestClient):
    with patch("routers.registration.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "residences": [{"id": 3, "name": "Atlas", "syndic_user_id": "syndic-1"}],
            "profile_residences": [{"id": 8, "apartment_number": "12", "verified": True}],
        })
        response = client.post("/register/submit", json=VALID)

    assert response.status_code == 400
    assert "already occupied" in response.json()["error"]


def test_submission_is_stored_pending(client: TestClient):
    with patch("routers.registration.get_supabase_client") as mock_supabase, \
            patch("routers.registration.send_registration_confirmation") as confirm, \
            patch("routers.registration.send_syndic_registration_notice") as notice:
        supabase = make_supabase({
            "residences": [{"id": 3, "name": "Atlas", "syndic_user_id": "syndic-1"}],
            "users": [{"id": "syndic-1", "email": "syndic@example.com"}],
        })
        mock_supabase.return_value = supabase
        response = client.post("/register/submit", json=VALID)

    assert response.status_code == 200
    row = supabase.queries["resident_registration_requests"].insert.call_args[0][0]
    assert row["email"] == "salma@example.com"
    assert row["status"] == "pending"
    confirm.assert_called_once()
    notice.assert_called_once()


PENDING = {
    "id": 7,
    "residence_id": 3,
    "full_name": "Salma Resident",
    "email": "Salma@Example.com",
    "phone_number": "+212600000000",
    "apartment_number": "12",
    "status": "pending",
}


def review_tables(**overrides):
    tables = {
        "residences": [{"id": 3, "name": "Atlas"}],
        "resident_registration_requests": [PENDING],
    }
    tables.update(overrides)
    return tables


def test_approve_creates_resident_with_code(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.registration.get_supabase_client") as mock_supabase, \
            patch("routers.registration.create_auth_user", return_value=Mock(id="new-user")) as create_user, \
            patch("routers.registration.send_welcome_code") as welcome:
        supabase = make_supabase(review_tables())
        mock_supabase.return_value = supabase
        response = client.post("/registration-requests/7/approve")

    assert response.status_code == 200
    assert response.json()["data"] == {"request_id": 7, "user_id": "new-user"}
    assert create_user.call_args[0][1] == "salma@example.com"

    profile = supabase.queries["profiles"].insert.call_args[0][0]
    assert profile["role"] == "resident"
    assert len(profile["resident_onboarding_code"]) == 6
    link = supabase.queries["profile_residences"].upsert.call_args[0][0]
    assert link == {"profile_id": "new-user", "residence_id": 3, "apartment_number": "12", "verified": False}
    reviewed = supabase.queries["resident_registration_requests"].update.call_args[0][0]
    assert reviewed["status"] == "approved"
    assert reviewed["reviewed_by"] == "syndic-1"
    assert welcome.call_args[0][4] == profile["resident_onboarding_code"]


def test_approve_rolls_back_created_accounts(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    profiles = make_query([])
    profiles.execute.side_effect = Exception("profiles insert failed")
    with patch("routers.registration.get_supabase_client") as mock_supabase, \
            patch("routers.registration.create_auth_user", return_value=Mock(id="new-user")), \
            patch("routers.registration.send_welcome_code") as welcome:
        supabase = make_supabase(review_tables(profiles=profiles))
        mock_supabase.return_value = supabase
        response = client.post("/registration-requests/7/approve")

    assert response.status_code == 500
    supabase.queries["users"].delete.assert_called()
    supabase.auth.admin.delete_user.assert_called_with("new-user")
    supabase.queries["resident_registration_requests"].update.assert_not_called()
    welcome.assert_not_called()


def test_approve_already_reviewed(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.registration.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase(review_tables(
            resident_registration_requests=[{**PENDING, "status": "rejected"}],
        ))
        response = client.post("/registration-requests/7/approve")

    assert response.status_code == 400
    assert response.json()["error"] == "Request has already been rejected"


def test_reject_needs_a_real_reason(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.registration.get_supabase_client") as mock_supabase:
        supabase = make_supabase(review_tables())
        mock_supabase.return_value = supabase
        response = client.post("/registration-requests/7/reject", json={"reason": "  no     "})

    assert response.status_code == 400
    assert "at least 10 characters" in response.json()["error"]
    supabase.queries["resident_registration_requests"].update.assert_not_called()


def test_reject_records_reason_and_notifies(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.registration.get_supabase_client") as mock_supabase, \
            patch("routers.registration.send_registration_rejection") as notify:
        supabase = make_supabase(review_tables())
        mock_supabase.return_value = supabase
        response = client.post("/registration-requests/7/reject",
                               json={"reason": " Apartment 12 is not for rent "})

    assert response.status_code == 200
    update = supabase.queries["resident_registration_requests"].update.call_args[0][0]
    assert update["status"] == "rejected"
    assert update["rejection_reason"] == "Apartment 12 is not for rent"
    notify.assert_called_once_with("Salma@Example.com", "Salma Resident", "Atlas", "Apartment 12 is not for rent")


def test_resident_cannot_review(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.registration.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase(review_tables())
        response = client.post("/registration-requests/7/approve")
    assert response.status_code == 403
