# tests/test_account.py

"""
Account deletion and syndic replacement codes.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase


def code_row(**overrides):
    row = {
        "id": 5,
        "code": "AB12CD34",
        "residence_id": 3,
        "original_user_id": "syndic-1",
        "replacement_email": "resident@example.com",
        "action_type": "delete_account",
        "code_used": False,
        "failed_attempts": 0,
        "expires_at": (datetime.now(timezone.utc) + timedelta(days=3)).isoformat(),
    }
    row.update(overrides)
    return row


def test_syndic_cannot_delete_directly(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    response = client.delete("/account")
    assert response.status_code == 403


def test_resident_deletes_account(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client"), \
            patch("routers.account.delete_user_account", return_value={"deleted": True}) as delete:
        response = client.delete("/account")

    assert response.status_code == 200
    assert delete.call_args[0][1] == "resident-1"


def test_resident_cannot_use_syndic_deletion(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    response = client.post("/account/delete")
    assert response.status_code == 403


def test_validate_code_wrong_email_counts_attempt(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"access_codes": [code_row(replacement_email="other@example.com", failed_attempts=2)]})
        mock_supabase.return_value = supabase
        response = client.post("/account/replacement-code/validate", json={"code": "ab12cd34"})

    assert response.status_code == 403
    supabase.queries["access_codes"].update.assert_called_with({"failed_attempts": 3})


def test_validate_expired_code(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    expired = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    with patch("routers.account.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"access_codes": [code_row(expires_at=expired)]})
        response = client.post("/account/replacement-code/validate", json={"code": "AB12CD34"})

    assert response.status_code == 400
    assert "expired" in response.json()["error"]


def test_validate_locked_code(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"access_codes": [code_row(failed_attempts=5)]})
        response = client.post("/account/replacement-code/validate", json={"code": "AB12CD34"})
    assert "locked" in response.json()["error"]


def test_validate_active_code(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "access_codes": [code_row()],
            "residences": [{"id": 3, "name": "Atlas"}],
        })
        response = client.post("/account/replacement-code/validate", json={"code": "AB12CD34"})

    assert response.status_code == 200
    assert response.json()["data"]["residence"]["name"] == "Atlas"


def test_syndic_deletion_uses_own_residence(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.account.get_supabase_client") as mock_supabase, \
            patch("routers.account.delete_syndic_account",
                  return_value={"user_id": "syndic-1", "residence_deleted": True}) as delete:
        mock_supabase.return_value = make_supabase({"residences": [{"id": 3}]})
        response = client.post("/account/delete")

    assert response.status_code == 200
    assert delete.call_args[0][1:] == ("syndic-1", 3)
    assert response.json()["data"]["residence_deleted"] is True


def test_complete_code_hands_residence_over(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase, \
            patch("routers.account.transfer_syndic_data") as transfer, \
            patch("routers.account.delete_user_account") as delete:
        supabase = make_supabase({"access_codes": [code_row()]})
        mock_supabase.return_value = supabase
        response = client.post("/account/replacement-code/complete", json={"code": "ab12cd34"})

    assert response.status_code == 200
    assert transfer.call_args[0][1:] == ("syndic-1", "resident-1", 3)
    used = supabase.queries["access_codes"].update.call_args[0][0]
    assert used["code_used"] is True
    assert used["used_by_user_id"] == "resident-1"
    delete.assert_called_once_with(supabase, "syndic-1")
    assert response.json()["data"]["previous_syndic_deleted"] is True


def test_complete_code_demotes_previous_syndic(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase, \
            patch("routers.account.transfer_syndic_data"), \
            patch("routers.account.delete_user_account") as delete:
        supabase = make_supabase({"access_codes": [code_row(action_type="change_role")]})
        mock_supabase.return_value = supabase
        response = client.post("/account/replacement-code/complete", json={"code": "AB12CD34"})

    assert response.status_code == 200
    delete.assert_not_called()
    supabase.queries["profiles"].update.assert_called_with({"role": "resident"})
    supabase.queries["profiles"].eq.assert_called_with("id", "syndic-1")


def test_complete_code_for_other_email(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase, \
            patch("routers.account.transfer_syndic_data") as transfer:
        mock_supabase.return_value = make_supabase({"access_codes": [code_row(replacement_email="x@example.com")]})
        response = client.post("/account/replacement-code/complete", json={"code": "AB12CD34"})

    assert response.status_code == 403
    transfer.assert_not_called()


def test_used_code_cannot_be_completed(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.account.get_supabase_client") as mock_supabase, \
            patch("routers.account.transfer_syndic_data") as transfer:
        mock_supabase.return_value = make_supabase({"access_codes": [code_row(code_used=True)]})
        response = client.post("/account/replacement-code/complete", json={"code": "AB12CD34"})

    assert response.status_code == 400
    assert response.json()["error"] == "Code is used"
    transfer.assert_not_called()
