# tests/test_fees_api.py

"""
Fee endpoints: role scoping, bulk split and mark-paid.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase, make_query


def test_guard_cannot_list_fees(client: TestClient, login_as, guard_user):
    login_as(guard_user)
    with patch("routers.fees.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase()
        response = client.get("/fees")
    assert response.status_code == 403


def test_resident_only_sees_own_fees(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.fees.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "profile_residences": [{"residence_id": 3}],
            "fees": [{"id": 1, "user_id": "resident-1", "amount": 100}],
        })
        mock_supabase.return_value = supabase
        response = client.get("/fees")

    assert response.status_code == 200
    assert len(response.json()["data"]) == 1
    supabase.queries["fees"].eq.assert_any_call("user_id", "resident-1")


def test_bulk_fee_split_evenly(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    links = [
        {"id": 1, "profile_id": "r1", "apartment_number": "1"},
        {"id": 2, "profile_id": "r2", "apartment_number": "2"},
        {"id": 3, "profile_id": "r3", "apartment_number": "3"},
    ]
    with patch("routers.fees.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"residences": [{"id": 3}], "profile_residences": links})
        mock_supabase.return_value = supabase
        response = client.post("/fees/bulk", json={
            "apartment_numbers": ["1", "2", "3"],
            "title": "Roof repair",
            "total_amount": 1000,
            "due_date": "2025-04-30",
        })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["count"] == 3
    assert data["amount_per_apartment"] == 333.33
    rows = supabase.queries["fees"].insert.call_args[0][0]
    assert {r["user_id"] for r in rows} == {"r1", "r2", "r3"}
    assert all(r["status"] == "unpaid" for r in rows)


def test_bulk_fee_requires_verified_residents(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.fees.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"residences": [{"id": 3}], "profile_residences": []})
        response = client.post("/fees/bulk", json={
            "apartment_numbers": ["9"], "title": "X", "total_amount": 10, "due_date": "2025-04-30",
        })
    assert response.status_code == 400


def test_paid_fee_cannot_be_deleted(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.fees.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "residences": [{"id": 3}],
            "fees": [{"id": 5, "status": "paid", "residence_id": 3}],
        })
        response = client.delete("/fees/5")
    assert response.status_code == 400
    assert response.json()["error"] == "Paid fees cannot be deleted"


def test_mark_already_paid_fee(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.recurring_fees.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "residences": [{"id": 3}],
            "fees": [{"id": 5, "status": "paid", "residence_id": 3, "user_id": "r1", "amount": 100}],
        })
        response = client.post("/recurring-fees/fees/5/mark-paid", json={"method": "cash"})
    assert response.status_code == 400
    assert response.json()["error"] == "Fee already paid"
