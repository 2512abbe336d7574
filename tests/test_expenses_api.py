# tests/test_expenses_api.py

"""
Expense workflow: draft → approved → paid, and the ledger entry on payment.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase

EXPENSE = {"id": 4, "residence_id": 3, "title": "Elevator repair", "amount": "120.00", "status": "draft"}


def expense_tables(status="draft", history=None):
    return {
        "residences": [{"id": 3}],
        "expenses": [{**EXPENSE, "status": status}],
        "transaction_history": history or [],
    }


def test_create_expense_starts_as_draft(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"residences": [{"id": 3}], "expenses": [EXPENSE]})
        mock_supabase.return_value = supabase
        response = client.post("/expenses", json={
            "title": "Elevator repair",
            "description": "Cable replacement",
            "amount": 120,
            "expense_date": "2025-03-02",
        })

    assert response.status_code == 200
    row = supabase.queries["expenses"].insert.call_args[0][0]
    assert row["status"] == "draft"
    assert row["residence_id"] == 3
    assert row["created_by"] == "syndic-1"


def test_approve_draft(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase(expense_tables())
        mock_supabase.return_value = supabase
        response = client.post("/expenses/4/approve")

    assert response.status_code == 200
    update = supabase.queries["expenses"].update.call_args[0][0]
    assert update["status"] == "approved"
    assert update["approved_by"] == "syndic-1"


def test_pay_approved_expense_writes_ledger(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase(expense_tables("approved", history=[{"balance_after": 1000}]))
        mock_supabase.return_value = supabase
        response = client.post("/expenses/4/pay", json={"payment_method": "bank_transfer", "payment_reference": "VIR-9"})

    assert response.status_code == 200
    update = supabase.queries["expenses"].update.call_args[0][0]
    assert update["status"] == "paid"
    assert update["payment_method"] == "bank_transfer"

    entry = supabase.queries["transaction_history"].insert.call_args[0][0]
    assert entry["transaction_type"] == "expense"
    assert entry["reference_table"] == "expenses"
    assert entry["reference_id"] == 4
    assert entry["amount"] == 120.0
    assert entry["balance_after"] == 880.0
    assert entry["method"] == "bank_transfer"


def test_draft_cannot_be_paid(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase(expense_tables("draft"))
        mock_supabase.return_value = supabase
        response = client.post("/expenses/4/pay", json={"payment_method": "cash"})

    assert response.status_code == 400
    supabase.queries["expenses"].update.assert_not_called()
    supabase.queries["transaction_history"].insert.assert_not_called()


def test_pay_needs_method(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    response = client.post("/expenses/4/pay", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "payment_method is required"


def test_paid_expense_cannot_be_deleted(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase(expense_tables("paid"))
        mock_supabase.return_value = supabase
        response = client.delete("/expenses/4")

    assert response.status_code == 400
    supabase.queries["expenses"].delete.assert_not_called()


def test_reject_cancels_with_reason(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase(expense_tables("approved"))
        mock_supabase.return_value = supabase
        response = client.post("/expenses/4/reject", json={"reason": " duplicate invoice "})

    assert response.status_code == 200
    assert supabase.queries["expenses"].update.call_args[0][0] == {
        "status": "cancelled", "rejection_reason": "duplicate invoice",
    }


def test_unknown_category_update(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.expenses.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"residences": [{"id": 3}], "expense_categories": []})
        mock_supabase.return_value = supabase
        response = client.patch("/expenses/categories/8", json={"name": "Gardening"})

    assert response.status_code == 404
    categories = supabase.queries["expense_categories"]
    categories.eq.assert_any_call("id", 8)
    categories.eq.assert_any_call("residence_id", 3)


def test_guard_has_no_expense_access(client: TestClient, login_as, guard_user):
    login_as(guard_user)
    response = client.get("/expenses")
    assert response.status_code == 403
