# tests/test_payments.py

"""
Payment verification and allocation.
"""

import pytest
from fastapi import HTTPException

from services.payments import verify_payment, allocate_payment, contribution_status
from supabase_mocks import make_supabase, make_query


def test_contribution_status():
    assert contribution_status(300, 300) == "paid"
    assert contribution_status(100, 300) == "partial"


def test_verify_rejects_already_verified():
    with pytest.raises(HTTPException) as exc:
        verify_payment(make_supabase(), {"id": 1, "status": "verified"}, "syndic-1")
    assert exc.value.status_code == 400


def test_verify_marks_fee_paid_and_records_income():
    payment = {"id": 5, "status": "pending", "amount": 250, "fee_id": 8, "residence_id": 3,
               "method": "cash", "payment_type": "fee"}
    client = make_supabase({"payments": [{**payment, "status": "verified"}]})

    verified = verify_payment(client, payment, "syndic-1")

    assert verified["status"] == "verified"
    fee_update = client.queries["fees"].update.call_args[0][0]
    assert fee_update["status"] == "paid"
    ledger_row = client.queries["transaction_history"].insert.call_args[0][0]
    assert ledger_row["transaction_type"] == "income"
    assert ledger_row["amount"] == 250.0


def test_allocation_cannot_exceed_payment():
    payment = {"id": 1, "status": "verified", "amount": 100, "residence_id": 3}
    with pytest.raises(HTTPException) as exc:
        allocate_payment(make_supabase(), payment, [{"type": "fee", "id": 1, "amount": 150}])
    assert "exceeds payment amount" in exc.value.detail


def test_allocation_only_for_verified_payments():
    with pytest.raises(HTTPException):
        allocate_payment(make_supabase(), {"id": 1, "status": "pending", "amount": 100}, [])


def test_allocation_splits_and_keeps_credit():
    payment = {"id": 1, "status": "verified", "amount": 500, "residence_id": 3, "notes": "Virement"}
    contribution = {"id": 20, "amount_due": 300, "amount_paid": 100}
    client = make_supabase({
        "contributions": [contribution],
        "fees": make_query([{"id": 30, "status": "unpaid"}], []),
    })

    result = allocate_payment(client, payment, [
        {"type": "contribution", "id": 20, "amount": 200},
        {"type": "fee", "id": 30, "amount": 150},
        {"type": "fee", "id": 31, "amount": 0},
    ])

    assert [a["type"] for a in result["allocated"]] == ["contribution", "fee"]
    assert result["allocated"][0]["status"] == "paid"
    assert len(result["skipped"]) == 1
    assert result["remaining_credit"] == 150.0

    payment_update = client.queries["payments"].update.call_args[0][0]
    assert payment_update["notes"] == "Virement\nCredit: 150.00 MAD"
    assert payment_update["contribution_id"] == 20
    assert payment_update["fee_id"] == 30
