# tests/test_contributions.py

"""
Contribution plans: period alignment, plan selection and the
apartment × month matrix.
"""

from datetime import date

import pytest
from fastapi import HTTPException

from services.contributions import (
    align_period,
    due_date_for,
    select_plan,
    build_status_matrix,
    create_period_contributions,
    auto_generate_due_plans,
    month_key,
)
from supabase_mocks import make_supabase


PLAN = {
    "id": 1,
    "plan_name": "2025",
    "is_active": True,
    "period_type": "monthly",
    "amount_per_period": 300,
    "start_date": "2025-01-01",
    "end_date": "2025-12-31",
    "due_day": 5,
}


def test_align_quarter_and_semester():
    assert align_period("quarterly", date(2025, 5, 10), date(2025, 5, 31)) == (date(2025, 4, 1), date(2025, 6, 30))
    assert align_period("semi_annual", date(2025, 8, 1), date(2025, 8, 31)) == (date(2025, 7, 1), date(2025, 12, 31))
    assert align_period("annual", date(2025, 8, 1), date(2025, 8, 31)) == (date(2025, 1, 1), date(2025, 12, 31))
    assert align_period("monthly", date(2025, 8, 1), date(2025, 8, 31)) == (date(2025, 8, 1), date(2025, 8, 31))


def test_due_day_is_clamped():
    assert due_date_for(date(2025, 2, 1), 31) == date(2025, 2, 28)
    assert due_date_for(date(2025, 2, 1), None) == date(2025, 2, 1)


def test_select_plan_messages():
    with pytest.raises(HTTPException) as exc:
        select_plan([], date(2025, 1, 1), date(2025, 1, 31))
    assert "create a contribution plan" in exc.value.detail

    with pytest.raises(HTTPException) as exc:
        select_plan([{**PLAN, "is_active": False}], date(2025, 1, 1), date(2025, 1, 31))
    assert "No active contribution plan" in exc.value.detail

    with pytest.raises(HTTPException) as exc:
        select_plan([PLAN], date(2026, 1, 1), date(2026, 1, 31))
    assert "does not cover" in exc.value.detail

    assert select_plan([PLAN], date(2025, 6, 1), date(2025, 6, 30)) is PLAN


def test_create_period_contributions_uses_custom_amounts_and_skips_existing():
    client = make_supabase({
        "profile_residences": [
            {"id": 1, "apartment_number": "1"},
            {"id": 2, "apartment_number": "2"},
            {"id": 3, "apartment_number": "3"},
            {"id": 4, "apartment_number": None},
        ],
        "contributions": [{"profile_residence_id": 1}],
    })

    result = create_period_contributions(
        client, 9, PLAN, date(2025, 3, 1), date(2025, 3, 31), custom_amounts={"3": 450}
    )

    assert result["count"] == 2
    assert result["skipped"] == 1
    rows = client.queries["contributions"].insert.call_args[0][0]
    assert [r["apartment_number"] for r in rows] == ["2", "3"]
    assert [r["amount_due"] for r in rows] == [300.0, 450.0]
    assert rows[0]["due_date"] == "2025-03-05"
    assert rows[0]["status"] == "pending"


def test_auto_generate_only_runs_on_generation_day():
    plan = {**PLAN, "residence_id": 9, "auto_generate": True, "generation_day": 2}
    client = make_supabase({"contribution_plans": [plan]})

    result = auto_generate_due_plans(client, today=date(2025, 3, 1))
    assert result == {"plans_processed": 0, "contributions_created": 0}


def test_status_matrix():
    rows = [
        {"id": 1, "apartment_number": "10", "period_start": "2025-02-01", "status": "paid",
         "amount_due": 300, "amount_paid": 300},
        {"id": 2, "apartment_number": "2", "period_start": "2025-01-01", "status": "partial",
         "amount_due": 300, "amount_paid": 100},
        {"id": 3, "apartment_number": "2", "period_start": "2025-02-01", "status": "overdue",
         "amount_due": 300, "amount_paid": 0},
        {"id": 4, "apartment_number": "2", "period_start": "2025-03-01", "status": "cancelled",
         "amount_due": 300, "amount_paid": 0},
    ]

    matrix = build_status_matrix(rows)

    assert matrix["months"] == [month_key(date(2025, 1, 1)), month_key(date(2025, 2, 1)), month_key(date(2025, 3, 1))]
    assert [a["apartment_number"] for a in matrix["apartments"]] == ["2", "10"]

    apt2 = matrix["apartments"][0]
    assert apt2["outstanding_months"] == 2
    assert apt2["total_due"] == 600.0
    assert apt2["total_paid"] == 100.0
    assert apt2["months"]["mars-25"]["status"] == "cancelled"
