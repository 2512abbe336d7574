# tests/test_recurring_fees.py

"""
Recurring fee period math and generation.
"""

from datetime import date

import pytest
from fastapi import HTTPException

from services.recurring_fees import (
    advance_period,
    coverage_end,
    generated_fee_title,
    build_rule_row,
    generate_fees_for_rule,
)
from supabase_mocks import make_supabase, make_query


def test_monthly_period_clamps_month_end():
    assert advance_period(date(2025, 1, 31), 1, "month") == date(2025, 2, 28)
    assert coverage_end(date(2025, 1, 1), 1, "month") == date(2025, 1, 31)


def test_multi_month_and_yearly_periods():
    assert coverage_end(date(2025, 1, 1), 3, "month") == date(2025, 3, 31)
    assert coverage_end(date(2024, 3, 1), 1, "year") == date(2025, 2, 28)
    assert advance_period(date(2025, 1, 1), 2, "week") == date(2025, 1, 15)


def test_unknown_period_type():
    with pytest.raises(ValueError):
        advance_period(date(2025, 1, 1), 1, "fortnight")


def test_title_mentions_coverage_only_when_not_plain_monthly():
    assert generated_fee_title("Syndic", date(2025, 1, 1), date(2025, 1, 31), 1, "month") == "Syndic"
    assert generated_fee_title("Syndic", date(2025, 1, 1), date(2025, 3, 31), 3, "month") == \
        "Syndic (Covers 2025-01-01 - 2025-03-31)"


def test_build_rule_row_sets_first_period():
    row = build_rule_row(4, "syndic-1", {
        "title": "Monthly",
        "amount": 250,
        "start_date": "2025-02-01",
        "coverage_period_value": 1,
        "coverage_period_type": "month",
    })
    assert row["next_due_date"] == "2025-02-01"
    assert row["coverage_end_date"] == "2025-02-28"
    assert row["residence_id"] == 4
    assert row["is_active"] is True


def test_generate_requires_residents():
    client = make_supabase({"profile_residences": []})
    rule = {"id": 1, "residence_id": 4, "title": "Monthly", "amount": 100, "next_due_date": "2025-03-01"}
    with pytest.raises(HTTPException) as exc:
        generate_fees_for_rule(client, rule, "syndic-1")
    assert exc.value.status_code == 400
    assert exc.value.detail == "No residents found"


def test_generate_skips_existing_and_rolls_forward():
    residents = [
        {"profile_id": "r1", "id": 11, "apartment_number": "1"},
        {"profile_id": "r2", "id": 12, "apartment_number": "2"},
    ]
    # r1 already has a fee for the period, r2 does not; then the two inserts
    fees = make_query([{"id": 99}], [], [])
    client = make_supabase({"profile_residences": residents, "fees": fees})
    rule = {
        "id": 1, "residence_id": 4, "title": "Monthly", "amount": "100.00",
        "next_due_date": "2025-03-01", "coverage_period_value": 1, "coverage_period_type": "month",
    }

    result = generate_fees_for_rule(client, rule, "syndic-1")

    assert result["count"] == 1
    assert result["skipped"] == 1
    assert result["next_due_date"] == "2025-04-01"
    inserted = fees.insert.call_args[0][0]
    assert inserted["user_id"] == "r2"
    assert inserted["amount"] == 100.0
    client.queries["recurring_fee_settings"].update.assert_called_with({
        "next_due_date": "2025-04-01",
        "coverage_end_date": "2025-04-30",
    })
