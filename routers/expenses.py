# routers/expenses.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.errors import handle_supabase_error
from core.permission_helpers import require_syndic_residence, requires_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row, safe_update
from core.utils import sanitize, utc_now_iso, to_amount
from dependencies.auth import CurrentUser
from models.expense import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpensePay,
    ExpenseReject,
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
)
from services.ledger import record_transaction

router = APIRouter(
    prefix="/expenses",
    tags=["Expenses"],
)

can_read = requires_permission("expenses:read")
can_write = requires_permission("expenses:write")


def _load_expense(client, expense_id: int, residence_id: int) -> dict:
    expense = first_row(
        client.table("expenses").select("*")
        .eq("id", expense_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not expense:
        raise HTTPException(404, "Expense not found")
    return expense


def _require_status(expense: dict, *allowed: str):
    if expense["status"] not in allowed:
        raise HTTPException(400, f"Expense is {expense['status']}, expected {' or '.join(allowed)}")


# =============================================================
# CATEGORIES
# =============================================================
@router.get("/categories")
def list_categories(
    include_inactive: bool = Query(False),
    current_user: CurrentUser = Depends(can_read),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    query = client.table("expense_categories").select("*").eq("residence_id", residence_id)
    if not include_inactive:
        query = query.eq("is_active", True)
    result = query.order("display_order").execute()
    return {"success": True, "data": result.data or []}


@router.post("/categories")
def create_category(payload: ExpenseCategoryCreate, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    try:
        result = client.table("expense_categories").insert({
            **sanitize(payload.model_dump()),
            "residence_id": residence_id,
            "is_active": True,
        }, returning="representation").execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create category")
    return {"success": True, "data": first_row(result)}


@router.patch("/categories/{category_id}")
def update_category(category_id: int, payload: ExpenseCategoryUpdate,
                    current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    updates = sanitize(payload.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    category = safe_update(client, "expense_categories", {"id": category_id, "residence_id": residence_id}, updates)
    if not category:
        raise HTTPException(404, "Category not found")
    return {"success": True, "data": category}


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, current_user: CurrentUser = Depends(can_write)):
    """Soft delete: expenses keep pointing at the category."""
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    category = safe_update(
        client, "expense_categories", {"id": category_id, "residence_id": residence_id}, {"is_active": False}
    )
    if not category:
        raise HTTPException(404, "Category not found")
    return {"success": True, "data": {"id": category_id, "is_active": False}}


# =============================================================
# EXPENSES
# =============================================================
@router.get("")
def list_expenses(
    status: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: CurrentUser = Depends(can_read),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    query = client.table("expenses").select("*").eq("residence_id", residence_id)
    if status:
        query = query.eq("status", status)
    if category_id:
        query = query.eq("category_id", category_id)
    if start_date:
        query = query.gte("expense_date", start_date.isoformat())
    if end_date:
        query = query.lte("expense_date", end_date.isoformat())

    try:
        expenses = query.order("expense_date", desc=True).execute().data or []
        categories = (
            client.table("expense_categories").select("id, name, color")
            .eq("residence_id", residence_id).execute()
        ).data or []
        people_ids = list({e[k] for e in expenses for k in ("approved_by", "created_by") if e.get(k)})
        people = []
        if people_ids:
            people = client.table("profiles").select("id, full_name").in_("id", people_ids).execute().data or []
    except Exception as e:
        raise HTTPException(500, f"Unable to fetch expenses: {e}")

    by_category = {c["id"]: c for c in categories}
    names = {p["id"]: p.get("full_name") for p in people}
    for expense in expenses:
        category = by_category.get(expense.get("category_id")) or {}
        expense["category_name"] = category.get("name")
        expense["category_color"] = category.get("color")
        expense["approver_name"] = names.get(expense.get("approved_by"))
        expense["creator_name"] = names.get(expense.get("created_by"))

    total = round(sum(to_amount(e.get("amount")) for e in expenses), 2)
    return {"success": True, "data": expenses, "total": total}


@router.get("/{expense_id}")
def get_expense(expense_id: int, current_user: CurrentUser = Depends(can_read)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    return {"success": True, "data": _load_expense(client, expense_id, residence_id)}


@router.post("")
def create_expense(payload: ExpenseCreate, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    try:
        result = client.table("expenses").insert({
            **sanitize(payload.model_dump(mode="json")),
            "residence_id": residence_id,
            "status": "draft",
            "created_by": current_user.id,
        }, returning="representation").execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create expense")
    return {"success": True, "data": first_row(result)}


@router.patch("/{expense_id}")
def update_expense(expense_id: int, payload: ExpenseUpdate, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    expense = _load_expense(client, expense_id, residence_id)
    _require_status(expense, "draft")

    updates = sanitize(payload.model_dump(mode="json", exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    result = client.table("expenses").update(updates).eq("id", expense_id).execute()
    return {"success": True, "data": first_row(result) or {**expense, **updates}}


@router.delete("/{expense_id}")
def delete_expense(expense_id: int, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    expense = _load_expense(client, expense_id, residence_id)
    if expense["status"] == "paid":
        raise HTTPException(400, "Paid expenses cannot be deleted")

    client.table("expenses").delete().eq("id", expense_id).execute()
    return {"success": True, "data": {"id": expense_id}}


# -------------------------------------------------------------
# WORKFLOW: draft → approved → paid (or cancelled)
# -------------------------------------------------------------
@router.post("/{expense_id}/approve")
def approve_expense(expense_id: int, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    expense = _load_expense(client, expense_id, residence_id)
    _require_status(expense, "draft")

    updates = {"status": "approved", "approved_by": current_user.id, "approved_at": utc_now_iso()}
    result = client.table("expenses").update(updates).eq("id", expense_id).execute()
    return {"success": True, "data": first_row(result) or {**expense, **updates}}


@router.post("/{expense_id}/reject")
def reject_expense(expense_id: int, payload: ExpenseReject, current_user: CurrentUser = Depends(can_write)):
    if not payload.reason or not payload.reason.strip():
        raise HTTPException(400, "A rejection reason is required")

    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    expense = _load_expense(client, expense_id, residence_id)
    _require_status(expense, "draft", "approved")

    updates = {"status": "cancelled", "rejection_reason": payload.reason.strip()}
    result = client.table("expenses").update(updates).eq("id", expense_id).execute()
    return {"success": True, "data": first_row(result) or {**expense, **updates}}


@router.post("/{expense_id}/pay")
def pay_expense(expense_id: int, payload: ExpensePay, current_user: CurrentUser = Depends(can_write)):
    if not payload.payment_method:
        raise HTTPException(400, "payment_method is required")

    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    expense = _load_expense(client, expense_id, residence_id)
    _require_status(expense, "approved")

    updates = {
        "status": "paid",
        "payment_method": str(payload.payment_method),
        "payment_reference": payload.payment_reference,
        "receipt_url": payload.receipt_url,
    }
    result = client.table("expenses").update(updates).eq("id", expense_id).execute()

    record_transaction(
        client,
        residence_id=residence_id,
        transaction_type="expense",
        amount=to_amount(expense["amount"]),
        reference_table="expenses",
        reference_id=expense_id,
        method=str(payload.payment_method),
        description=expense.get("title"),
        created_by=current_user.id,
    )
    return {"success": True, "data": first_row(result) or {**expense, **updates}}
