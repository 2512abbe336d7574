# models/expense.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field

from models.enums import PaymentMethod


class ExpenseCreate(BaseModel):
    title: str
    description: str
    amount: float = Field(gt=0)
    expense_date: date
    category_id: Optional[int] = None
    vendor_name: Optional[str] = None
    vendor_contact: Optional[str] = None
    invoice_number: Optional[str] = None
    attachment_url: Optional[str] = None
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    expense_date: Optional[date] = None
    category_id: Optional[int] = None
    vendor_name: Optional[str] = None
    vendor_contact: Optional[str] = None
    invoice_number: Optional[str] = None
    attachment_url: Optional[str] = None
    notes: Optional[str] = None


class ExpensePay(BaseModel):
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    receipt_url: Optional[str] = None


class ExpenseReject(BaseModel):
    reason: str


class ExpenseCategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    display_order: int = 0


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None
