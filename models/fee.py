# models/fee.py

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field

from models.enums import FeeType, FeeStatus, CoveragePeriodType


# -------------------------------------------------
# One-off fees
# -------------------------------------------------
class FeeCreate(BaseModel):
    user_id: str
    title: str
    amount: float = Field(gt=0)
    due_date: date
    description: Optional[str] = None
    fee_type: FeeType = FeeType.one_time
    reason: Optional[str] = None


class FeeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    due_date: Optional[date] = None
    status: Optional[FeeStatus] = None
    fee_type: Optional[FeeType] = None
    reason: Optional[str] = None


class BulkFeeCreate(BaseModel):
    """A total split evenly across the listed apartments."""
    apartment_numbers: List[str] = Field(min_length=1)
    title: str
    total_amount: float = Field(gt=0)
    due_date: date
    description: Optional[str] = None
    fee_type: FeeType = FeeType.one_time


# -------------------------------------------------
# Recurring fee rules
# -------------------------------------------------
class RecurringFeeCreate(BaseModel):
    title: str
    amount: float = Field(gt=0)
    coverage_period_value: int = Field(1, ge=1)
    coverage_period_type: CoveragePeriodType = CoveragePeriodType.month
    start_date: date
    reminder_enabled: bool = True
    reminder_days_before: int = Field(3, ge=0)


class RecurringFeeUpdate(BaseModel):
    title: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None
    reminder_enabled: Optional[bool] = None
    reminder_days_before: Optional[int] = Field(None, ge=0)


class MarkFeesPaid(BaseModel):
    fee_ids: List[int] = Field(min_length=1)
    method: str = "cash"
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class MarkFeePaid(BaseModel):
    method: str = "cash"
    reference_number: Optional[str] = None
    notes: Optional[str] = None
