# models/contribution.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field

from models.enums import PeriodType, ContributionStatus, PaymentMethod


# -------------------------------------------------
# Contribution plans
# -------------------------------------------------
class ContributionPlanCreate(BaseModel):
    residence_id: Optional[int] = None
    plan_name: Optional[str] = None
    amount_per_period: Optional[float] = Field(None, gt=0)
    period_type: Optional[PeriodType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    is_active: bool = True
    applies_to_all_apartments: Optional[bool] = True
    auto_generate: bool = False
    generation_day: int = Field(1, ge=1, le=28)
    due_day: int = Field(5, ge=1, le=28)
    late_fee_enabled: bool = False
    late_fee_amount: Optional[float] = None
    late_fee_days_after: Optional[int] = None
    reminder_enabled: bool = True
    reminder_days_before: int = 3


class ContributionPlanUpdate(BaseModel):
    plan_name: Optional[str] = None
    description: Optional[str] = None
    amount_per_period: Optional[float] = Field(None, gt=0)
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    auto_generate: Optional[bool] = None
    generation_day: Optional[int] = Field(None, ge=1, le=28)
    due_day: Optional[int] = Field(None, ge=1, le=28)
    reminder_enabled: Optional[bool] = None
    reminder_days_before: Optional[int] = None


# -------------------------------------------------
# Contributions
# -------------------------------------------------
class ContributionGenerate(BaseModel):
    residence_id: Optional[int] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    # apartment_number -> amount override
    custom_amounts: Optional[dict[str, float]] = None


class ContributionUpdate(BaseModel):
    amount_due: Optional[float] = Field(None, ge=0)
    amount_paid: Optional[float] = Field(None, ge=0)
    status: Optional[ContributionStatus] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class ManualContribution(BaseModel):
    """Back-fill a monthly contribution (historical import)."""
    user_id: str
    apartment_number: Optional[str] = None
    month: int
    year: int
    amount: float
    status: str = "unpaid"
    payment_method: PaymentMethod = PaymentMethod.cash
