# models/payment.py

from typing import List, Optional
from pydantic import BaseModel, Field

from models.enums import PaymentMethod, PaymentType


class PaymentSubmit(BaseModel):
    """Resident declares a payment (bank transfer, cheque...) pending review."""
    amount: float = Field(gt=0)
    method: PaymentMethod
    payment_type: PaymentType = PaymentType.fee
    fee_id: Optional[int] = None
    contribution_id: Optional[int] = None
    proof_url: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class CashPaymentCreate(BaseModel):
    """Syndic records money received in hand; verified immediately."""
    user_id: str
    amount: float = Field(gt=0)
    payment_type: PaymentType = PaymentType.fee
    method: PaymentMethod = PaymentMethod.cash
    fee_id: Optional[int] = None
    contribution_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentReject(BaseModel):
    reason: str


class Allocation(BaseModel):
    type: str = Field(pattern="^(contribution|fee)$")
    id: int
    amount: float


class PaymentAllocate(BaseModel):
    allocations: List[Allocation] = Field(min_length=1)
