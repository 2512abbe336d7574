# models/financial.py

from typing import Optional
from pydantic import BaseModel, Field


class CloseMonth(BaseModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    cash_balance: Optional[float] = None
    bank_balance: Optional[float] = None
    notes: Optional[str] = None
