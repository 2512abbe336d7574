# models/residence.py

from typing import Optional
from pydantic import BaseModel, Field, field_validator


# -------------------------------------------------
# Shared fields
# -------------------------------------------------
class ResidenceBase(BaseModel):
    name: str
    address: str
    city: str
    bank_account_rib: Optional[str] = None


# -------------------------------------------------
# Create (syndic onboarding)
# -------------------------------------------------
class ResidenceCreate(ResidenceBase):

    @field_validator("name", "address", "city")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


# -------------------------------------------------
# Admin create (optionally assigns a syndic)
# -------------------------------------------------
class AdminResidenceCreate(ResidenceCreate):
    syndic_user_id: Optional[str] = None


# -------------------------------------------------
# Update (PATCH)
# -------------------------------------------------
class ResidenceUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    bank_account_rib: Optional[str] = None
    guard_user_id: Optional[str] = None
    qr_brand_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
