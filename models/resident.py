# models/resident.py

from typing import Optional
from pydantic import BaseModel, EmailStr


class ResidentCreate(BaseModel):
    """Syndic adds a resident directly (no public registration)."""
    full_name: str
    email: EmailStr
    phone_number: Optional[str] = None
    apartment_number: str


class ResidentUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    apartment_number: Optional[str] = None
    verified: Optional[bool] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    onboarding_completed: Optional[bool] = None
