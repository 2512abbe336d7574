# models/registration.py

from typing import Optional
from pydantic import BaseModel


class RegistrationSubmit(BaseModel):
    """
    Public registration form reached through a residence QR code.
    Fields are validated in the router so every missing field produces
    the same 400 message.
    """
    residence_id: Optional[int] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    apartment_number: Optional[str] = None
    id_number: Optional[str] = None
    id_document_url: Optional[str] = None


class RegistrationReject(BaseModel):
    reason: str
