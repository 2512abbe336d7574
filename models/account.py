# models/account.py

from typing import Optional
from pydantic import BaseModel, EmailStr

from models.enums import AccessCodeAction


class ReplacementCodeCreate(BaseModel):
    replacement_email: EmailStr
    action_type: AccessCodeAction = AccessCodeAction.delete_account


class AccessCodeRedeem(BaseModel):
    code: str


class DeletionRequestCreate(BaseModel):
    successor_user_id: Optional[str] = None
