# models/admin.py

from typing import Optional
from pydantic import BaseModel, Field


class AdminLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    access_hash: Optional[str] = Field(None, alias="accessHash")

    model_config = {"populate_by_name": True}


class DocumentApprove(BaseModel):
    residence_id: Optional[int] = Field(None, alias="residenceId")

    model_config = {"populate_by_name": True}


class ReasonPayload(BaseModel):
    reason: Optional[str] = None


class DeletionRequestApprove(BaseModel):
    successor_user_id: Optional[str] = Field(None, alias="successorUserId")

    model_config = {"populate_by_name": True}
