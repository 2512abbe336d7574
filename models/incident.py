# models/incident.py

from typing import Optional
from pydantic import BaseModel

from models.enums import IncidentStatus


class IncidentCreate(BaseModel):
    title: str
    description: str
    photo_url: Optional[str] = None


class IncidentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    # syndic only
    status: Optional[IncidentStatus] = None
    assigned_to: Optional[str] = None
