"""Waitlist schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field


class WaitlistCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    party_size: int = Field(..., ge=1)
    quoted_wait_time: Optional[str] = None
    notes: Optional[str] = None


class WaitlistResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    phone: str
    email: Optional[str]
    party_size: int
    check_in_time: datetime
    quoted_wait_time: Optional[str]
    status: str
    table_id: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class AssignTableRequest(BaseModel):
    table_id: str


class WaitlistPausedResponse(BaseModel):
    waitlist_paused: bool
