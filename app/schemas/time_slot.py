"""Time slot schemas"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class TimeSlotCreate(BaseModel):
    """Weekly slot (day_of_week) or one-off override (specific_date)"""
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: str
    end_time: str
    max_reservations: int = Field(6, ge=1)
    is_active: bool = True


class TimeSlotUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_reservations: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class TimeSlotResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    day_of_week: Optional[int]
    specific_date: Optional[date]
    start_time: str
    end_time: str
    max_reservations: int
    is_active: bool
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True
