"""Reservation schemas"""

from datetime import date, datetime
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field


class BookingRequest(BaseModel):
    """Guest or staff booking submission"""
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=20)
    email: EmailStr
    party_size: int = Field(..., ge=1, le=20)
    date: date
    time: str  # "6:00 PM" or "18:00"
    special_requests: Optional[str] = None
    special_occasion_type: Optional[str] = None
    # Update this draft in place instead of creating a new one
    draft_id: Optional[UUID] = None


class ReservationResponse(BaseModel):
    """Reservation response"""
    id: UUID
    tenant_id: UUID
    name: str
    phone: str
    email: Optional[str]
    party_size: int
    date_time: datetime
    slot_start_time: Optional[str]
    slot_end_time: Optional[str]
    status: str
    table_id: Optional[str]
    novacustomer_id: Optional[str]
    payment_amount: Optional[float]
    special_requests: Optional[str]
    special_occasion_type: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    """Paginated reservation list"""
    items: List[ReservationResponse]
    total: int
    page: int
    page_size: int


class SeatRequest(BaseModel):
    """Seat a reservation at a table (Nova table refId or local table id)"""
    table_id: str


class SendMessageRequest(BaseModel):
    """Free text, or a template id rendered for the reservation"""
    message: Optional[str] = None
    template: Optional[str] = None


class MessageHistoryResponse(BaseModel):
    id: UUID
    reservation_id: UUID
    phone_number: str
    message: str
    status: str
    sent_at: Optional[datetime]

    class Config:
        from_attributes = True


class PaymentRequest(BaseModel):
    """Start checkout for a draft; amount only honoured for custom pricing"""
    amount: Optional[float] = None


class PaymentResponse(BaseModel):
    reservation_id: UUID
    amount: float
    checkout_url: str


class AvailabilityResponse(BaseModel):
    """Open slots for a date"""
    date: date
    party_size: Optional[int] = None
    slots: List[str] = []


class PhoneLookupRequest(BaseModel):
    phone: str


class TableResponse(BaseModel):
    """Nova or local table in one shape"""
    id: str
    tenant_id: UUID
    name: str
    seats: int
    status: str
    location: Optional[str] = None


class TableCreate(BaseModel):
    name: str
    seats: int = Field(..., ge=1)
    location: Optional[str] = None


class TableOccupiedResponse(BaseModel):
    detail: str
    error: str
    tables: List[Dict[str, Any]] = []
