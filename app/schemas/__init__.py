"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    Token,
    RefreshRequest,
    UserResponse,
)
from app.schemas.tenant import (
    TenantCreate,
    TenantUpdate,
    TenantResponse,
    PublicRestaurantResponse,
    SettingsPatch,
)
from app.schemas.reservation import (
    BookingRequest,
    ReservationResponse,
    ReservationListResponse,
    SeatRequest,
    SendMessageRequest,
    MessageHistoryResponse,
    PaymentRequest,
    PaymentResponse,
    AvailabilityResponse,
    PhoneLookupRequest,
    TableResponse,
    TableCreate,
)
from app.schemas.time_slot import (
    TimeSlotCreate,
    TimeSlotUpdate,
    TimeSlotResponse,
)
from app.schemas.waitlist import (
    WaitlistCreate,
    WaitlistResponse,
    AssignTableRequest,
    WaitlistPausedResponse,
)

__all__ = [
    "Token",
    "RefreshRequest",
    "UserResponse",
    "TenantCreate",
    "TenantUpdate",
    "TenantResponse",
    "PublicRestaurantResponse",
    "SettingsPatch",
    "BookingRequest",
    "ReservationResponse",
    "ReservationListResponse",
    "SeatRequest",
    "SendMessageRequest",
    "MessageHistoryResponse",
    "PaymentRequest",
    "PaymentResponse",
    "AvailabilityResponse",
    "PhoneLookupRequest",
    "TableResponse",
    "TableCreate",
    "TimeSlotCreate",
    "TimeSlotUpdate",
    "TimeSlotResponse",
    "WaitlistCreate",
    "WaitlistResponse",
    "AssignTableRequest",
    "WaitlistPausedResponse",
]
