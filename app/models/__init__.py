"""Database models"""

from app.models.restaurant import Restaurant
from app.models.reservation import Reservation, ReservationStatus
from app.models.time_slot import TimeSlot
from app.models.message_history import MessageHistory, MessageStatus
from app.models.table import Table, TableStatus
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.models.user import User, UserRole

__all__ = [
    "Restaurant",
    "Reservation",
    "ReservationStatus",
    "TimeSlot",
    "MessageHistory",
    "MessageStatus",
    "Table",
    "TableStatus",
    "WaitlistEntry",
    "WaitlistStatus",
    "User",
    "UserRole",
]
