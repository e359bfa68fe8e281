"""Reservation model"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle states"""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    NOTIFIED = "notified"
    SEATED = "seated"
    CANCELLED = "cancelled"


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    
    # Guest information
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255))
    party_size = Column(Integer, nullable=False)
    
    # Scheduling: date_time is the UTC instant, slot times bucket it for capacity
    date_time = Column(DateTime, nullable=False)
    slot_start_time = Column(String(8))
    slot_end_time = Column(String(8))
    
    status = Column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value)
    
    # Seating and payment
    table_id = Column(String(64))
    novacustomer_id = Column(String(64))
    payment_amount = Column(Numeric(10, 2, asdecimal=False))
    
    # Guest extras
    special_requests = Column(Text)
    special_occasion_type = Column(String(50))
    
    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    restaurant = relationship("Restaurant", back_populates="reservations")
    messages = relationship("MessageHistory", back_populates="reservation")
