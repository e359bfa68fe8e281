"""Waitlist model"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class WaitlistStatus(str, enum.Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    SEATED = "seated"
    CANCELLED = "cancelled"


class WaitlistEntry(Base):
    """Walk-in guests waiting for a table"""
    __tablename__ = "waitlist_entries"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255))
    party_size = Column(Integer, nullable=False)
    
    check_in_time = Column(DateTime, default=datetime.utcnow)
    quoted_wait_time = Column(String(50))
    status = Column(String(20), default=WaitlistStatus.WAITING.value)
    table_id = Column(String(64))
    notes = Column(Text)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    restaurant = relationship("Restaurant", back_populates="waitlist_entries")
