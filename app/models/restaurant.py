"""Restaurant (tenant) model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Restaurant(Base):
    """Restaurant tenant, the unit of data isolation"""
    __tablename__ = "restaurants"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    
    # Addressing: subdomain, path slug and Nova reference id resolve independently
    slug = Column(String(63), unique=True)
    subdomain = Column(String(63), unique=True, index=True)
    novaref_id = Column(String(64), unique=True)
    
    # Business information
    description = Column(Text)
    address = Column(Text)
    phone = Column(String(20))
    email = Column(String(255))
    
    # {"reservation_settings": {...}, "manager_settings": {...}, "waitlist_paused": bool}
    settings = Column(JSON, default=dict)
    
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    reservations = relationship("Reservation", back_populates="restaurant")
    time_slots = relationship("TimeSlot", back_populates="restaurant")
    tables = relationship("Table", back_populates="restaurant")
    waitlist_entries = relationship("WaitlistEntry", back_populates="restaurant")
    users = relationship("User", back_populates="restaurant")
