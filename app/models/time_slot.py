"""Time slot model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class TimeSlot(Base):
    """Bookable window: a weekly template (day_of_week) or a one-off override (specific_date)"""
    __tablename__ = "time_slots"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    
    day_of_week = Column(Integer)  # 0 = Sunday ... 6 = Saturday
    specific_date = Column(Date)
    
    # Wall-clock "HH:MM:SS"
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    
    max_reservations = Column(Integer, nullable=False, default=6)
    is_active = Column(Boolean, default=True)
    is_default = Column(Boolean, default=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    restaurant = relationship("Restaurant", back_populates="time_slots")
