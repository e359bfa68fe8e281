"""Restaurant (tenant) schemas"""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID
from pydantic import BaseModel, EmailStr


class TenantCreate(BaseModel):
    """Create restaurant request"""
    name: str
    subdomain: str
    slug: Optional[str] = None
    novaref_id: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class TenantUpdate(BaseModel):
    """Update restaurant request"""
    name: Optional[str] = None
    subdomain: Optional[str] = None
    slug: Optional[str] = None
    novaref_id: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None


class TenantResponse(BaseModel):
    """Restaurant response"""
    id: UUID
    name: str
    subdomain: Optional[str]
    slug: Optional[str]
    novaref_id: Optional[str]
    description: Optional[str]
    address: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicRestaurantResponse(BaseModel):
    """What a guest sees of a restaurant"""
    id: UUID
    name: str
    description: Optional[str]
    address: Optional[str]
    phone: Optional[str]
    timezone: str
    lead_time_hours: int
    max_advance_days: int
    allow_special_notes: bool
    special_occasions: list
    require_payment: bool
    waitlist_paused: bool


class SettingsPatch(BaseModel):
    """Partial settings document, deep-merged into the stored one"""
    reservation_settings: Optional[Dict[str, Any]] = None
    manager_settings: Optional[Dict[str, Any]] = None
    waitlist_paused: Optional[bool] = None
