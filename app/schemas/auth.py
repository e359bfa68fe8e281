"""Authentication schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from app.models.user import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    """Token refresh request"""
    refresh_token: str


class UserResponse(BaseModel):
    """User response"""
    id: UUID
    email: str
    full_name: Optional[str]
    role: UserRole
    tenant_id: Optional[UUID]
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime]
    restaurant_name: Optional[str] = None
    restaurant_subdomain: Optional[str] = None

    class Config:
        from_attributes = True
