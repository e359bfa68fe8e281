"""Time slot management API endpoints"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.schemas.time_slot import TimeSlotCreate, TimeSlotUpdate, TimeSlotResponse
from app.services import capacity
from app.api.auth import get_current_active_user, get_tenant_restaurant

router = APIRouter()


def _require_manager(user: User):
    if not user.has_permission(UserRole.MANAGER):
        raise HTTPException(status_code=403, detail="Insufficient permissions")


@router.get("", response_model=List[TimeSlotResponse])
async def list_time_slots(
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    specific_date: Optional[date] = None,
    include_inactive: bool = False,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Slots for a weekday template or for a date (overrides first)"""
    return await capacity.get_time_slots(
        db, restaurant.id,
        day_of_week=day_of_week,
        specific_date=specific_date,
        include_inactive=include_inactive,
    )


@router.post("", response_model=TimeSlotResponse, status_code=201)
async def create_time_slot(
    slot_data: TimeSlotCreate,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    _require_manager(current_user)
    return await capacity.create_time_slot(db, restaurant.id, slot_data.model_dump())


@router.put("/{slot_id}", response_model=TimeSlotResponse)
async def update_time_slot(
    slot_id: UUID,
    slot_data: TimeSlotUpdate,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    _require_manager(current_user)
    return await capacity.update_time_slot(db, restaurant.id, slot_id, slot_data.model_dump(exclude_unset=True))


@router.delete("/{slot_id}", status_code=204)
async def delete_time_slot(
    slot_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    _require_manager(current_user)
    await capacity.delete_time_slot(db, restaurant.id, slot_id)
