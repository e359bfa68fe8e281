"""Waitlist API endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.restaurant import Restaurant
from app.schemas.waitlist import (
    WaitlistCreate,
    WaitlistResponse,
    AssignTableRequest,
    WaitlistPausedResponse,
)
from app.services import waitlist
from app.api.auth import get_tenant_restaurant

router = APIRouter()


@router.get("", response_model=List[WaitlistResponse])
async def list_waitlist(
    include_all: bool = False,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Waiting and notified guests in check-in order, or every entry with include_all"""
    if include_all:
        return await waitlist.list_all(db, restaurant.id)
    return await waitlist.list_active(db, restaurant.id)


@router.post("", response_model=WaitlistResponse, status_code=201)
async def add_to_waitlist(
    entry_data: WaitlistCreate,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    return await waitlist.add(db, restaurant, entry_data.model_dump())


@router.post("/pause", response_model=WaitlistPausedResponse)
async def toggle_waitlist_pause(
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Pause or resume taking new walk-ins"""
    paused = await waitlist.toggle_paused(db, restaurant)
    return WaitlistPausedResponse(waitlist_paused=paused)


@router.post("/{entry_id}/notify", response_model=WaitlistResponse)
async def notify_guest(
    entry_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    return await waitlist.notify(db, restaurant.id, entry_id)


@router.post("/{entry_id}/assign", response_model=WaitlistResponse)
async def assign_table(
    entry_id: UUID,
    request: AssignTableRequest,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    return await waitlist.assign_table(db, restaurant.id, entry_id, request.table_id)


@router.delete("/{entry_id}", response_model=WaitlistResponse)
async def remove_from_waitlist(
    entry_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    return await waitlist.remove(db, restaurant.id, entry_id)
