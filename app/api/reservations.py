"""Reservation management API endpoints"""

from typing import List, Optional
from uuid import UUID
from datetime import date, datetime, time, timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ReservationError, TableAlreadyOccupiedError
from app.database import get_db
from app.integrations.nova import NovaClient, get_nova_client
from app.models.reservation import Reservation
from app.models.restaurant import Restaurant
from app.schemas.reservation import (
    BookingRequest,
    ReservationResponse,
    ReservationListResponse,
    SeatRequest,
    SendMessageRequest,
    MessageHistoryResponse,
    TableOccupiedResponse,
)
from app.services import lifecycle, messaging, tables
from app.services.restaurant_settings import get_timezone
from app.api.auth import get_tenant_restaurant

logger = structlog.get_logger()

router = APIRouter()


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """List reservations for a restaurant with pagination, newest first"""
    filters = [Reservation.tenant_id == restaurant.id]

    if status:
        filters.append(Reservation.status == status)

    if from_date:
        filters.append(Reservation.date_time >= datetime.combine(from_date, time.min))

    if to_date:
        filters.append(Reservation.date_time < datetime.combine(to_date + timedelta(days=1), time.min))

    # Get total
    total_result = await db.execute(select(func.count(Reservation.id)).where(*filters))
    total = total_result.scalar()

    # Get paginated results
    offset = (page - 1) * page_size
    result = await db.execute(
        select(Reservation)
        .where(*filters)
        .order_by(Reservation.date_time.desc())
        .offset(offset)
        .limit(page_size)
    )
    reservations = result.scalars().all()

    return ReservationListResponse(
        items=reservations,
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    booking: BookingRequest,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Staff booking: confirmed immediately, no payment, no booking window"""
    return await lifecycle.book(db, nova, restaurant, booking, staff=True)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Get reservation details"""
    return await lifecycle.get_reservation(db, restaurant.id, reservation_id)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
async def confirm_reservation(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Confirm a draft without payment"""
    return await lifecycle.confirm(db, nova, restaurant, reservation_id)


@router.post("/{reservation_id}/messages", response_model=MessageHistoryResponse, status_code=201)
async def send_message(
    reservation_id: UUID,
    request: SendMessageRequest,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Text the guest, either free text or a rendered template"""
    text = request.message
    if request.template:
        reservation = await lifecycle.get_reservation(db, restaurant.id, reservation_id)
        try:
            text = messaging.render_template(request.template, reservation, get_timezone(restaurant))
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown template: {request.template}")

    return await lifecycle.send_message(db, nova, restaurant, reservation_id, text or "")


@router.get("/{reservation_id}/messages", response_model=List[MessageHistoryResponse])
async def get_message_history(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Messages sent for a reservation, newest first"""
    return await lifecycle.message_history(db, restaurant.id, reservation_id)


@router.post(
    "/{reservation_id}/seat",
    response_model=ReservationResponse,
    responses={409: {"model": TableOccupiedResponse}},
)
async def seat_reservation(
    reservation_id: UUID,
    request: SeatRequest,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """
    Seat the guest at a table.

    When the table turns out to be taken the 409 response carries a fresh
    table listing so the caller can pick again.
    """
    try:
        return await lifecycle.seat(db, nova, restaurant, reservation_id, request.table_id)
    except TableAlreadyOccupiedError as e:
        reservation = await lifecycle.get_reservation(db, restaurant.id, reservation_id)
        try:
            e.extra["tables"] = await tables.list_tables(db, restaurant, nova, reservation.party_size)
        except ReservationError as refresh_error:
            logger.error(
                "Failed to refresh tables",
                tenant_id=str(restaurant.id),
                error=str(refresh_error),
            )
        raise


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Cancel a reservation and notify the guest"""
    return await lifecycle.cancel(db, nova, restaurant, reservation_id)
