"""
Guest-facing API endpoints.

No authentication: the restaurant is resolved from the request. The
router is mounted at /public, where the Host header plus an optional
X-Forwarded-Path header (or ?path=) identify the restaurant, and at
/public/r/{tenant_ref}, where tenant_ref is a Nova reference or slug.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.integrations.nova import NovaClient, get_nova_client
from app.models.restaurant import Restaurant
from app.schemas.reservation import (
    AvailabilityResponse,
    BookingRequest,
    PaymentRequest,
    PaymentResponse,
    PhoneLookupRequest,
    ReservationResponse,
)
from app.schemas.tenant import PublicRestaurantResponse
from app.services import capacity, lifecycle, tenants
from app.services.restaurant_settings import get_settings, get_timezone

logger = structlog.get_logger()

router = APIRouter()


async def get_public_restaurant(
    request: Request,
    path: Optional[str] = Query(None, description="Frontend path, e.g. /joes-pizza/reserve"),
    x_forwarded_path: Optional[str] = Header(None),
    x_forwarded_host: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Restaurant:
    """Restaurant addressed by this guest request"""
    tenant_ref = request.path_params.get("tenant_ref")
    hint = f"/{tenant_ref}" if tenant_ref else (x_forwarded_path or path)
    host = x_forwarded_host or request.headers.get("host")

    restaurant, source = await tenants.resolve_tenant(db, host=host, path=hint)
    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    logger.debug("Tenant resolved", tenant_id=str(restaurant.id), source=source.value)
    return restaurant


@router.get("", response_model=PublicRestaurantResponse)
async def get_restaurant_info(
    restaurant: Restaurant = Depends(get_public_restaurant),
):
    """Restaurant details and the booking rules a guest form needs"""
    restaurant_settings = get_settings(restaurant)
    reservation_settings = restaurant_settings.reservation_settings
    return PublicRestaurantResponse(
        id=restaurant.id,
        name=restaurant.name,
        description=restaurant.description,
        address=restaurant.address,
        phone=restaurant.phone,
        timezone=restaurant_settings.manager_settings.timezone,
        lead_time_hours=reservation_settings.lead_time_hours,
        max_advance_days=reservation_settings.max_advance_days,
        allow_special_notes=reservation_settings.allow_special_notes,
        special_occasions=reservation_settings.special_occasions,
        require_payment=reservation_settings.require_payment,
        waitlist_paused=restaurant_settings.waitlist_paused,
    )


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    date: date,
    party_size: Optional[int] = Query(None, ge=1, le=20),
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Open slot times for a date"""
    slots = await capacity.get_available_time_slots(
        db, restaurant.id, date, party_size, tz=get_timezone(restaurant)
    )
    return AvailabilityResponse(date=date, party_size=party_size, slots=slots)


@router.post("/reservations", response_model=ReservationResponse, status_code=201)
async def book_reservation(
    booking: BookingRequest,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """
    Book a table.

    A "draft" status in the response means the restaurant takes a deposit:
    continue with POST /reservations/{id}/payment.
    """
    return await lifecycle.book(db, nova, restaurant, booking)


@router.post("/reservations/lookup", response_model=List[ReservationResponse])
async def lookup_reservations(
    request: PhoneLookupRequest,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Active reservations for a 10-digit phone number"""
    return await lifecycle.lookup_by_phone(db, restaurant.id, request.phone)


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation_status(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.get_reservation(db, restaurant.id, reservation_id)


@router.post("/reservations/{reservation_id}/payment", response_model=PaymentResponse)
async def start_payment(
    reservation_id: UUID,
    payment: PaymentRequest,
    origin: Optional[str] = Header(None),
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Open a checkout session for a draft; redirect the guest to checkout_url"""
    result = await lifecycle.start_payment(db, nova, restaurant, reservation_id, payment.amount, origin)
    return PaymentResponse(
        reservation_id=reservation_id,
        amount=result["amount"],
        checkout_url=result["checkout_url"],
    )


@router.post("/reservations/{reservation_id}/payment/success", response_model=ReservationResponse)
async def payment_succeeded(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Success redirect landed: confirm the draft"""
    return await lifecycle.complete_payment(db, nova, restaurant, reservation_id)


@router.post("/reservations/{reservation_id}/payment/failure", response_model=ReservationResponse)
async def payment_failed(
    reservation_id: UUID,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Failure redirect landed: the draft stays a draft so the guest can retry"""
    reservation = await lifecycle.get_reservation(db, restaurant.id, reservation_id)
    logger.info("Payment failed", reservation_id=str(reservation.id), status=reservation.status)
    return reservation


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: UUID,
    request: PhoneLookupRequest,
    restaurant: Restaurant = Depends(get_public_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Guest self-cancel; the phone number must match the booking"""
    matches = await lifecycle.lookup_by_phone(db, restaurant.id, request.phone)
    if not any(r.id == reservation_id for r in matches):
        raise HTTPException(status_code=404, detail="No active reservation found for this phone number")

    return await lifecycle.cancel(db, nova, restaurant, reservation_id, by_guest=True)
