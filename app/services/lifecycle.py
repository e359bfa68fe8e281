"""
Reservation lifecycle.

    (new) --book--> draft | confirmed | notified
    draft --complete_payment / confirm--> confirmed
    confirmed --send_message--> notified
    confirmed | notified --seat--> seated
    draft | confirmed | notified --cancel--> cancelled

seated and cancelled are terminal. SMS side effects of book, confirm and
cancel are best effort: failures are logged and written to message
history but never undo the transition. Seating only changes local state
after Nova accepts the table booking.
"""

import re
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings as app_settings
from app.core.errors import (
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    PaymentError,
    ReservationError,
    TableAlreadyOccupiedError,
    ValidationError,
)
from app.integrations.nova import NovaClient
from app.models.message_history import MessageHistory, MessageStatus
from app.models.reservation import Reservation, ReservationStatus
from app.models.restaurant import Restaurant
from app.models.table import TableStatus
from app.schemas.reservation import BookingRequest
from app.services import capacity, messaging, tables
from app.services.restaurant_settings import (
    calculate_payment_amount,
    get_settings,
    get_timezone,
    validate_payment_amount,
)

logger = structlog.get_logger()

ACTIONABLE_STATUSES = frozenset({ReservationStatus.CONFIRMED.value, ReservationStatus.NOTIFIED.value})
CANCELLABLE_STATUSES = ACTIONABLE_STATUSES | {ReservationStatus.DRAFT.value}
ACTIVE_STATUSES = CANCELLABLE_STATUSES


def can_take_action(status: str) -> bool:
    """Whether notify / seat may run from this status"""
    return status in ACTIONABLE_STATUSES


def can_cancel(status: str) -> bool:
    return status in CANCELLABLE_STATUSES


def phone_tail(phone: str) -> str:
    """Last four digits, for logs"""
    digits = re.sub(r"\D", "", phone or "")
    return digits[-4:]


def _utcnow(now: Optional[datetime] = None) -> datetime:
    return now or datetime.now(dt_timezone.utc)


def nova_timestamp(date_time: datetime) -> str:
    """Naive UTC datetime -> "2024-06-01T01:00:00.000Z" """
    return date_time.strftime("%Y-%m-%dT%H:%M:%S.") + f"{date_time.microsecond // 1000:03d}Z"


async def get_reservation(db: AsyncSession, tenant_id: UUID, reservation_id: UUID) -> Reservation:
    result = await db.execute(
        select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.tenant_id == tenant_id,
        )
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise NotFoundError("Reservation not found")
    return reservation


def _record_message(db: AsyncSession, reservation: Reservation, message: str, status: MessageStatus) -> MessageHistory:
    entry = MessageHistory(
        reservation_id=reservation.id,
        tenant_id=reservation.tenant_id,
        phone_number=reservation.phone,
        message=message,
        status=status.value,
        sent_at=datetime.utcnow(),
    )
    db.add(entry)
    return entry


async def _send_best_effort(
    db: AsyncSession,
    nova: NovaClient,
    reservation: Reservation,
    message: str,
    event: str,
) -> MessageHistory:
    """Send an SMS, recording the attempt either way; failures are logged, not raised"""
    try:
        await nova.send_custom_sms(reservation.phone, message)
        status = MessageStatus.SENT
        logger.info(
            f"{event} SMS sent",
            reservation_id=str(reservation.id),
            phone=phone_tail(reservation.phone),
        )
    except ReservationError as e:
        status = MessageStatus.FAILED
        logger.error(
            f"Failed to send {event.lower()} SMS",
            reservation_id=str(reservation.id),
            phone=phone_tail(reservation.phone),
            error=str(e),
        )

    entry = _record_message(db, reservation, message, status)
    await db.commit()
    return entry


async def _send_confirmation(db: AsyncSession, nova: NovaClient, restaurant: Restaurant, reservation: Reservation):
    tz = get_timezone(restaurant)
    message = messaging.guest_confirmation_message(reservation, restaurant.name, tz)
    await _send_best_effort(db, nova, reservation, message, "Confirmation")


def _validate_window(booking_date, slot_utc: datetime, lead_time_hours: int, max_advance_days: int, tz, now: datetime):
    local_today = now.astimezone(tz).date()
    earliest = (now + timedelta(hours=lead_time_hours)).astimezone(tz).date()
    latest = local_today + timedelta(days=max_advance_days)

    if booking_date < earliest:
        raise ValidationError(
            f"Reservations must be made at least {lead_time_hours} hours in advance"
        )
    if booking_date > latest:
        raise ValidationError(f"Reservations can only be made up to {max_advance_days} days in advance")
    if slot_utc.replace(tzinfo=dt_timezone.utc) < now:
        raise ValidationError("Selected time has already passed")


async def book(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    booking: BookingRequest,
    staff: bool = False,
    now: Optional[datetime] = None,
) -> Reservation:
    """
    Create a reservation from a booking submission.

    Slot times and the stored UTC instant come from the matched time slot.
    Guests are held to the booking window and slot capacity; staff
    bookings skip both and never go through payment.
    """
    now = _utcnow(now)
    restaurant_settings = get_settings(restaurant)
    reservation_settings = restaurant_settings.reservation_settings
    tz = get_timezone(restaurant)

    for field in ("name", "phone", "email"):
        if not str(getattr(booking, field) or "").strip():
            raise ValidationError(f"{field} is required")

    slot = await capacity.find_slot(db, restaurant.id, booking.date, booking.time)
    if slot is None:
        raise ValidationError("Selected time is not available")

    date_time = capacity.local_to_utc(booking.date, slot.start_time, tz)

    if not staff:
        max_advance_days = reservation_settings.max_advance_days or app_settings.booking_window_days
        _validate_window(booking.date, date_time, reservation_settings.lead_time_hours, max_advance_days, tz, now)

        booked = await capacity.get_available_slot_count(
            db, restaurant.id, slot.start_time, slot.end_time, booking.date, tz
        )
        if booked >= slot.max_reservations:
            raise ValidationError("Selected time is fully booked")

    special_requests = booking.special_requests if reservation_settings.allow_special_notes else None
    occasion = booking.special_occasion_type
    if not occasion or occasion == "none" or occasion not in reservation_settings.special_occasions:
        occasion = None

    novacustomer_id = None
    if restaurant.novaref_id:
        try:
            novacustomer_id = await nova.create_customer(restaurant.novaref_id, booking.name, booking.phone)
        except ReservationError as e:
            logger.error(
                "Failed to create Nova customer",
                tenant_id=str(restaurant.id),
                phone=phone_tail(booking.phone),
                error=str(e),
            )

    fields = {
        "name": booking.name.strip(),
        "phone": booking.phone.strip(),
        "email": str(booking.email),
        "party_size": booking.party_size,
        "date_time": date_time,
        "slot_start_time": slot.start_time,
        "slot_end_time": slot.end_time,
        "special_requests": special_requests or None,
        "special_occasion_type": occasion,
    }

    requires_payment = reservation_settings.require_payment and not staff

    if requires_payment:
        if booking.draft_id:
            reservation = await get_reservation(db, restaurant.id, booking.draft_id)
            if reservation.status != ReservationStatus.DRAFT.value:
                raise InvalidTransitionError("Only draft reservations can be updated")
            for field, value in fields.items():
                setattr(reservation, field, value)
            if novacustomer_id:
                reservation.novacustomer_id = novacustomer_id
        else:
            reservation = Reservation(
                tenant_id=restaurant.id,
                status=ReservationStatus.DRAFT.value,
                novacustomer_id=novacustomer_id,
                **fields,
            )
            db.add(reservation)
    else:
        status = (
            ReservationStatus.CONFIRMED.value
            if reservation_settings.auto_confirm or staff
            else ReservationStatus.NOTIFIED.value
        )
        reservation = Reservation(
            tenant_id=restaurant.id,
            status=status,
            novacustomer_id=novacustomer_id,
            **fields,
        )
        db.add(reservation)

    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation booked",
        tenant_id=str(restaurant.id),
        reservation_id=str(reservation.id),
        status=reservation.status,
        party_size=reservation.party_size,
        staff=staff,
    )

    if reservation.status == ReservationStatus.CONFIRMED.value:
        await _send_confirmation(db, nova, restaurant, reservation)
        await db.refresh(reservation)

    return reservation


async def start_payment(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
    amount: Optional[float] = None,
    origin: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Persist the deposit on a draft and open a hosted checkout session.

    Returns {"reservation", "amount", "checkout_url"}.
    """
    reservation = await get_reservation(db, restaurant.id, reservation_id)
    if reservation.status != ReservationStatus.DRAFT.value:
        raise InvalidTransitionError(f"Cannot start payment for a {reservation.status} reservation")

    payment_settings = get_settings(restaurant).reservation_settings.payment_settings
    if payment_settings.payment_type != "custom" or amount is None:
        amount = calculate_payment_amount(
            reservation.party_size, reservation.date_time, payment_settings, get_timezone(restaurant)
        )
    amount = validate_payment_amount(amount, payment_settings)

    if not restaurant.novaref_id:
        raise ConfigurationError("Restaurant Nova reference ID is not configured")

    # Stored before redirecting so the return page can show it
    reservation.payment_amount = round(amount, 2)
    await db.commit()

    merchant = await nova.get_merchant_config(restaurant.novaref_id)
    gateway_id = merchant.get("gatewayId")
    merchant_id = merchant.get("merchantId")
    if not gateway_id or not merchant_id:
        raise ConfigurationError("Payment gateway not configured for this restaurant")

    base_url = (origin or app_settings.public_base_url).rstrip("/")
    payload = {
        "amount": str(int(round(amount * 100))),
        "currency": app_settings.nova_payment_currency,
        "metadata": {
            "orderRefId": str(reservation.id),
            "applicationName": app_settings.nova_application_name,
        },
        "amount_details": {"tips": "0", "surcharge": "0"},
        "successUrl": f"{base_url}/reserve/confirm/{reservation.id}",
        "failureUrl": f"{base_url}/reserve/payment/failed/{reservation.id}",
        "wallets_only": False,
    }

    session = await nova.create_checkout_session(gateway_id, merchant_id, payload)
    checkout_url = session.get("url") if isinstance(session, dict) else None
    if not checkout_url:
        raise PaymentError("Checkout session did not return a URL")

    logger.info(
        "Checkout session created",
        tenant_id=str(restaurant.id),
        reservation_id=str(reservation.id),
        gateway=gateway_id,
        amount=amount,
    )
    return {"reservation": reservation, "amount": amount, "checkout_url": checkout_url}


async def complete_payment(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
) -> Reservation:
    """Guest came back through the success redirect: draft -> confirmed, keeping the amount"""
    reservation = await get_reservation(db, restaurant.id, reservation_id)
    if reservation.status != ReservationStatus.DRAFT.value:
        return reservation

    reservation.status = ReservationStatus.CONFIRMED.value
    await db.commit()
    await db.refresh(reservation)

    logger.info("Reservation paid", tenant_id=str(restaurant.id), reservation_id=str(reservation.id))

    await _send_confirmation(db, nova, restaurant, reservation)
    await db.refresh(reservation)
    return reservation


async def confirm(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
) -> Reservation:
    """Staff confirmation of a draft without payment; the unpaid amount is cleared"""
    reservation = await get_reservation(db, restaurant.id, reservation_id)
    if reservation.status == ReservationStatus.CONFIRMED.value:
        return reservation
    if reservation.status != ReservationStatus.DRAFT.value:
        raise InvalidTransitionError(f"Cannot confirm a {reservation.status} reservation")

    reservation.status = ReservationStatus.CONFIRMED.value
    reservation.payment_amount = None
    await db.commit()
    await db.refresh(reservation)

    logger.info("Reservation confirmed", tenant_id=str(restaurant.id), reservation_id=str(reservation.id))

    await _send_confirmation(db, nova, restaurant, reservation)
    await db.refresh(reservation)
    return reservation


async def send_message(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
    message: str,
) -> MessageHistory:
    """
    Text the guest. Every call writes one history row; a confirmed
    reservation becomes notified once the SMS goes out. SMS errors are
    raised after the failed attempt is recorded.
    """
    reservation = await get_reservation(db, restaurant.id, reservation_id)
    if not can_take_action(reservation.status):
        raise InvalidTransitionError(f"Cannot message a {reservation.status} reservation")

    message = (message or "").strip()
    if not message:
        raise ValidationError("Message cannot be empty")
    if len(message) > messaging.MAX_SMS_LENGTH:
        raise ValidationError(f"Message cannot exceed {messaging.MAX_SMS_LENGTH} characters")

    try:
        await nova.send_custom_sms(reservation.phone, message)
    except ReservationError as e:
        entry = _record_message(db, reservation, message, MessageStatus.FAILED)
        await db.commit()
        logger.error(
            "Failed to send message",
            reservation_id=str(reservation.id),
            phone=phone_tail(reservation.phone),
            error=str(e),
        )
        raise

    entry = _record_message(db, reservation, message, MessageStatus.SENT)
    if reservation.status == ReservationStatus.CONFIRMED.value:
        reservation.status = ReservationStatus.NOTIFIED.value
    await db.commit()
    await db.refresh(entry)

    logger.info(
        "Message sent",
        reservation_id=str(reservation.id),
        status=reservation.status,
        phone=phone_tail(reservation.phone),
    )
    return entry


async def seat(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
    table_id: str,
) -> Reservation:
    """
    Seat a confirmed or notified reservation.

    With a Nova reference the table is booked through Nova first; local
    state only changes once that succeeds. Without one the local table
    must be available. Seating again at the same table returns the
    reservation unchanged.
    """
    reservation = await get_reservation(db, restaurant.id, reservation_id)

    if reservation.status == ReservationStatus.SEATED.value and reservation.table_id == table_id:
        return reservation
    if not can_take_action(reservation.status):
        raise InvalidTransitionError(f"Cannot seat a {reservation.status} reservation")

    if restaurant.novaref_id:
        if not reservation.novacustomer_id:
            raise ConfigurationError("Customer Nova ID is missing.")
        await nova.book_table(
            restaurant.novaref_id,
            table_id,
            reservation.novacustomer_id,
            nova_timestamp(reservation.date_time),
            reservation.party_size,
        )
    else:
        table = await tables.get_local_table(db, restaurant.id, table_id)
        if table is None:
            raise NotFoundError("Table not found")
        if table.status != TableStatus.AVAILABLE.value:
            raise TableAlreadyOccupiedError("Table is already occupied")

    # Guarded on status so two concurrent seats can not both win
    result = await db.execute(
        update(Reservation)
        .where(
            Reservation.id == reservation.id,
            Reservation.tenant_id == restaurant.id,
            Reservation.status.in_(ACTIONABLE_STATUSES),
        )
        .values(
            status=ReservationStatus.SEATED.value,
            table_id=table_id,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidTransitionError("Reservation was changed by another request")

    await tables.mark_occupied(db, restaurant.id, table_id)
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation seated",
        tenant_id=str(restaurant.id),
        reservation_id=str(reservation.id),
        table_id=table_id,
    )
    return reservation


async def cancel(
    db: AsyncSession,
    nova: NovaClient,
    restaurant: Restaurant,
    reservation_id: UUID,
    by_guest: bool = False,
) -> Reservation:
    """Cancel a draft, confirmed or notified reservation and tell the guest"""
    reservation = await get_reservation(db, restaurant.id, reservation_id)
    if not can_cancel(reservation.status):
        raise InvalidTransitionError(f"Cannot cancel a {reservation.status} reservation")

    reservation.status = ReservationStatus.CANCELLED.value
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation cancelled",
        tenant_id=str(restaurant.id),
        reservation_id=str(reservation.id),
        by_guest=by_guest,
    )

    message = messaging.cancellation_message(reservation, get_timezone(restaurant), by_guest=by_guest)
    await _send_best_effort(db, nova, reservation, message, "Cancellation")
    await db.refresh(reservation)
    return reservation


async def lookup_by_phone(db: AsyncSession, tenant_id: UUID, phone: str) -> List[Reservation]:
    """Active reservations whose phone ends with the given 10 digits, newest first"""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) != 10:
        raise ValidationError("Please enter a valid 10-digit phone number")

    result = await db.execute(
        select(Reservation)
        .where(
            Reservation.tenant_id == tenant_id,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Reservation.date_time.desc())
    )
    return [
        r for r in result.scalars().all()
        if re.sub(r"\D", "", r.phone or "").endswith(digits)
    ]


async def message_history(db: AsyncSession, tenant_id: UUID, reservation_id: UUID) -> List[MessageHistory]:
    await get_reservation(db, tenant_id, reservation_id)
    result = await db.execute(
        select(MessageHistory)
        .where(
            MessageHistory.reservation_id == reservation_id,
            MessageHistory.tenant_id == tenant_id,
        )
        .order_by(MessageHistory.sent_at.desc())
    )
    return list(result.scalars().all())
