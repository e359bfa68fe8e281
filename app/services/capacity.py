"""
Time-slot capacity.

A slot is bookable on a date while fewer than `max_reservations`
counted reservations share its start/end times on that day.
"""

import re
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.reservation import Reservation, ReservationStatus
from app.models.time_slot import TimeSlot

logger = structlog.get_logger()

# Only confirmed reservations hold a seat against a slot's capacity
CAPACITY_COUNTED_STATUSES = frozenset({ReservationStatus.CONFIRMED.value})

DEFAULT_SLOT_START = "18:00:00"
DEFAULT_SLOT_END = "22:00:00"
DEFAULT_SLOT_MINUTES = 30
DEFAULT_MAX_RESERVATIONS = 6

_DISPLAY_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def day_of_week_for(d: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (d.weekday() + 1) % 7


def normalize_time(value: str) -> str:
    """Accept "H:MM", "HH:MM" or "HH:MM:SS" and return "HH:MM:SS" """
    match = _CLOCK_RE.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time: {value!r}")
    hours, minutes, seconds = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValidationError(f"Invalid time: {value!r}")
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_display_time(value: str) -> str:
    """"18:00:00" -> "6:00 PM" """
    hours, minutes = (int(part) for part in value.split(":")[:2])
    period = "PM" if hours >= 12 else "AM"
    display_hour = hours % 12 or 12
    return f"{display_hour}:{minutes:02d} {period}"


def parse_display_time(value: str) -> str:
    """"6:00 PM" -> "18:00:00"; 24-hour input is passed through normalize_time"""
    match = _DISPLAY_RE.match(value or "")
    if not match:
        return normalize_time(value)
    hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hours <= 12 or minutes > 59:
        raise ValidationError(f"Invalid time: {value!r}")
    if period == "PM" and hours != 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0
    return f"{hours:02d}:{minutes:02d}:00"


def local_to_utc(target_date: date, clock: str, tz: ZoneInfo) -> datetime:
    """Restaurant wall-clock date + "HH:MM:SS" -> naive UTC datetime"""
    local = datetime.combine(target_date, time.fromisoformat(normalize_time(clock)), tzinfo=tz)
    return local.astimezone(dt_timezone.utc).replace(tzinfo=None)


def day_window(
    target_date: date,
    tz: Optional[ZoneInfo] = None,
    boundary: Optional[str] = None,
) -> Tuple[datetime, datetime]:
    """
    [start, end] of the calendar day over which a slot's reservations are
    counted, as naive UTC datetimes.

    "utc" uses the UTC day; "tenant" uses the restaurant's local day.
    """
    boundary = boundary or settings.capacity_day_boundary
    if boundary == "tenant" and tz is not None:
        start = local_to_utc(target_date, "00:00:00", tz)
        end = local_to_utc(target_date, "23:59:59", tz)
        return start, end
    start = datetime.combine(target_date, time(0, 0, 0))
    return start, start + timedelta(hours=23, minutes=59, seconds=59)


async def get_time_slots(
    db: AsyncSession,
    tenant_id: UUID,
    day_of_week: Optional[int] = None,
    specific_date: Optional[date] = None,
    include_inactive: bool = False,
) -> List[TimeSlot]:
    """
    Slots for a tenant ordered by start time.

    With `specific_date`, date overrides for that exact date win; when there
    are none the weekly template for the date's day of week applies.
    """
    query = select(TimeSlot).where(TimeSlot.tenant_id == tenant_id)
    if not include_inactive:
        query = query.where(TimeSlot.is_active == True)  # noqa: E712

    if specific_date is not None:
        result = await db.execute(
            query.where(TimeSlot.specific_date == specific_date).order_by(TimeSlot.start_time)
        )
        overrides = list(result.scalars().all())
        if overrides:
            return overrides
        day_of_week = day_of_week_for(specific_date)

    if day_of_week is not None:
        query = query.where(
            TimeSlot.day_of_week == day_of_week,
            TimeSlot.specific_date.is_(None),
        )

    result = await db.execute(query.order_by(TimeSlot.start_time))
    return list(result.scalars().all())


async def get_available_slot_count(
    db: AsyncSession,
    tenant_id: UUID,
    slot_start_time: str,
    slot_end_time: str,
    target_date: date,
    tz: Optional[ZoneInfo] = None,
    boundary: Optional[str] = None,
) -> int:
    """Number of counted reservations already holding this slot on target_date"""
    start, end = day_window(target_date, tz, boundary)
    result = await db.execute(
        select(func.count(Reservation.id)).where(
            Reservation.tenant_id == tenant_id,
            Reservation.status.in_(CAPACITY_COUNTED_STATUSES),
            Reservation.slot_start_time == slot_start_time,
            Reservation.slot_end_time == slot_end_time,
            Reservation.date_time >= start,
            Reservation.date_time <= end,
        )
    )
    return result.scalar() or 0


async def list_available_slots(
    db: AsyncSession,
    tenant_id: UUID,
    target_date: date,
    party_size: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
    boundary: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Slots with remaining capacity on target_date.

    party_size is accepted for callers but does not change capacity.
    A slot whose count fails is left out; the rest are still returned.
    """
    slots = await get_time_slots(db, tenant_id, specific_date=target_date)

    available = []
    for slot in slots:
        try:
            booked = await get_available_slot_count(
                db, tenant_id, slot.start_time, slot.end_time, target_date, tz, boundary
            )
        except SQLAlchemyError as e:
            logger.error(
                "Failed to count slot reservations",
                tenant_id=str(tenant_id),
                slot_id=str(slot.id),
                error=str(e),
            )
            continue

        remaining = max(0, slot.max_reservations - booked)
        if remaining > 0:
            available.append({
                "slot": slot,
                "time": format_display_time(slot.start_time),
                "remaining": remaining,
            })

    return available


async def get_available_time_slots(
    db: AsyncSession,
    tenant_id: UUID,
    target_date: date,
    party_size: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
    boundary: Optional[str] = None,
) -> List[str]:
    """Display times ("6:00 PM") of slots that still have room"""
    slots = await list_available_slots(db, tenant_id, target_date, party_size, tz, boundary)
    return [entry["time"] for entry in slots]


async def find_slot(
    db: AsyncSession,
    tenant_id: UUID,
    target_date: date,
    start_time: str,
) -> Optional[TimeSlot]:
    """The active slot on target_date starting at start_time (display or clock form)"""
    wanted = parse_display_time(start_time)
    for slot in await get_time_slots(db, tenant_id, specific_date=target_date):
        if slot.start_time == wanted:
            return slot
    return None


async def _check_duplicate(
    db: AsyncSession,
    tenant_id: UUID,
    day: Optional[int],
    specific_date: Optional[date],
    start_time: str,
    end_time: str,
    exclude_id: Optional[UUID] = None,
):
    if specific_date is not None:
        scope = TimeSlot.specific_date == specific_date
    else:
        scope = and_(TimeSlot.day_of_week == day, TimeSlot.specific_date.is_(None))

    query = select(TimeSlot.id).where(
        TimeSlot.tenant_id == tenant_id,
        scope,
        TimeSlot.start_time == start_time,
        TimeSlot.end_time == end_time,
    )
    if exclude_id is not None:
        query = query.where(TimeSlot.id != exclude_id)

    result = await db.execute(query)
    if result.first() is not None:
        raise ValidationError("A time slot with the same day and times already exists")


def _validate_slot_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    data["start_time"] = normalize_time(data["start_time"])
    data["end_time"] = normalize_time(data["end_time"])
    if data["end_time"] <= data["start_time"]:
        raise ValidationError("End time must be after start time")

    if data.get("specific_date") is None and data.get("day_of_week") is None:
        raise ValidationError("Either day_of_week or specific_date is required")
    if data.get("day_of_week") is not None and not 0 <= data["day_of_week"] <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if data.get("max_reservations") is not None and data["max_reservations"] < 1:
        raise ValidationError("max_reservations must be at least 1")
    return data


async def create_time_slot(db: AsyncSession, tenant_id: UUID, data: Dict[str, Any]) -> TimeSlot:
    data = _validate_slot_fields(data)
    await _check_duplicate(
        db, tenant_id, data.get("day_of_week"), data.get("specific_date"),
        data["start_time"], data["end_time"],
    )

    slot = TimeSlot(
        tenant_id=tenant_id,
        day_of_week=data.get("day_of_week"),
        specific_date=data.get("specific_date"),
        start_time=data["start_time"],
        end_time=data["end_time"],
        max_reservations=data.get("max_reservations") or DEFAULT_MAX_RESERVATIONS,
        is_active=data.get("is_active", True),
        is_default=False,
    )
    db.add(slot)
    await db.commit()
    await db.refresh(slot)

    logger.info("Time slot created", tenant_id=str(tenant_id), slot_id=str(slot.id))
    return slot


async def get_time_slot(db: AsyncSession, tenant_id: UUID, slot_id: UUID) -> TimeSlot:
    result = await db.execute(
        select(TimeSlot).where(TimeSlot.id == slot_id, TimeSlot.tenant_id == tenant_id)
    )
    slot = result.scalar_one_or_none()
    if not slot:
        raise NotFoundError("Time slot not found")
    return slot


async def update_time_slot(
    db: AsyncSession,
    tenant_id: UUID,
    slot_id: UUID,
    changes: Dict[str, Any],
) -> TimeSlot:
    slot = await get_time_slot(db, tenant_id, slot_id)

    data = {
        "day_of_week": slot.day_of_week,
        "specific_date": slot.specific_date,
        "start_time": slot.start_time,
        "end_time": slot.end_time,
        "max_reservations": slot.max_reservations,
        "is_active": slot.is_active,
    }
    data.update(changes)
    data = _validate_slot_fields(data)
    await _check_duplicate(
        db, tenant_id, data.get("day_of_week"), data.get("specific_date"),
        data["start_time"], data["end_time"], exclude_id=slot.id,
    )

    for field, value in data.items():
        setattr(slot, field, value)
    slot.is_default = False

    await db.commit()
    await db.refresh(slot)
    return slot


async def delete_time_slot(db: AsyncSession, tenant_id: UUID, slot_id: UUID):
    slot = await get_time_slot(db, tenant_id, slot_id)
    await db.delete(slot)
    await db.commit()
    logger.info("Time slot deleted", tenant_id=str(tenant_id), slot_id=str(slot_id))


def default_slot_times() -> List[Tuple[str, str]]:
    """Half-hour windows from 18:00 to 22:00"""
    start = datetime.combine(date.min, time.fromisoformat(DEFAULT_SLOT_START))
    end = datetime.combine(date.min, time.fromisoformat(DEFAULT_SLOT_END))
    step = timedelta(minutes=DEFAULT_SLOT_MINUTES)

    windows = []
    while start + step <= end:
        windows.append((start.strftime("%H:%M:%S"), (start + step).strftime("%H:%M:%S")))
        start += step
    return windows


async def create_default_time_slots(db: AsyncSession, tenant_id: UUID) -> List[TimeSlot]:
    """Seed the weekly template for a new restaurant, every day of the week"""
    slots = [
        TimeSlot(
            tenant_id=tenant_id,
            day_of_week=day,
            start_time=start,
            end_time=end,
            max_reservations=DEFAULT_MAX_RESERVATIONS,
            is_active=True,
            is_default=True,
        )
        for day in range(7)
        for start, end in default_slot_times()
    ]
    db.add_all(slots)
    await db.commit()

    logger.info("Default time slots created", tenant_id=str(tenant_id), count=len(slots))
    return slots
