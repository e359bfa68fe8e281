"""Walk-in waitlist"""

from datetime import datetime
from typing import Any, Dict, List
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.models.restaurant import Restaurant
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.services import tables
from app.services.restaurant_settings import get_settings, update_settings

logger = structlog.get_logger()

ACTIVE_STATUSES = (WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value)


def is_paused(restaurant: Restaurant) -> bool:
    return get_settings(restaurant).waitlist_paused


async def add(db: AsyncSession, restaurant: Restaurant, data: Dict[str, Any]) -> WaitlistEntry:
    if is_paused(restaurant):
        raise ValidationError("The waitlist is currently paused")
    if not data.get("name") or not data.get("phone"):
        raise ValidationError("Name and phone are required")
    if not data.get("party_size") or data["party_size"] < 1:
        raise ValidationError("Party size must be at least 1")

    entry = WaitlistEntry(
        tenant_id=restaurant.id,
        name=data["name"],
        phone=data["phone"],
        email=data.get("email"),
        party_size=data["party_size"],
        quoted_wait_time=data.get("quoted_wait_time"),
        notes=data.get("notes"),
        status=WaitlistStatus.WAITING.value,
        check_in_time=datetime.utcnow(),
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    logger.info("Guest added to waitlist", tenant_id=str(restaurant.id), entry_id=str(entry.id))
    return entry


async def list_active(db: AsyncSession, tenant_id: UUID) -> List[WaitlistEntry]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(
            WaitlistEntry.tenant_id == tenant_id,
            WaitlistEntry.status.in_(ACTIVE_STATUSES),
        )
        .order_by(WaitlistEntry.check_in_time.asc())
    )
    return list(result.scalars().all())


async def list_all(db: AsyncSession, tenant_id: UUID) -> List[WaitlistEntry]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.tenant_id == tenant_id)
        .order_by(WaitlistEntry.check_in_time.asc())
    )
    return list(result.scalars().all())


async def get_entry(db: AsyncSession, tenant_id: UUID, entry_id: UUID) -> WaitlistEntry:
    result = await db.execute(
        select(WaitlistEntry).where(
            WaitlistEntry.id == entry_id,
            WaitlistEntry.tenant_id == tenant_id,
        )
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise NotFoundError("Waitlist entry not found")
    return entry


async def _set_status(db: AsyncSession, tenant_id: UUID, entry_id: UUID, status: WaitlistStatus) -> WaitlistEntry:
    entry = await get_entry(db, tenant_id, entry_id)
    if entry.status not in ACTIVE_STATUSES:
        raise InvalidTransitionError(f"Waitlist entry is already {entry.status}")
    entry.status = status.value
    await db.commit()
    await db.refresh(entry)
    logger.info("Waitlist entry updated", tenant_id=str(tenant_id), entry_id=str(entry_id), status=status.value)
    return entry


async def notify(db: AsyncSession, tenant_id: UUID, entry_id: UUID) -> WaitlistEntry:
    return await _set_status(db, tenant_id, entry_id, WaitlistStatus.NOTIFIED)


async def remove(db: AsyncSession, tenant_id: UUID, entry_id: UUID) -> WaitlistEntry:
    return await _set_status(db, tenant_id, entry_id, WaitlistStatus.CANCELLED)


async def assign_table(db: AsyncSession, tenant_id: UUID, entry_id: UUID, table_id: str) -> WaitlistEntry:
    """Seat a waiting guest and mark the local table occupied"""
    entry = await get_entry(db, tenant_id, entry_id)
    if entry.status not in ACTIVE_STATUSES:
        raise InvalidTransitionError(f"Waitlist entry is already {entry.status}")

    entry.status = WaitlistStatus.SEATED.value
    entry.table_id = table_id
    await tables.mark_occupied(db, tenant_id, table_id)
    await db.commit()
    await db.refresh(entry)

    logger.info("Waitlist guest seated", tenant_id=str(tenant_id), entry_id=str(entry_id), table_id=table_id)
    return entry


async def toggle_paused(db: AsyncSession, restaurant: Restaurant) -> bool:
    paused = not is_paused(restaurant)
    await update_settings(db, restaurant, {"waitlist_paused": paused})
    return paused
