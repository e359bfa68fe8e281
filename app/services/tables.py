"""
Table listing.

Restaurants with a Nova reference read their floor live from Nova's
table-status endpoint; the rest use locally stored tables. Both come out
in the same shape:

    {"id", "tenant_id", "name", "seats", "status", "location"}
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.integrations.nova import NovaClient
from app.models.restaurant import Restaurant
from app.models.table import Table, TableStatus

logger = structlog.get_logger()


def flatten_areas(areas: List[Dict[str, Any]], tenant_id: UUID) -> List[Dict[str, Any]]:
    """Flatten Nova areas into table dicts, ordered by area then display order"""
    tables = []
    for area in areas or []:
        area_tables = sorted(area.get("tables") or [], key=lambda t: t.get("displayOrder") or 0)
        for table in area_tables:
            tables.append({
                "id": str(table.get("refId")),
                "tenant_id": tenant_id,
                "name": table.get("tableName") or "",
                "seats": int(table.get("seatingCapacity") or 0),
                "status": (
                    TableStatus.OCCUPIED.value if table.get("isTableOccupied")
                    else TableStatus.AVAILABLE.value
                ),
                "location": area.get("areaName"),
            })
    return tables


def table_to_dict(table: Table) -> Dict[str, Any]:
    return {
        "id": str(table.id),
        "tenant_id": table.tenant_id,
        "name": table.name,
        "seats": table.seats,
        "status": table.status,
        "location": table.location,
    }


async def list_tables(
    db: AsyncSession,
    restaurant: Restaurant,
    nova: NovaClient,
    party_size: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """All tables for the restaurant; with party_size only those seating at least that many"""
    if restaurant.novaref_id:
        areas = await nova.get_table_status(restaurant.novaref_id)
        tables = flatten_areas(areas, restaurant.id)
    else:
        result = await db.execute(
            select(Table).where(Table.tenant_id == restaurant.id).order_by(Table.name)
        )
        tables = [table_to_dict(t) for t in result.scalars().all()]

    if party_size:
        tables = [t for t in tables if t["seats"] >= party_size]
    return tables


async def get_local_table(db: AsyncSession, tenant_id: UUID, table_id: str) -> Optional[Table]:
    """Local table row for an id, None for Nova ref ids or unknown tables"""
    try:
        table_uuid = UUID(str(table_id))
    except ValueError:
        return None
    result = await db.execute(
        select(Table).where(Table.id == table_uuid, Table.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def mark_occupied(db: AsyncSession, tenant_id: UUID, table_id: str) -> Optional[Table]:
    """Flag a local table occupied; caller commits"""
    table = await get_local_table(db, tenant_id, table_id)
    if table is not None:
        table.status = TableStatus.OCCUPIED.value
    return table


async def create_table(db: AsyncSession, tenant_id: UUID, data: Dict[str, Any]) -> Table:
    table = Table(
        tenant_id=tenant_id,
        name=data["name"],
        seats=data["seats"],
        location=data.get("location"),
        status=data.get("status") or TableStatus.AVAILABLE.value,
    )
    db.add(table)
    await db.commit()
    await db.refresh(table)
    return table


async def free_table(db: AsyncSession, tenant_id: UUID, table_id: str) -> Table:
    """Set a table back to available; reservations seated at it are left alone"""
    table = await get_local_table(db, tenant_id, table_id)
    if table is None:
        raise NotFoundError("Table not found")

    table.status = TableStatus.AVAILABLE.value
    await db.commit()
    await db.refresh(table)

    logger.info("Table freed", tenant_id=str(tenant_id), table_id=str(table.id))
    return table
