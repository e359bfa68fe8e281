"""Table API endpoints"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.integrations.nova import NovaClient, get_nova_client
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.schemas.reservation import TableCreate, TableResponse
from app.services import tables
from app.api.auth import get_current_active_user, get_tenant_restaurant

router = APIRouter()


@router.get("", response_model=List[TableResponse])
async def list_tables(
    party_size: Optional[int] = Query(None, ge=1),
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
    nova: NovaClient = Depends(get_nova_client),
):
    """Tables from Nova or the local floor plan; party_size keeps tables that fit"""
    return await tables.list_tables(db, restaurant, nova, party_size)


@router.post("", response_model=TableResponse, status_code=201)
async def create_table(
    table_data: TableCreate,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Add a local table"""
    if not current_user.has_permission(UserRole.MANAGER):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    table = await tables.create_table(db, restaurant.id, table_data.model_dump())
    return tables.table_to_dict(table)


@router.post("/{table_id}/free", response_model=TableResponse)
async def free_table(
    table_id: str,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Mark a table available again"""
    table = await tables.free_table(db, restaurant.id, table_id)
    return tables.table_to_dict(table)
