"""Restaurant (tenant) management API endpoints"""

from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.schemas.tenant import (
    TenantCreate,
    TenantUpdate,
    TenantResponse,
    SettingsPatch,
)
from app.services import restaurant_settings, tenants
from app.api.auth import get_current_active_user, get_tenant_restaurant, require_role, verify_tenant_access

router = APIRouter()


@router.get("", response_model=List[TenantResponse])
async def list_tenants(
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(require_role(UserRole.SUPER_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """List all restaurants (SuperAdmin only)"""
    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.is_active == True)  # noqa: E712
        .order_by(Restaurant.name)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    tenant_data: TenantCreate,
    current_user: User = Depends(require_role(UserRole.SUPER_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a restaurant with default settings and time slots (SuperAdmin only)"""
    return await tenants.create_restaurant(db, tenant_data.model_dump())


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Get restaurant details"""
    await verify_tenant_access(tenant_id, current_user)
    return await tenants.get_restaurant(db, tenant_id)


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: UUID,
    tenant_data: TenantUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Update restaurant details; addressing fields are SuperAdmin only"""
    await verify_tenant_access(tenant_id, current_user)

    if not current_user.has_permission(UserRole.MANAGER):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    changes = tenant_data.model_dump(exclude_unset=True)
    addressing = {"subdomain", "slug", "novaref_id", "is_active"} & changes.keys()
    if addressing and not current_user.has_permission(UserRole.SUPER_ADMIN):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    return await tenants.update_restaurant(db, tenant_id, changes)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: UUID,
    current_user: User = Depends(require_role(UserRole.SUPER_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate restaurant (soft delete - SuperAdmin only)"""
    await tenants.deactivate_restaurant(db, tenant_id)


@router.get("/{tenant_id}/settings")
async def get_tenant_settings(
    restaurant: Restaurant = Depends(get_tenant_restaurant),
) -> Dict[str, Any]:
    """Restaurant settings with defaults filled in"""
    return restaurant_settings.get_settings(restaurant).model_dump(by_alias=True)


@router.patch("/{tenant_id}/settings")
async def update_tenant_settings(
    patch: SettingsPatch,
    restaurant: Restaurant = Depends(get_tenant_restaurant),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Deep-merge a partial settings document"""
    if not current_user.has_permission(UserRole.MANAGER):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    updated = await restaurant_settings.update_settings(db, restaurant, patch.model_dump(exclude_unset=True))
    return updated.model_dump(by_alias=True)
