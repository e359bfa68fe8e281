"""
Tenant resolution and provisioning.

A request is mapped to a restaurant by trying, in order:

    1. a UUID-shaped first path segment, matched against novaref_id
    2. any other first path segment that is not a route word, matched against slug
    3. the host's subdomain, matched against subdomain
    4. the default subdomain, when the host has none

The first strategy that recognises the request decides: if its restaurant
does not exist the lookup fails rather than falling through.
"""

import enum
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.restaurant import Restaurant
from app.services.capacity import create_default_time_slots
from app.services.restaurant_settings import default_settings

logger = structlog.get_logger()

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
SUBDOMAIN_RE = re.compile(r"^[a-z0-9-]+$")

RESERVED_SUBDOMAINS = frozenset({
    "admin", "www", "api", "app", "mail", "ftp", "localhost", "test", "staging", "dev",
})
# First path segments that are routes, not restaurant slugs
RESERVED_PATH_WORDS = frozenset({"admin", "reserve", "payment", "cancel", "api", "public"})
# Subdomains that address the platform rather than a restaurant
NON_TENANT_SUBDOMAINS = frozenset({"admin", "www"})


class ResolutionSource(str, enum.Enum):
    NOVAREF_PATH = "novaref_path"
    PATH_SLUG = "path_slug"
    SUBDOMAIN = "subdomain"
    DEFAULT = "default"


def normalize_subdomain(subdomain: str) -> str:
    return (subdomain or "").lower().strip()


def validate_subdomain(subdomain: str) -> Tuple[bool, Optional[str]]:
    """(valid, error message)"""
    if not subdomain:
        return False, "Subdomain is required"
    if len(subdomain) < 3:
        return False, "Subdomain must be at least 3 characters"
    if len(subdomain) > 63:
        return False, "Subdomain must be less than 63 characters"
    if not re.match(r"^[a-z0-9]", subdomain) or not re.search(r"[a-z0-9]$", subdomain):
        return False, "Subdomain must start and end with a letter or number"
    if not SUBDOMAIN_RE.match(subdomain):
        return False, "Subdomain can only contain lowercase letters, numbers, and hyphens"
    if subdomain.lower() in RESERVED_SUBDOMAINS:
        return False, "This subdomain is reserved"
    return True, None


def extract_subdomain(host: Optional[str]) -> Optional[str]:
    """
    "joes-pizza.localhost:5173" -> "joes-pizza"
    "joes-pizza.novaqueue.com" -> "joes-pizza"
    "www.joes-pizza.novaqueue.com" -> "joes-pizza"  (label next to the base domain)
    "localhost:5173", "novaqueue.com" -> None
    """
    if not host:
        return None
    hostname = host.split(":")[0].lower().strip(".")
    parts = hostname.split(".")

    base_domain = (settings.base_domain or "").lower().strip(".")
    if base_domain and hostname.endswith("." + base_domain):
        return hostname[: -len(base_domain) - 1].split(".")[-1] or None

    if "localhost" in hostname or hostname == "127.0.0.1":
        if len(parts) >= 2 and parts[0] not in ("localhost", "127"):
            return parts[0]
        return None

    if len(parts) >= 3:
        return parts[0]
    return None


def first_path_segment(path: Optional[str]) -> Optional[str]:
    parts = [p for p in (path or "").split("/") if p]
    return parts[0] if parts else None


class TenantStrategy(ABC):
    """One way of recognising the tenant in a request"""

    source: ResolutionSource

    @abstractmethod
    def match(self, host: Optional[str], path: Optional[str]) -> Optional[str]:
        """The lookup key when this strategy applies to the request"""
        pass

    @abstractmethod
    async def lookup(self, db: AsyncSession, key: str) -> Optional[Restaurant]:
        pass


class NovaRefPathStrategy(TenantStrategy):
    source = ResolutionSource.NOVAREF_PATH

    def match(self, host, path):
        segment = first_path_segment(path)
        if segment and UUID_RE.match(segment):
            return segment
        return None

    async def lookup(self, db, key):
        return await _active_by(db, Restaurant.novaref_id, key)


class PathSlugStrategy(TenantStrategy):
    source = ResolutionSource.PATH_SLUG

    def match(self, host, path):
        segment = first_path_segment(path)
        if segment and segment.lower() not in RESERVED_PATH_WORDS and not UUID_RE.match(segment):
            return segment.lower()
        return None

    async def lookup(self, db, key):
        return await _active_by(db, Restaurant.slug, key)


class SubdomainStrategy(TenantStrategy):
    source = ResolutionSource.SUBDOMAIN

    def match(self, host, path):
        subdomain = extract_subdomain(host)
        return normalize_subdomain(subdomain) if subdomain else None

    async def lookup(self, db, key):
        return await _active_by(db, Restaurant.subdomain, key)


class DefaultStrategy(TenantStrategy):
    source = ResolutionSource.DEFAULT

    def match(self, host, path):
        if extract_subdomain(host):
            return None
        return settings.default_subdomain

    async def lookup(self, db, key):
        return await _active_by(db, Restaurant.subdomain, key)


STRATEGIES: List[TenantStrategy] = [
    NovaRefPathStrategy(),
    PathSlugStrategy(),
    SubdomainStrategy(),
    DefaultStrategy(),
]


async def _active_by(db: AsyncSession, column, value: str) -> Optional[Restaurant]:
    result = await db.execute(
        select(Restaurant).where(column == value, Restaurant.is_active == True)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def resolve_tenant(
    db: AsyncSession,
    host: Optional[str] = None,
    path: Optional[str] = None,
) -> Tuple[Optional[Restaurant], Optional[ResolutionSource]]:
    """
    Resolve (restaurant, source) for a request.

    Returns (None, None) for platform hosts such as admin.{domain}. Raises
    NotFoundError when a strategy recognises the request but no active
    restaurant matches.
    """
    for strategy in STRATEGIES:
        key = strategy.match(host, path)
        if key is None:
            continue

        if strategy.source == ResolutionSource.SUBDOMAIN and key in NON_TENANT_SUBDOMAINS:
            return None, None

        restaurant = await strategy.lookup(db, key)
        if restaurant is None:
            logger.info("Tenant not found", source=strategy.source.value, key=key)
            raise NotFoundError(f"Restaurant with ID {key} not found")
        return restaurant, strategy.source

    return None, None


async def get_restaurant(db: AsyncSession, tenant_id: UUID) -> Restaurant:
    result = await db.execute(select(Restaurant).where(Restaurant.id == tenant_id))
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    return restaurant


async def _ensure_unique(db: AsyncSession, column, value: Optional[str], label: str, exclude_id: Optional[UUID] = None):
    if not value:
        return
    query = select(Restaurant.id).where(column == value)
    if exclude_id is not None:
        query = query.where(Restaurant.id != exclude_id)
    result = await db.execute(query)
    if result.first() is not None:
        raise ValidationError(f"{label} '{value}' is already in use")


def _clean_addressing(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    if data.get("subdomain") is not None:
        data["subdomain"] = normalize_subdomain(data["subdomain"])
        valid, error = validate_subdomain(data["subdomain"])
        if not valid:
            raise ValidationError(error)
    if data.get("slug") is not None:
        data["slug"] = data["slug"].lower().strip()
        if data["slug"] in RESERVED_PATH_WORDS or not SUBDOMAIN_RE.match(data["slug"]):
            raise ValidationError("Slug can only contain lowercase letters, numbers, and hyphens and must not be a reserved word")
    if data.get("novaref_id") is not None:
        data["novaref_id"] = data["novaref_id"].strip() or None
    return data


async def create_restaurant(db: AsyncSession, data: Dict[str, Any]) -> Restaurant:
    """Provision a restaurant with default settings and the default weekly slots"""
    data = _clean_addressing(data)
    if not data.get("subdomain"):
        raise ValidationError("Subdomain is required")

    await _ensure_unique(db, Restaurant.subdomain, data.get("subdomain"), "Subdomain")
    await _ensure_unique(db, Restaurant.slug, data.get("slug"), "Slug")
    await _ensure_unique(db, Restaurant.novaref_id, data.get("novaref_id"), "Nova reference ID")

    restaurant = Restaurant(
        name=data["name"],
        subdomain=data["subdomain"],
        slug=data.get("slug") or data["subdomain"],
        novaref_id=data.get("novaref_id"),
        description=data.get("description"),
        address=data.get("address"),
        phone=data.get("phone"),
        email=data.get("email"),
        settings=default_settings(),
    )
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)

    await create_default_time_slots(db, restaurant.id)

    logger.info("Restaurant created", tenant_id=str(restaurant.id), subdomain=restaurant.subdomain)
    return restaurant


async def update_restaurant(db: AsyncSession, tenant_id: UUID, changes: Dict[str, Any]) -> Restaurant:
    restaurant = await get_restaurant(db, tenant_id)
    changes = _clean_addressing(changes)

    if "subdomain" in changes:
        await _ensure_unique(db, Restaurant.subdomain, changes["subdomain"], "Subdomain", restaurant.id)
    if "slug" in changes:
        await _ensure_unique(db, Restaurant.slug, changes["slug"], "Slug", restaurant.id)
    if "novaref_id" in changes:
        await _ensure_unique(db, Restaurant.novaref_id, changes["novaref_id"], "Nova reference ID", restaurant.id)

    for field, value in changes.items():
        setattr(restaurant, field, value)

    await db.commit()
    await db.refresh(restaurant)
    logger.info("Restaurant updated", tenant_id=str(restaurant.id), fields=sorted(changes.keys()))
    return restaurant


async def deactivate_restaurant(db: AsyncSession, tenant_id: UUID) -> Restaurant:
    restaurant = await get_restaurant(db, tenant_id)
    restaurant.is_active = False
    await db.commit()
    logger.info("Restaurant deactivated", tenant_id=str(restaurant.id))
    return restaurant
