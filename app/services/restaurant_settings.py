"""
Per-restaurant settings.

Settings live as one JSON document on the restaurant row:

    {
        "reservation_settings": {... "payment_settings": {...}},
        "manager_settings": {...},
        "waitlist_paused": false,
    }

The typed models below supply defaults for anything missing from the
stored document.
"""

import copy
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.restaurant import Restaurant

logger = structlog.get_logger()

DEFAULT_TIMEZONE = "America/Los_Angeles"


class PartySizeTier(BaseModel):
    """Flat price for parties between min_party and max_party inclusive"""
    min_party: int = Field(1, alias="minParty")
    max_party: int = Field(1, alias="maxParty")
    amount: float = 0

    class Config:
        populate_by_name = True


class PaymentSettings(BaseModel):
    payment_type: str = "fixed"  # fixed | custom
    base_payment_amount: float = 0
    min_payment_amount: float = 0
    max_payment_amount: float = 0
    party_size_pricing: List[PartySizeTier] = []
    peak_hours_premium: float = 0
    peak_hours_start: str = "19:00"
    peak_hours_end: str = "21:00"
    weekend_premium: float = 0
    refund_policy: str = "refundable"  # refundable | non-refundable | conditional
    refund_hours_before: int = 24
    charge_no_show: bool = False
    no_show_charge_type: str = "amount"  # amount | percentage
    no_show_charge_value: float = 0


class ReservationSettings(BaseModel):
    lead_time_hours: int = 2
    cutoff_time: str = "21:00"
    auto_confirm: bool = True
    allow_special_notes: bool = False
    special_occasions: List[str] = []
    require_payment: bool = False
    max_advance_days: int = 60
    min_advance_hours: int = 24
    payment_settings: PaymentSettings = PaymentSettings()


class ManagerSettings(BaseModel):
    show_avg_party_size: bool = False
    show_peak_hour: bool = False
    show_cancellation_rate: bool = False
    show_this_week: bool = False
    timezone: str = DEFAULT_TIMEZONE


class RestaurantSettings(BaseModel):
    reservation_settings: ReservationSettings = ReservationSettings()
    manager_settings: ManagerSettings = ManagerSettings()
    waitlist_paused: bool = False


def default_settings() -> Dict[str, Any]:
    """Settings document written for a newly provisioned restaurant"""
    return RestaurantSettings().model_dump(by_alias=True)


def get_settings(restaurant: Restaurant) -> RestaurantSettings:
    return RestaurantSettings.model_validate(restaurant.settings or {})


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge `patch` into a copy of `base`.

    Nested dicts merge key by key; lists and scalars in the patch replace
    the stored value.
    """
    merged = copy.deepcopy(base) if base else {}
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


async def update_settings(
    db: AsyncSession,
    restaurant: Restaurant,
    patch: Dict[str, Any],
) -> RestaurantSettings:
    """Deep-merge a partial settings document into the restaurant and persist it"""
    merged = deep_merge(restaurant.settings or {}, patch)

    # Reject documents that no longer parse before writing them
    try:
        typed = RestaurantSettings.model_validate(merged)
    except ValueError as e:
        raise ValidationError(f"Invalid settings: {e}")

    tz_name = typed.manager_settings.timezone
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {tz_name}")

    # Reassign so the JSON column is flagged dirty
    restaurant.settings = merged
    await db.commit()
    await db.refresh(restaurant)

    logger.info("Restaurant settings updated", tenant_id=str(restaurant.id), keys=sorted(patch.keys()))
    return typed


def get_timezone(restaurant: Restaurant) -> ZoneInfo:
    """The restaurant's configured zone, UTC when unset or unknown"""
    tz_name = get_settings(restaurant).manager_settings.timezone
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown restaurant timezone, using UTC", tenant_id=str(restaurant.id), timezone=tz_name)
        return ZoneInfo("UTC")


def to_local(utc_naive: datetime, tz: ZoneInfo) -> datetime:
    """Convert a stored naive-UTC datetime to the restaurant's wall clock"""
    return utc_naive.replace(tzinfo=dt_timezone.utc).astimezone(tz)


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def calculate_payment_amount(
    party_size: int,
    date_time: datetime,
    payment_settings: PaymentSettings,
    tz: ZoneInfo,
) -> float:
    """
    Deposit for a reservation.

    Base amount, replaced by the first matching party-size tier; plus the
    peak premium when the local time falls inside [peak start, peak end];
    plus the weekend premium on Saturday or Sunday. Never negative.
    """
    amount = payment_settings.base_payment_amount or 0

    for tier in payment_settings.party_size_pricing:
        if tier.min_party <= party_size <= tier.max_party:
            amount = tier.amount
            break

    local = to_local(date_time, tz)

    if payment_settings.peak_hours_premium and payment_settings.peak_hours_start and payment_settings.peak_hours_end:
        at = local.hour * 60 + local.minute
        if _minutes(payment_settings.peak_hours_start) <= at <= _minutes(payment_settings.peak_hours_end):
            amount += payment_settings.peak_hours_premium

    # weekday(): Saturday = 5, Sunday = 6
    if payment_settings.weekend_premium and local.weekday() >= 5:
        amount += payment_settings.weekend_premium

    return max(0.0, float(amount))


def validate_payment_amount(amount: Optional[float], payment_settings: PaymentSettings) -> float:
    if not amount or amount <= 0:
        raise ValidationError("Please enter a valid payment amount")

    if payment_settings.payment_type == "custom":
        min_amount = payment_settings.min_payment_amount or 0
        max_amount = payment_settings.max_payment_amount or 0
        if amount < min_amount:
            raise ValidationError(f"Payment amount must be at least ${min_amount:.2f}")
        if max_amount > 0 and amount > max_amount:
            raise ValidationError(f"Payment amount cannot exceed ${max_amount:.2f}")

    return float(amount)
