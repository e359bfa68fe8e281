"""Tests for restaurant settings, deposits and guest message templates"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.errors import ValidationError
from app.models.reservation import Reservation
from app.services import messaging
from app.services.restaurant_settings import (
    PaymentSettings,
    calculate_payment_amount,
    deep_merge,
    default_settings,
    get_settings,
    get_timezone,
    update_settings,
    validate_payment_amount,
)

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")


def test_deep_merge_keeps_untouched_keys():
    base = {"a": {"b": 1, "c": [1, 2]}, "d": True}
    merged = deep_merge(base, {"a": {"c": [3]}, "e": "x"})

    assert merged == {"a": {"b": 1, "c": [3]}, "d": True, "e": "x"}
    # Base is not mutated
    assert base["a"]["c"] == [1, 2]


def test_default_settings_shape():
    document = default_settings()
    assert document["reservation_settings"]["lead_time_hours"] == 2
    assert document["reservation_settings"]["payment_settings"]["payment_type"] == "fixed"
    assert document["waitlist_paused"] is False


def test_payment_amount_rules():
    payment_settings = PaymentSettings(
        base_payment_amount=20,
        party_size_pricing=[{"minParty": 5, "maxParty": 8, "amount": 40}],
        peak_hours_premium=10,
        peak_hours_start="19:00",
        peak_hours_end="21:00",
        weekend_premium=5,
    )

    # Monday 18:00: base only
    assert calculate_payment_amount(2, datetime(2024, 6, 3, 18, 0), payment_settings, UTC) == 20
    # Tier replaces the base
    assert calculate_payment_amount(6, datetime(2024, 6, 3, 18, 0), payment_settings, UTC) == 40
    # Peak window is inclusive at both ends
    assert calculate_payment_amount(2, datetime(2024, 6, 3, 21, 0), payment_settings, UTC) == 30
    # Saturday 19:30: tier + peak + weekend
    assert calculate_payment_amount(6, datetime(2024, 6, 1, 19, 30), payment_settings, UTC) == 55


def test_payment_amount_uses_local_time():
    payment_settings = PaymentSettings(base_payment_amount=20, peak_hours_premium=10)
    # 23:30 UTC is 19:30 in New York
    assert calculate_payment_amount(2, datetime(2024, 6, 3, 23, 30), payment_settings, NEW_YORK) == 30
    assert calculate_payment_amount(2, datetime(2024, 6, 3, 23, 30), payment_settings, UTC) == 20


def test_validate_payment_amount():
    custom = PaymentSettings(payment_type="custom", min_payment_amount=10, max_payment_amount=100)

    assert validate_payment_amount(50, custom) == 50
    with pytest.raises(ValidationError, match="at least"):
        validate_payment_amount(5, custom)
    with pytest.raises(ValidationError, match="cannot exceed"):
        validate_payment_amount(150, custom)
    with pytest.raises(ValidationError):
        validate_payment_amount(0, PaymentSettings())


@pytest.mark.asyncio
async def test_update_settings_merges_and_validates(test_db, test_restaurant):
    await update_settings(test_db, test_restaurant, {
        "reservation_settings": {"lead_time_hours": 4},
        "manager_settings": {"timezone": "America/New_York"},
    })

    settings = get_settings(test_restaurant)
    assert settings.reservation_settings.lead_time_hours == 4
    assert settings.reservation_settings.max_advance_days == 60
    assert get_timezone(test_restaurant) == NEW_YORK

    with pytest.raises(ValidationError, match="Unknown timezone"):
        await update_settings(test_db, test_restaurant, {"manager_settings": {"timezone": "Mars/Olympus"}})
    assert get_settings(test_restaurant).manager_settings.timezone == "America/New_York"


def _reservation(**overrides):
    fields = {"name": "Jane", "phone": "4155551234", "party_size": 4, "date_time": datetime(2024, 6, 1, 22, 0)}
    fields.update(overrides)
    return Reservation(**fields)


def test_format_date_relative_to_restaurant_day():
    reservation = _reservation()
    same_day = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    day_before = datetime(2024, 5, 31, 12, 0, tzinfo=timezone.utc)
    weeks_before = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)

    assert messaging.format_date(reservation.date_time, NEW_YORK, same_day) == "Today"
    assert messaging.format_date(reservation.date_time, NEW_YORK, day_before) == "Tomorrow"
    assert messaging.format_date(reservation.date_time, NEW_YORK, weeks_before) == "Jun 1, 2024"
    assert messaging.format_time(reservation.date_time, NEW_YORK) == "6:00 PM"


def test_render_templates():
    reservation = _reservation()
    now = datetime(2024, 5, 20, tzinfo=timezone.utc)

    reminder = messaging.render_template("reminder", reservation, NEW_YORK, now)
    assert reminder == "Hi Jane, reminder: your reservation is Jun 1, 2024 at 6:00 PM. See you soon!"

    confirmation = messaging.render_template("confirmation", reservation, NEW_YORK, now)
    assert "for 4 guests" in confirmation

    with pytest.raises(KeyError):
        messaging.render_template("birthday", reservation, NEW_YORK, now)


def test_templates_fit_one_sms():
    reservation = _reservation(name="Bartholomew Maximilian Featherstonehaugh-Cholmondeley the Third")
    for template_id in messaging.MESSAGE_TEMPLATES:
        assert len(messaging.render_template(template_id, reservation, UTC)) <= messaging.MAX_SMS_LENGTH


def test_guest_confirmation_is_sanitized():
    assert messaging.sanitize_confirmation("Hi Jo, Mario's: confirmed 6:00 PM!") == "Hi Jo, Marios confirmed 600 PM!"
    assert messaging.sanitize_confirmation("Café & Bar") == "Caf  Bar"
    assert len(messaging.sanitize_confirmation("a" * 300)) == messaging.MAX_CONFIRMATION_LENGTH

    message = messaging.guest_confirmation_message(
        _reservation(), "Mario's Kitchen", UTC, datetime(2024, 5, 20, tzinfo=timezone.utc)
    )
    assert message.startswith("Hi Jane, Marios Kitchen confirmed Jun 1, 2024 at 1000 PM")
    assert "'" not in message and ":" not in message


def test_cancellation_messages():
    reservation = _reservation()
    now = datetime(2024, 5, 20, tzinfo=timezone.utc)
    assert "we need to cancel" in messaging.cancellation_message(reservation, UTC, now=now)
    assert "has been cancelled" in messaging.cancellation_message(reservation, UTC, by_guest=True, now=now)
