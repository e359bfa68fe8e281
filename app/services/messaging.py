"""Guest SMS templates"""

import re
from datetime import datetime, timezone as dt_timezone
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from app.models.reservation import Reservation
from app.services.restaurant_settings import to_local

MAX_SMS_LENGTH = 160
MAX_CONFIRMATION_LENGTH = 100

MESSAGE_TEMPLATES: Dict[str, str] = {
    "reschedule": (
        "Hi {name}, we need to reschedule your reservation for {date} at {time}. "
        "Please let us know if another time works."
    ),
    "reminder": "Hi {name}, reminder: your reservation is {date} at {time}. See you soon!",
    "delay": (
        "Hi {name}, we're running behind. Your reservation for {date} at {time} "
        "may be delayed 15-20 min. Thanks!"
    ),
    "cancellation": (
        "Hi {name}, we need to cancel your reservation for {date} at {time}. "
        "We apologize. Please contact us to reschedule."
    ),
    "confirmation": (
        "Hi {name}, this is to confirm your reservation for {date} at {time} "
        "for {party_size} guests. We look forward to serving you!"
    ),
}

GUEST_CANCELLATION_TEMPLATE = (
    "Hi {name}, your reservation for {date} at {time} has been cancelled. We hope to see you another time!"
)

GUEST_CONFIRMATION_TEMPLATE = (
    "Hi {name}, {restaurant_name}: confirmed {date} at {time} for {party_size} guests. See you soon!"
)

# ASCII word characters, whitespace and . , ! ? survive
_CONFIRMATION_STRIP_RE = re.compile(r"[^\w\s.,!?]", re.ASCII)


def format_date(date_time: datetime, tz: ZoneInfo, now: Optional[datetime] = None) -> str:
    """"Today", "Tomorrow" or "Jun 1, 2024" in the restaurant's zone"""
    local = to_local(date_time, tz)
    today = (now or datetime.now(dt_timezone.utc)).astimezone(tz).date()
    delta = (local.date() - today).days
    if delta == 0:
        return "Today"
    if delta == 1:
        return "Tomorrow"
    return f"{local.strftime('%b')} {local.day}, {local.year}"


def format_time(date_time: datetime, tz: ZoneInfo) -> str:
    """"6:00 PM" in the restaurant's zone"""
    local = to_local(date_time, tz)
    return f"{local.hour % 12 or 12}:{local.minute:02d} {'PM' if local.hour >= 12 else 'AM'}"


def render(
    template: str,
    reservation: Reservation,
    tz: ZoneInfo,
    restaurant_name: str = "",
    now: Optional[datetime] = None,
) -> str:
    return (
        template
        .replace("{name}", reservation.name)
        .replace("{restaurant_name}", restaurant_name)
        .replace("{date}", format_date(reservation.date_time, tz, now))
        .replace("{time}", format_time(reservation.date_time, tz))
        .replace("{party_size}", str(reservation.party_size))
    )


def render_template(
    template_id: str,
    reservation: Reservation,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> str:
    """Staff template, cut to one SMS"""
    template = MESSAGE_TEMPLATES.get(template_id)
    if template is None:
        raise KeyError(template_id)
    return render(template, reservation, tz, now=now)[:MAX_SMS_LENGTH]


def cancellation_message(
    reservation: Reservation,
    tz: ZoneInfo,
    by_guest: bool = False,
    now: Optional[datetime] = None,
) -> str:
    template = GUEST_CANCELLATION_TEMPLATE if by_guest else MESSAGE_TEMPLATES["cancellation"]
    return render(template, reservation, tz, now=now)[:MAX_SMS_LENGTH]


def sanitize_confirmation(message: str) -> str:
    return _CONFIRMATION_STRIP_RE.sub("", message)[:MAX_CONFIRMATION_LENGTH]


def guest_confirmation_message(
    reservation: Reservation,
    restaurant_name: str,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> str:
    """Confirmation sent after a guest books, stripped of punctuation beyond .,!? and capped at 100 chars"""
    message = render(GUEST_CONFIRMATION_TEMPLATE, reservation, tz, restaurant_name or "Restaurant", now)
    return sanitize_confirmation(message)
