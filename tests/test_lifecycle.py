"""Tests for the reservation lifecycle: booking, confirmation, messaging, seating, cancellation"""

import json
from datetime import datetime, time

import httpx
import pytest
from sqlalchemy import update

from app.core.errors import (
    ConfigurationError,
    ExternalAPIError,
    InvalidTransitionError,
    TableAlreadyOccupiedError,
    ValidationError,
)
from app.integrations.nova import NovaClient
from app.models.reservation import Reservation
from app.schemas.reservation import BookingRequest
from app.services import capacity, lifecycle, tables
from app.services.lifecycle import can_cancel, can_take_action, nova_timestamp, phone_tail
from app.services.restaurant_settings import update_settings
from tests.conftest import future_date


def _booking(**overrides):
    data = {
        "name": "Jane Guest",
        "phone": "(415) 555-1234",
        "email": "jane@example.com",
        "party_size": 2,
        "date": future_date(),
        "time": "6:00 PM",
    }
    data.update(overrides)
    return BookingRequest(**data)


def test_guards():
    assert can_take_action("confirmed")
    assert can_take_action("notified")
    for status in ("draft", "seated", "cancelled"):
        assert not can_take_action(status)

    assert can_cancel("draft")
    assert not can_cancel("seated")
    assert not can_cancel("cancelled")


def test_helpers():
    assert phone_tail("+1 (415) 555-1234") == "1234"
    assert nova_timestamp(datetime(2024, 6, 1, 22, 0)) == "2024-06-01T22:00:00.000Z"


# Booking

@pytest.mark.asyncio
async def test_guest_booking_confirms_and_texts(test_db, test_restaurant, nova_client, fake_nova):
    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, _booking())

    assert reservation.status == "confirmed"
    assert reservation.slot_start_time == "18:00:00"
    assert reservation.slot_end_time == "18:30:00"
    assert reservation.date_time == datetime.combine(future_date(), time(18, 0))

    # No Nova reference: no customer record, one confirmation SMS
    assert fake_nova.calls("/customer") == []
    assert len(fake_nova.sms) == 1
    body = json.loads(fake_nova.sms[0].content)
    assert body["countryCode"] == "+1"
    assert body["mobileNumber"] == "4155551234"
    assert "Jane Guest" in body["message"]

    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert [m.status for m in history] == ["sent"]


@pytest.mark.asyncio
async def test_booking_without_auto_confirm_is_notified(test_db, test_restaurant, nova_client):
    await update_settings(test_db, test_restaurant, {"reservation_settings": {"auto_confirm": False}})
    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, _booking())
    assert reservation.status == "notified"


@pytest.mark.asyncio
async def test_booking_survives_sms_failure(test_db, test_restaurant, nova_client, fake_nova):
    fake_nova.sms_status = 500
    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, _booking())

    assert reservation.status == "confirmed"
    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert len(history) == 1
    assert history[0].status == "failed"
    assert "Jane Guest" in history[0].message


@pytest.mark.asyncio
async def test_booking_refuses_full_slot(test_db, test_restaurant, nova_client):
    day = future_date()
    await capacity.create_time_slot(test_db, test_restaurant.id, {
        "specific_date": day, "start_time": "19:00", "end_time": "19:30", "max_reservations": 2,
    })

    first = await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"))
    await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"))

    with pytest.raises(ValidationError, match="fully booked"):
        await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"))

    # A cancellation frees the seat
    await lifecycle.cancel(test_db, nova_client, test_restaurant, first.id)
    again = await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"))
    assert again.status == "confirmed"


@pytest.mark.asyncio
async def test_staff_booking_skips_capacity_and_window(test_db, test_restaurant, nova_client):
    day = future_date()
    await capacity.create_time_slot(test_db, test_restaurant.id, {
        "specific_date": day, "start_time": "19:00", "end_time": "19:30", "max_reservations": 1,
    })
    await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"))

    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="7:00 PM"), staff=True)
    assert reservation.status == "confirmed"

    far = await lifecycle.book(
        test_db, nova_client, test_restaurant, _booking(date=future_date(120)), staff=True
    )
    assert far.status == "confirmed"


@pytest.mark.asyncio
async def test_booking_window(test_db, test_restaurant, nova_client):
    with pytest.raises(ValidationError, match="days in advance"):
        await lifecycle.book(test_db, nova_client, test_restaurant, _booking(date=future_date(90)))

    with pytest.raises(ValidationError):
        await lifecycle.book(test_db, nova_client, test_restaurant, _booking(date=future_date(-1)))


@pytest.mark.asyncio
async def test_booking_unknown_time(test_db, test_restaurant, nova_client):
    with pytest.raises(ValidationError, match="not available"):
        await lifecycle.book(test_db, nova_client, test_restaurant, _booking(time="3:15 AM"))


@pytest.mark.asyncio
async def test_booking_extras_follow_settings(test_db, test_restaurant, nova_client):
    booking = _booking(special_requests="Window seat", special_occasion_type="birthday")
    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, booking)
    assert reservation.special_requests is None
    assert reservation.special_occasion_type is None

    await update_settings(test_db, test_restaurant, {"reservation_settings": {
        "allow_special_notes": True,
        "special_occasions": ["birthday", "anniversary"],
    }})
    reservation = await lifecycle.book(test_db, nova_client, test_restaurant, booking)
    assert reservation.special_requests == "Window seat"
    assert reservation.special_occasion_type == "birthday"


@pytest.mark.asyncio
async def test_paid_booking_starts_as_draft(test_db, nova_restaurant, nova_client, fake_nova):
    reservation = await lifecycle.book(test_db, nova_client, nova_restaurant, _booking())

    assert reservation.status == "draft"
    assert reservation.novacustomer_id == "cust-1"
    assert fake_nova.sms == []

    customer = json.loads(fake_nova.calls("/customer")[0].content)
    assert customer["firstName"] == "Jane"
    assert customer["lastName"] == "Guest"
    assert customer["restaurantRefId"] == nova_restaurant.novaref_id

    # Resubmitting with the draft id edits it in place
    updated = await lifecycle.book(
        test_db, nova_client, nova_restaurant, _booking(party_size=4, draft_id=reservation.id)
    )
    assert updated.id == reservation.id
    assert updated.party_size == 4


# Payment

@pytest.mark.asyncio
async def test_start_and_complete_payment(test_db, nova_restaurant, nova_client, fake_nova):
    draft = await lifecycle.book(test_db, nova_client, nova_restaurant, _booking())

    result = await lifecycle.start_payment(test_db, nova_client, nova_restaurant, draft.id)
    assert result["amount"] == 25
    assert result["checkout_url"] == fake_nova.checkout_url

    checkout = json.loads(fake_nova.calls("/payments/stripe/checkout/V3")[0].content)
    assert checkout["amount"] == "2500"
    assert checkout["metadata"]["orderRefId"] == str(draft.id)
    assert checkout["successUrl"].endswith(f"/reserve/confirm/{draft.id}")
    assert fake_nova.calls("/payments/stripe/checkout/V3")[0].headers["merchant_id"] == "merchant-1"

    paid = await lifecycle.complete_payment(test_db, nova_client, nova_restaurant, draft.id)
    assert paid.status == "confirmed"
    assert paid.payment_amount == 25
    assert len(fake_nova.sms) == 1


@pytest.mark.asyncio
async def test_payment_requires_draft(test_db, nova_restaurant, nova_client, make_reservation):
    reservation = await make_reservation(restaurant=nova_restaurant, status="confirmed")
    with pytest.raises(InvalidTransitionError):
        await lifecycle.start_payment(test_db, nova_client, nova_restaurant, reservation.id)


@pytest.mark.asyncio
async def test_payment_needs_nova_reference(test_db, test_restaurant, nova_client, make_reservation):
    await update_settings(test_db, test_restaurant, {"reservation_settings": {
        "require_payment": True,
        "payment_settings": {"base_payment_amount": 10},
    }})
    draft = await make_reservation(status="draft")
    with pytest.raises(ConfigurationError):
        await lifecycle.start_payment(test_db, nova_client, test_restaurant, draft.id)


# Confirmation

@pytest.mark.asyncio
async def test_confirm_clears_unpaid_amount(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    draft = await make_reservation(status="draft", payment_amount=25.0)

    confirmed = await lifecycle.confirm(test_db, nova_client, test_restaurant, draft.id)
    assert confirmed.status == "confirmed"
    assert confirmed.payment_amount is None
    assert len(fake_nova.sms) == 1

    # Confirming again changes nothing and sends nothing
    again = await lifecycle.confirm(test_db, nova_client, test_restaurant, draft.id)
    assert again.status == "confirmed"
    assert len(fake_nova.sms) == 1


@pytest.mark.asyncio
async def test_confirm_rejects_terminal_states(test_db, test_restaurant, nova_client, make_reservation):
    seated = await make_reservation(status="seated")
    with pytest.raises(InvalidTransitionError):
        await lifecycle.confirm(test_db, nova_client, test_restaurant, seated.id)


# Messaging

@pytest.mark.asyncio
async def test_send_message_notifies(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="confirmed")

    entry = await lifecycle.send_message(test_db, nova_client, test_restaurant, reservation.id, "Your table is ready")
    assert entry.status == "sent"
    assert entry.phone_number == "4155551234"

    refreshed = await lifecycle.get_reservation(test_db, test_restaurant.id, reservation.id)
    assert refreshed.status == "notified"

    # Notified guests can be messaged again and stay notified
    await lifecycle.send_message(test_db, nova_client, test_restaurant, reservation.id, "Two more minutes")
    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert len(history) == 2
    assert refreshed.status == "notified"
    assert len(fake_nova.sms) == 2


@pytest.mark.asyncio
async def test_send_message_records_failure(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="confirmed")
    fake_nova.sms_status = 500

    with pytest.raises(ExternalAPIError):
        await lifecycle.send_message(test_db, nova_client, test_restaurant, reservation.id, "Running late?")

    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert [m.status for m in history] == ["failed"]

    refreshed = await lifecycle.get_reservation(test_db, test_restaurant.id, reservation.id)
    assert refreshed.status == "confirmed"


@pytest.mark.asyncio
async def test_send_message_validation(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="confirmed")

    with pytest.raises(ValidationError):
        await lifecycle.send_message(test_db, nova_client, test_restaurant, reservation.id, "x" * 161)
    with pytest.raises(ValidationError):
        await lifecycle.send_message(test_db, nova_client, test_restaurant, reservation.id, "   ")

    draft = await make_reservation(status="draft")
    with pytest.raises(InvalidTransitionError):
        await lifecycle.send_message(test_db, nova_client, test_restaurant, draft.id, "Hello")

    assert fake_nova.sms == []
    assert await lifecycle.message_history(test_db, test_restaurant.id, reservation.id) == []


# Seating

@pytest.mark.asyncio
async def test_seat_at_local_table(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    table = await tables.create_table(test_db, test_restaurant.id, {"name": "T1", "seats": 4})
    reservation = await make_reservation(status="notified")

    seated = await lifecycle.seat(test_db, nova_client, test_restaurant, reservation.id, str(table.id))
    assert seated.status == "seated"
    assert seated.table_id == str(table.id)

    await test_db.refresh(table)
    assert table.status == "occupied"
    assert fake_nova.calls("/book-table") == []

    # Same table again is a no-op
    again = await lifecycle.seat(test_db, nova_client, test_restaurant, reservation.id, str(table.id))
    assert again.status == "seated"

    other = await make_reservation(status="confirmed")
    with pytest.raises(TableAlreadyOccupiedError):
        await lifecycle.seat(test_db, nova_client, test_restaurant, other.id, str(table.id))

    refreshed = await lifecycle.get_reservation(test_db, test_restaurant.id, other.id)
    assert refreshed.status == "confirmed"


@pytest.mark.asyncio
async def test_seat_rejects_guarded_states(test_db, test_restaurant, nova_client, make_reservation):
    table = await tables.create_table(test_db, test_restaurant.id, {"name": "T1", "seats": 4})

    for status in ("draft", "cancelled"):
        reservation = await make_reservation(status=status)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.seat(test_db, nova_client, test_restaurant, reservation.id, str(table.id))

    seated = await make_reservation(status="seated", table_id="elsewhere")
    with pytest.raises(InvalidTransitionError):
        await lifecycle.seat(test_db, nova_client, test_restaurant, seated.id, str(table.id))


@pytest.mark.asyncio
async def test_seat_through_nova(test_db, nova_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(
        restaurant=nova_restaurant, status="confirmed", novacustomer_id="cust-1", party_size=3,
    )

    seated = await lifecycle.seat(test_db, nova_client, nova_restaurant, reservation.id, "table-9")
    assert seated.status == "seated"
    assert seated.table_id == "table-9"

    booking = fake_nova.calls("/book-table")[0]
    assert "/table/table-9/" in booking.url.path
    body = json.loads(booking.content)
    assert body["customerRefId"] == "cust-1"
    assert body["seatsRequired"] == 3
    assert body["reservationDate"].endswith(".000Z")


@pytest.mark.asyncio
async def test_seat_occupied_in_nova_leaves_reservation(test_db, nova_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(
        restaurant=nova_restaurant, status="confirmed", novacustomer_id="cust-1",
    )
    fake_nova.book_status = 400
    fake_nova.book_body = [{"errorCode": "TableAlreadyOccupied", "message": "Table is occupied"}]

    with pytest.raises(TableAlreadyOccupiedError):
        await lifecycle.seat(test_db, nova_client, nova_restaurant, reservation.id, "table-9")

    refreshed = await lifecycle.get_reservation(test_db, nova_restaurant.id, reservation.id)
    assert refreshed.status == "confirmed"
    assert refreshed.table_id is None


@pytest.mark.asyncio
async def test_seat_through_nova_needs_customer(test_db, nova_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(restaurant=nova_restaurant, status="confirmed")
    with pytest.raises(ConfigurationError):
        await lifecycle.seat(test_db, nova_client, nova_restaurant, reservation.id, "table-9")
    assert fake_nova.calls("/book-table") == []


@pytest.mark.asyncio
async def test_seat_accepts_plain_text_booking_ack(test_db, nova_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(
        restaurant=nova_restaurant, status="confirmed", novacustomer_id="cust-1",
    )
    fake_nova.book_text = "Booked"

    seated = await lifecycle.seat(test_db, nova_client, nova_restaurant, reservation.id, "table-9")
    assert seated.status == "seated"
    assert seated.table_id == "table-9"


@pytest.mark.asyncio
async def test_seat_loses_race_to_concurrent_cancel(test_db, nova_restaurant, fake_nova, make_reservation):
    reservation = await make_reservation(
        restaurant=nova_restaurant, status="confirmed", novacustomer_id="cust-1",
    )
    table = await tables.create_table(test_db, nova_restaurant.id, {"name": "T1", "seats": 4})

    async def cancel_while_booking(request):
        # another request cancels between the status guard and the update
        if request.url.path.endswith("/book-table"):
            await test_db.execute(
                update(Reservation)
                .where(Reservation.id == reservation.id)
                .values(status="cancelled")
                .execution_options(synchronize_session=False)
            )
            await test_db.commit()
        return fake_nova.handler(request)

    nova = NovaClient(
        base_url="http://nova.test",
        api_key="test-key",
        timeout=1,
        max_retries=0,
        transport=httpx.MockTransport(cancel_while_booking),
    )

    with pytest.raises(InvalidTransitionError, match="another request"):
        await lifecycle.seat(test_db, nova, nova_restaurant, reservation.id, str(table.id))

    assert len(fake_nova.calls("/book-table")) == 1
    await test_db.refresh(table)
    assert table.status == "available"
    refreshed = await lifecycle.get_reservation(test_db, nova_restaurant.id, reservation.id)
    await test_db.refresh(refreshed)
    assert refreshed.status == "cancelled"
    assert refreshed.table_id is None


# Cancellation

@pytest.mark.asyncio
async def test_plain_text_sms_ack_counts_as_sent(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="confirmed")
    fake_nova.sms_text = "OK"

    cancelled = await lifecycle.cancel(test_db, nova_client, test_restaurant, reservation.id)
    assert cancelled.status == "cancelled"

    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert [entry.status for entry in history] == ["sent"]


@pytest.mark.asyncio
async def test_unreadable_customer_response_does_not_block_booking(test_db, nova_restaurant, fake_nova):
    def customer_says_ok(request):
        if request.url.path.endswith("/customer"):
            return httpx.Response(200, text="OK")
        return fake_nova.handler(request)

    nova = NovaClient(
        base_url="http://nova.test",
        api_key="test-key",
        timeout=1,
        max_retries=0,
        transport=httpx.MockTransport(customer_says_ok),
    )

    reservation = await lifecycle.book(test_db, nova, nova_restaurant, _booking())
    assert reservation.status == "draft"
    assert reservation.novacustomer_id is None


@pytest.mark.asyncio
async def test_cancel_records_message_even_when_sms_fails(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="confirmed")
    fake_nova.sms_status = 503

    cancelled = await lifecycle.cancel(test_db, nova_client, test_restaurant, reservation.id)
    assert cancelled.status == "cancelled"

    history = await lifecycle.message_history(test_db, test_restaurant.id, reservation.id)
    assert len(history) == 1
    assert history[0].status == "failed"
    assert "cancel" in history[0].message

    with pytest.raises(InvalidTransitionError):
        await lifecycle.cancel(test_db, nova_client, test_restaurant, reservation.id)


@pytest.mark.asyncio
async def test_guest_cancellation_wording(test_db, test_restaurant, nova_client, fake_nova, make_reservation):
    reservation = await make_reservation(status="draft")
    await lifecycle.cancel(test_db, nova_client, test_restaurant, reservation.id, by_guest=True)

    body = json.loads(fake_nova.sms[0].content)
    assert "has been cancelled" in body["message"]


@pytest.mark.asyncio
async def test_lookup_by_phone(test_db, test_restaurant, make_reservation):
    active = await make_reservation(status="confirmed", phone="+1 415-555-1234")
    await make_reservation(status="cancelled")
    await make_reservation(status="confirmed", phone="2125550000")

    found = await lifecycle.lookup_by_phone(test_db, test_restaurant.id, "415.555.1234")
    assert [r.id for r in found] == [active.id]

    with pytest.raises(ValidationError):
        await lifecycle.lookup_by_phone(test_db, test_restaurant.id, "5551234")
