from datetime import timedelta
from decimal import Decimal

import pytest

from app.models.booking import Booking
from app.models.service import Service
from app.models.slot import TimeSlot
from app.services.allocation_service import allocate_booking, update_booking
from app.services.cancellation_service import cancel_booking
from app.services.exceptions import (
    BookingAccessDenied,
    BookingInPast,
    ServiceOrUserNotFound,
    SlotUnavailable,
)

from conftest import NOW, SLOT_TIME

LATER = SLOT_TIME + timedelta(hours=2)


@pytest.fixture
async def booking_id(session_maker, catalog, calendar, notifier, clock):
    async with session_maker() as s:
        booking = await allocate_booking(s, catalog.ann, catalog.service, SLOT_TIME, calendar=calendar, notifier=notifier, clock=clock)
    notifier.sent.clear()
    return booking.id


async def test_reschedule_moves_the_reservation(session, booking_id, catalog, calendar, notifier, clock, add_slot, load):
    later_slot = await add_slot(LATER)

    ok = await update_booking(session, booking_id, booking_datetime=LATER, calendar=calendar, notifier=notifier, clock=clock)

    assert ok is True
    assert (await load(Booking, booking_id)).booking_datetime == LATER
    old = await load(TimeSlot, catalog.slot)
    new = await load(TimeSlot, later_slot)
    assert (old.occupied, old.booking_id) == (False, None)
    assert (new.occupied, new.booking_id) == (True, booking_id)


async def test_reschedule_updates_calendar_and_notifies(session, booking_id, calendar, notifier, clock, add_slot):
    await add_slot(LATER)

    await update_booking(session, booking_id, booking_datetime=LATER, calendar=calendar, notifier=notifier, clock=clock)

    [(event_id, title, start, end)] = calendar.updated
    assert event_id == "evt-1"
    assert start == LATER
    assert end == LATER + timedelta(minutes=60)
    [(chat_id, message)] = notifier.sent
    assert chat_id == 1001
    assert "2025-03-01 12:00" in message


async def test_reschedule_to_taken_slot_changes_nothing(session_maker, booking_id, catalog, calendar, notifier, clock, add_slot, load):
    taken = await add_slot(LATER)
    async with session_maker() as s:
        bob_booking = await allocate_booking(s, catalog.bob, catalog.service, LATER, calendar=calendar, notifier=notifier, clock=clock)
    notifier.sent.clear()

    async with session_maker() as s:
        with pytest.raises(SlotUnavailable):
            await update_booking(s, booking_id, booking_datetime=LATER, calendar=calendar, notifier=notifier, clock=clock)

    assert (await load(Booking, booking_id)).booking_datetime == SLOT_TIME
    assert (await load(TimeSlot, catalog.slot)).booking_id == booking_id
    assert (await load(TimeSlot, taken)).booking_id == bob_booking.id
    assert notifier.sent == []


async def test_reschedule_to_time_without_slot(session, booking_id, calendar, notifier, clock):
    with pytest.raises(SlotUnavailable):
        await update_booking(
            session, booking_id, booking_datetime=SLOT_TIME + timedelta(days=30),
            calendar=calendar, notifier=notifier, clock=clock,
        )


async def test_reschedule_into_the_past(session, booking_id, calendar, notifier, clock, add_slot):
    await add_slot(NOW - timedelta(hours=1))

    with pytest.raises(BookingInPast):
        await update_booking(
            session, booking_id, booking_datetime=NOW - timedelta(hours=1),
            calendar=calendar, notifier=notifier, clock=clock,
        )


async def test_notes_only_update_keeps_slot_and_calendar(session, booking_id, catalog, calendar, notifier, clock, load):
    ok = await update_booking(session, booking_id, notes="bring towel", calendar=calendar, notifier=notifier, clock=clock)

    assert ok is True
    stored = await load(Booking, booking_id)
    assert stored.notes == "bring towel"
    assert stored.booking_datetime == SLOT_TIME
    assert (await load(TimeSlot, catalog.slot)).booking_id == booking_id
    assert calendar.updated == []
    assert len(notifier.sent) == 1


async def test_change_service(session_maker, booking_id, calendar, notifier, clock, load):
    async with session_maker() as s:
        hot_stone = Service(name="Hot Stone Massage", price=Decimal("120"), duration_minutes=90)
        s.add(hot_stone)
        await s.commit()

    async with session_maker() as s:
        await update_booking(s, booking_id, service_id=hot_stone.id, calendar=calendar, notifier=notifier, clock=clock)

    assert (await load(Booking, booking_id)).service_id == hot_stone.id
    [(_, title, start, end)] = calendar.updated
    assert title == "Hot Stone Massage"
    assert end - start == timedelta(minutes=90)


async def test_change_to_inactive_service(session, booking_id, catalog, calendar, notifier, clock):
    with pytest.raises(ServiceOrUserNotFound):
        await update_booking(
            session, booking_id, service_id=catalog.retired_service,
            calendar=calendar, notifier=notifier, clock=clock,
        )


async def test_calendar_update_failure_is_not_fatal(session, booking_id, calendar, notifier, clock, add_slot, load):
    await add_slot(LATER)
    calendar.fail_update = True

    assert await update_booking(session, booking_id, booking_datetime=LATER, calendar=calendar, notifier=notifier, clock=clock)
    assert (await load(Booking, booking_id)).booking_datetime == LATER


async def test_cancelled_or_missing_booking_is_not_updated(session_maker, booking_id, calendar, notifier, clock):
    async with session_maker() as s:
        await cancel_booking(s, booking_id, calendar=calendar, clock=clock)

    async with session_maker() as s:
        assert await update_booking(s, booking_id, notes="x", calendar=calendar, notifier=notifier, clock=clock) is False
        assert await update_booking(s, 999, notes="x", calendar=calendar, notifier=notifier, clock=clock) is False


async def test_other_user_cannot_update(session, booking_id, catalog, calendar, notifier, clock):
    with pytest.raises(BookingAccessDenied):
        await update_booking(
            session, booking_id, notes="mine now", requester_user_id=catalog.bob,
            calendar=calendar, notifier=notifier, clock=clock,
        )
