import pytest

from app.models.booking import Booking, BookingStatus
from app.models.slot import TimeSlot
from app.services.allocation_service import allocate_booking
from app.services.cancellation_service import cancel_booking
from app.services.exceptions import BookingAccessDenied

from conftest import SLOT_TIME


@pytest.fixture
async def booking_id(session_maker, catalog, calendar, notifier, clock):
    async with session_maker() as s:
        booking = await allocate_booking(s, catalog.ann, catalog.service, SLOT_TIME, calendar=calendar, notifier=notifier, clock=clock)
    return booking.id


async def test_cancel_releases_slot(session, booking_id, catalog, calendar, clock, load):
    assert await cancel_booking(session, booking_id, calendar=calendar, clock=clock) is True

    stored = await load(Booking, booking_id)
    assert stored.status == BookingStatus.cancelled
    slot = await load(TimeSlot, catalog.slot)
    assert slot.occupied is False
    assert slot.booking_id is None


async def test_cancel_deletes_calendar_event(session, booking_id, calendar, clock, load):
    await cancel_booking(session, booking_id, calendar=calendar, clock=clock)

    assert calendar.deleted == ["evt-1"]
    assert (await load(Booking, booking_id)).external_event_id is None


async def test_calendar_failure_does_not_block_cancellation(session, booking_id, catalog, calendar, clock, load):
    calendar.fail_delete = True

    assert await cancel_booking(session, booking_id, calendar=calendar, clock=clock) is True

    stored = await load(Booking, booking_id)
    assert stored.status == BookingStatus.cancelled
    # kept so the orphaned event can still be found
    assert stored.external_event_id == "evt-1"
    assert (await load(TimeSlot, catalog.slot)).occupied is False


async def test_second_cancel_is_a_no_op(session_maker, booking_id, catalog, calendar, clock, load):
    async with session_maker() as s:
        assert await cancel_booking(s, booking_id, calendar=calendar, clock=clock) is True
    async with session_maker() as s:
        assert await cancel_booking(s, booking_id, calendar=calendar, clock=clock) is False

    assert calendar.deleted == ["evt-1"]
    slot = await load(TimeSlot, catalog.slot)
    assert slot.occupied is False
    assert slot.booking_id is None


async def test_unknown_booking(session, catalog, calendar, clock):
    assert await cancel_booking(session, 12345, calendar=calendar, clock=clock) is False


async def test_other_user_cannot_cancel(session, booking_id, catalog, calendar, clock, load):
    with pytest.raises(BookingAccessDenied):
        await cancel_booking(session, booking_id, catalog.bob, calendar=calendar, clock=clock)

    assert (await load(Booking, booking_id)).status == BookingStatus.confirmed
    assert (await load(TimeSlot, catalog.slot)).occupied is True


async def test_owner_can_cancel(session, booking_id, catalog, calendar, clock):
    assert await cancel_booking(session, booking_id, catalog.ann, calendar=calendar, clock=clock) is True


async def test_released_slot_can_be_booked_again(session_maker, booking_id, catalog, calendar, notifier, clock, load):
    async with session_maker() as s:
        await cancel_booking(s, booking_id, calendar=calendar, clock=clock)
    async with session_maker() as s:
        again = await allocate_booking(s, catalog.bob, catalog.service, SLOT_TIME, calendar=calendar, notifier=notifier, clock=clock)

    assert (await load(TimeSlot, catalog.slot)).booking_id == again.id
