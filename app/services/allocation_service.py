"""Reserve slots for bookings and move existing bookings to new slots.

Both flows write inside one transaction that holds the slot row lock, commit,
and only then talk to the calendar and the chat channel. Nothing after the
commit can undo the reservation.
"""
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, to_naive_utc, utc_naive_now
from app.models.booking import Booking, BookingStatus
from app.models.service import Service
from app.models.user import User
from app.services import messages
from app.services.booking_service import find_live_duplicate, lock_booking, record_side_effects
from app.services.calendar_service import CalendarAdapter
from app.services.catalog_service import get_service, get_user
from app.services.exceptions import (
    BookingAccessDenied,
    BookingInPast,
    DuplicateBooking,
    ServiceOrUserNotFound,
    SlotUnavailable,
)
from app.services.notification_service import Notifier, deliver
from app.services.slot_service import lock_free_slot, lock_slot_for_booking, occupy, release

logger = logging.getLogger(__name__)


async def _create_calendar_event(
    calendar: CalendarAdapter, booking: Booking, service: Service, user: User
) -> str | None:
    try:
        return await calendar.create_event(
            messages.calendar_event_title(service),
            messages.calendar_event_body(user),
            booking.booking_datetime,
            messages.event_end(booking.booking_datetime, service),
        )
    except Exception:
        logger.warning("Failed to create calendar event for booking %s", booking.id, exc_info=True)
        return None


async def allocate_booking(
    session: AsyncSession,
    user_id: int,
    service_id: int,
    booking_datetime: datetime,
    notes: str | None = None,
    *,
    calendar: CalendarAdapter,
    notifier: Notifier,
    clock: Clock = utc_naive_now,
) -> Booking:
    """Reserve the slot starting at booking_datetime and create a Confirmed booking.

    Raises ServiceOrUserNotFound, BookingInPast, DuplicateBooking or
    SlotUnavailable, in which case nothing is written. Calendar and confirmation
    failures are logged and leave the booking in place. The returned booking is
    detached from the session.
    """
    when = to_naive_utc(booking_datetime)
    try:
        service = await get_service(session, service_id)
        user = await get_user(session, user_id)
        if service is None or not service.is_active or user is None:
            raise ServiceOrUserNotFound(f"Service {service_id} or user {user_id} not found")
        if when <= clock():
            raise BookingInPast(f"{when.isoformat()} is not in the future")

        if await find_live_duplicate(session, user_id, service_id, when):
            raise DuplicateBooking(f"User {user_id} already booked service {service_id} at {when.isoformat()}")
        slot = await lock_free_slot(session, when)
        if slot is None:
            raise SlotUnavailable(f"No free slot at {when.isoformat()}")

        booking = Booking(
            user_id=user_id,
            service_id=service_id,
            booking_datetime=when,
            status=BookingStatus.confirmed,
            notes=notes,
        )
        session.add(booking)
        await session.flush()
        occupy(slot, booking.id)
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Booking %s reserved slot %s for user %s", booking.id, slot.id, user_id)
    # The follow-up write below must not touch this object if it fails and rolls back
    session.expunge(booking)

    values: dict = {}
    event_id = await _create_calendar_event(calendar, booking, service, user)
    if event_id:
        values["external_event_id"] = event_id
    if await deliver(
        notifier,
        user.telegram_user_id,
        messages.confirmation_message(service, when),
        purpose="confirmation",
        booking_id=booking.id,
    ):
        values["confirmation_sent"] = True

    if values:
        try:
            await record_side_effects(session, booking.id, clock, **values)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to record side effects %s for booking %s", sorted(values), booking.id)
        else:
            for field, value in values.items():
                setattr(booking, field, value)
    return booking


async def update_booking(
    session: AsyncSession,
    booking_id: int,
    *,
    booking_datetime: datetime | None = None,
    service_id: int | None = None,
    notes: str | None = None,
    requester_user_id: int | None = None,
    calendar: CalendarAdapter,
    notifier: Notifier,
    clock: Clock = utc_naive_now,
) -> bool:
    """Change time, service and/or notes of a live booking.

    A new time takes the same slot lock as allocate_booking: the target slot must
    be free, the old slot is released and the new one occupied in one commit.
    Returns False when the booking does not exist or is cancelled.
    """
    try:
        booking = await lock_booking(session, booking_id)
        if booking is None or booking.status == BookingStatus.cancelled:
            return False
        if requester_user_id is not None and booking.user_id != requester_user_id:
            raise BookingAccessDenied(f"Booking {booking_id} does not belong to user {requester_user_id}")

        new_when = to_naive_utc(booking_datetime) if booking_datetime is not None else booking.booking_datetime
        new_service_id = service_id if service_id is not None else booking.service_id
        time_changed = new_when != booking.booking_datetime
        service_changed = new_service_id != booking.service_id

        service = await get_service(session, new_service_id)
        if service is None or (service_changed and not service.is_active):
            raise ServiceOrUserNotFound(f"Service {new_service_id} not found")
        user = await get_user(session, booking.user_id)
        if user is None:
            raise ServiceOrUserNotFound(f"User {booking.user_id} not found")

        if time_changed and new_when <= clock():
            raise BookingInPast(f"{new_when.isoformat()} is not in the future")
        if (time_changed or service_changed) and await find_live_duplicate(
            session, booking.user_id, new_service_id, new_when, exclude_id=booking.id
        ):
            raise DuplicateBooking(
                f"User {booking.user_id} already booked service {new_service_id} at {new_when.isoformat()}"
            )

        if time_changed:
            target = await lock_free_slot(session, new_when)
            if target is None:
                raise SlotUnavailable(f"No free slot at {new_when.isoformat()}")
            current = await lock_slot_for_booking(session, booking.id)
            if current is not None:
                release(current)
                # booking_id is unique across slots; clear it before re-pointing
                await session.flush()
            occupy(target, booking.id)

        booking.booking_datetime = new_when
        booking.service_id = new_service_id
        if notes is not None:
            booking.notes = notes
        booking.updated_at = clock()
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Booking %s updated (time_changed=%s, service_changed=%s)", booking_id, time_changed, service_changed)

    if (time_changed or service_changed) and booking.external_event_id:
        try:
            await calendar.update_event(
                booking.external_event_id,
                messages.calendar_event_title(service),
                messages.calendar_event_body(user),
                new_when,
                messages.event_end(new_when, service),
            )
        except Exception:
            logger.warning(
                "Failed to update calendar event %s for booking %s",
                booking.external_event_id,
                booking_id,
                exc_info=True,
            )

    await deliver(
        notifier,
        user.telegram_user_id,
        messages.update_message(service, new_when),
        purpose="update notification",
        booking_id=booking_id,
    )
    return True
