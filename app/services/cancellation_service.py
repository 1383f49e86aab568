import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_naive_now
from app.models.booking import BookingStatus
from app.services.booking_service import lock_booking, record_side_effects
from app.services.calendar_service import CalendarAdapter
from app.services.exceptions import BookingAccessDenied
from app.services.slot_service import lock_slot_for_booking, release

logger = logging.getLogger(__name__)


async def cancel_booking(
    session: AsyncSession,
    booking_id: int,
    requester_user_id: int | None = None,
    *,
    calendar: CalendarAdapter,
    clock: Clock = utc_naive_now,
) -> bool:
    """Soft-cancel a booking and release its slot.

    Returns False when the booking does not exist or is already cancelled.
    requester_user_id is checked against the owner for end-user callers; admin
    callers pass None. The local state change is authoritative: calendar deletion
    happens after commit and its failure is only logged.
    """
    try:
        booking = await lock_booking(session, booking_id)
        if booking is None or booking.status == BookingStatus.cancelled:
            return False
        if requester_user_id is not None and booking.user_id != requester_user_id:
            raise BookingAccessDenied(f"Booking {booking_id} does not belong to user {requester_user_id}")

        slot = await lock_slot_for_booking(session, booking_id)
        booking.status = BookingStatus.cancelled
        booking.updated_at = clock()
        if slot is not None:
            release(slot)
        else:
            logger.warning("Booking %s had no slot to release", booking_id)
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Booking %s cancelled", booking_id)

    event_id = booking.external_event_id
    if event_id:
        try:
            await calendar.delete_event(event_id)
        except Exception:
            logger.warning("Failed to delete calendar event %s for booking %s", event_id, booking_id, exc_info=True)
        else:
            try:
                await record_side_effects(session, booking_id, clock, external_event_id=None)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("Failed to clear calendar event id for booking %s", booking_id)
    return True
