"""Periodic reminder delivery.

Each reminder kind scans a window relative to now, not a point in time, so a
booking is picked up by whichever run happens while it is inside the window.
A failed send leaves the flag false and the next run retries it, but only while
the booking is still inside the window. A booking that is never visited inside
its window (the job was down, or the booking was made later than the window
start) never gets that reminder. There is no catch-up after the window closes.

The job must run as a single instance: two concurrent runners can both read a
booking before either sets its flag, and both would send.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_naive_now
from app.models.booking import Booking, BookingStatus
from app.models.service import Service
from app.models.user import User
from app.services import messages
from app.services.notification_service import Notifier, deliver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderKind:
    name: str
    flag: str  # Booking attribute that records delivery
    earliest: timedelta
    latest: timedelta
    lead: str  # human wording of the lead time


REMINDER_24H = ReminderKind(
    name="24h",
    flag="reminder_24h_sent",
    earliest=timedelta(hours=23),
    latest=timedelta(hours=25),
    lead="24 hours",
)
REMINDER_2H = ReminderKind(
    name="2h",
    flag="reminder_2h_sent",
    earliest=timedelta(hours=1, minutes=30),
    latest=timedelta(hours=2, minutes=30),
    lead="2 hours",
)
REMINDER_KINDS = (REMINDER_24H, REMINDER_2H)


async def run_reminder_pass(
    session: AsyncSession,
    kind: ReminderKind,
    notifier: Notifier,
    clock: Clock = utc_naive_now,
) -> int:
    """Send one kind of reminder to every due booking. Returns how many were delivered."""
    now = clock()
    flag = getattr(Booking, kind.flag)
    result = await session.execute(
        select(Booking, User, Service)
        .join(User, User.id == Booking.user_id)
        .join(Service, Service.id == Booking.service_id)
        .where(
            Booking.status == BookingStatus.confirmed,
            flag == False,  # noqa: E712
            Booking.booking_datetime >= now + kind.earliest,
            Booking.booking_datetime <= now + kind.latest,
        )
        .order_by(Booking.booking_datetime)
    )
    due = [(b.id, b.booking_datetime, u.telegram_user_id, s) for b, u, s in result.all()]
    # No transaction stays open while messages go out
    await session.commit()

    sent_ids: list[int] = []
    for booking_id, booking_datetime, chat_id, service in due:
        if await deliver(
            notifier,
            chat_id,
            messages.reminder_message(kind.lead, service, booking_datetime),
            purpose=f"{kind.name} reminder",
            booking_id=booking_id,
        ):
            sent_ids.append(booking_id)

    if sent_ids:
        result = await session.execute(
            update(Booking)
            .where(
                Booking.id.in_(sent_ids),
                Booking.status == BookingStatus.confirmed,
                flag == False,  # noqa: E712
            )
            .values({kind.flag: True})
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        if result.rowcount != len(sent_ids):
            logger.info(
                "%s reminders: %d sent to bookings no longer confirmed, left unflagged",
                kind.name,
                len(sent_ids) - result.rowcount,
            )

    if due:
        logger.info("%s reminders: %d due, %d sent", kind.name, len(due), len(sent_ids))
    return len(sent_ids)


async def run_reminders(
    session: AsyncSession,
    notifier: Notifier,
    clock: Clock = utc_naive_now,
) -> dict[str, int]:
    """One scheduler run: the 24h pass, then the 2h pass. A failing pass is
    rolled back and logged and does not stop the other one."""
    sent: dict[str, int] = {}
    for kind in REMINDER_KINDS:
        try:
            sent[kind.name] = await run_reminder_pass(session, kind, notifier, clock)
        except Exception as e:
            await session.rollback()
            logger.exception("%s reminder pass failed: %s", kind.name, e)
            sent[kind.name] = 0
    return sent
