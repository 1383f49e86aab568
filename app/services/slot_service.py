from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_naive_now
from app.core.config import settings
from app.models.slot import TimeSlot


def _slot_times_for_date(d: date) -> list[datetime]:
    """Generate slot start times as naive UTC for the given date (business hours)."""
    slots: list[datetime] = []
    start = datetime(d.year, d.month, d.day, settings.business_start_hour, 0, 0)
    end = datetime(d.year, d.month, d.day, settings.business_end_hour, 0, 0)
    delta = timedelta(minutes=settings.slot_duration_minutes)
    current = start
    while current + delta <= end:
        slots.append(current)
        current += delta
    return slots


async def ensure_slot_horizon(
    session: AsyncSession, days: int, clock: Clock = utc_naive_now
) -> int:
    """Create missing slots for each of the next `days` days, starting tomorrow.
    Existing start times are left alone. Returns the number of slots created."""
    today = clock().date()
    wanted: list[datetime] = []
    for offset in range(1, days + 1):
        wanted.extend(_slot_times_for_date(today + timedelta(days=offset)))
    if not wanted:
        return 0
    result = await session.execute(
        select(TimeSlot.start_time).where(
            TimeSlot.start_time >= wanted[0],
            TimeSlot.start_time <= wanted[-1],
        )
    )
    existing = {row[0] for row in result.all()}
    duration = timedelta(minutes=settings.slot_duration_minutes)
    created = 0
    for start in wanted:
        if start in existing:
            continue
        session.add(TimeSlot(start_time=start, end_time=start + duration))
        created += 1
    await session.flush()
    return created


async def get_slots_for_date(session: AsyncSession, d: date) -> list[TimeSlot]:
    start = datetime(d.year, d.month, d.day, 0, 0, 0)
    end = start + timedelta(days=1)
    result = await session.execute(
        select(TimeSlot)
        .where(TimeSlot.start_time >= start, TimeSlot.start_time < end)
        .order_by(TimeSlot.start_time)
    )
    return list(result.scalars().all())


async def lock_free_slot(session: AsyncSession, start_time: datetime) -> TimeSlot | None:
    """Select the bookable slot starting at start_time FOR UPDATE.

    Every caller re-reads here; slot occupancy is never cached."""
    result = await session.execute(
        select(TimeSlot)
        .where(
            TimeSlot.start_time == start_time,
            TimeSlot.available == True,  # noqa: E712
            TimeSlot.occupied == False,  # noqa: E712
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_slot_for_booking(session: AsyncSession, booking_id: int) -> TimeSlot | None:
    result = await session.execute(
        select(TimeSlot)
        .where(TimeSlot.booking_id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def occupy(slot: TimeSlot, booking_id: int) -> None:
    slot.occupied = True
    slot.booking_id = booking_id


def release(slot: TimeSlot) -> None:
    slot.occupied = False
    slot.booking_id = None
