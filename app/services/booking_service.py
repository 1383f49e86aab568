from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_naive_now
from app.models.booking import Booking, BookingStatus
from app.models.service import Service
from app.models.user import User


async def get_booking(session: AsyncSession, booking_id: int) -> Booking | None:
    return await session.get(Booking, booking_id)


async def lock_booking(session: AsyncSession, booking_id: int) -> Booking | None:
    result = await session.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_live_duplicate(
    session: AsyncSession,
    user_id: int,
    service_id: int,
    booking_datetime: datetime,
    exclude_id: int | None = None,
) -> Booking | None:
    """A non-cancelled booking with the same (user, service, time), e.g. from a double tap."""
    q = select(Booking).where(
        Booking.user_id == user_id,
        Booking.service_id == service_id,
        Booking.booking_datetime == booking_datetime,
        Booking.status != BookingStatus.cancelled,
    )
    if exclude_id is not None:
        q = q.where(Booking.id != exclude_id)
    result = await session.execute(q.limit(1))
    return result.scalar_one_or_none()


async def list_bookings(
    session: AsyncSession,
    user_id: int | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
) -> list[tuple[Booking, User, Service]]:
    q = (
        select(Booking, User, Service)
        .join(User, User.id == Booking.user_id)
        .join(Service, Service.id == Booking.service_id)
        .order_by(Booking.booking_datetime)
    )
    if user_id is not None:
        q = q.where(Booking.user_id == user_id)
    if from_dt is not None:
        q = q.where(Booking.booking_datetime >= from_dt)
    if to_dt is not None:
        q = q.where(Booking.booking_datetime <= to_dt)
    result = await session.execute(q)
    return [(b, u, s) for b, u, s in result.all()]


async def record_side_effects(
    session: AsyncSession,
    booking_id: int,
    clock: Clock = utc_naive_now,
    **values,
) -> None:
    """Follow-up write of calendar/notification outcomes after the reservation commit."""
    if not values:
        return
    await session.execute(
        update(Booking)
        .where(Booking.id == booking_id)
        .values(updated_at=clock(), **values)
    )
