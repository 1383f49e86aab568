import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_calendar, get_clock, get_notifier, get_session
from app.api.schemas.booking import BookRequest, UpdateBookingRequest
from app.core.clock import Clock
from app.models.booking import Booking, BookingAdminPublic, BookingPublic
from app.services.allocation_service import allocate_booking, update_booking
from app.services.booking_service import get_booking, list_bookings
from app.services.calendar_service import CalendarAdapter
from app.services.cancellation_service import cancel_booking
from app.services.exceptions import (
    BookingAccessDenied,
    BookingError,
    BookingInPast,
    BookingNotFound,
    DuplicateBooking,
    ServiceOrUserNotFound,
    SlotUnavailable,
)
from app.services.notification_service import Notifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])

_STATUS_BY_ERROR: dict[type[BookingError], int] = {
    SlotUnavailable: status.HTTP_409_CONFLICT,
    DuplicateBooking: status.HTTP_409_CONFLICT,
    ServiceOrUserNotFound: status.HTTP_404_NOT_FOUND,
    BookingNotFound: status.HTTP_404_NOT_FOUND,
    BookingInPast: status.HTTP_400_BAD_REQUEST,
    BookingAccessDenied: status.HTTP_403_FORBIDDEN,
}

_ERROR_DETAIL: dict[type[BookingError], str] = {
    SlotUnavailable: "Slot not available. Please pick another time.",
    DuplicateBooking: "You already have this booking.",
    ServiceOrUserNotFound: "Service or user not found.",
    BookingNotFound: "Booking not found.",
    BookingInPast: "Cannot book appointments in the past.",
    BookingAccessDenied: "Not authorized to change this booking.",
}


def _http_error(exc: BookingError) -> HTTPException:
    kind = type(exc)
    return HTTPException(
        status_code=_STATUS_BY_ERROR.get(kind, status.HTTP_400_BAD_REQUEST),
        detail=_ERROR_DETAIL.get(kind, str(exc)),
    )


def _to_public(b: Booking) -> BookingPublic:
    return BookingPublic.model_validate(b, from_attributes=True)


@router.post("", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def book(
    body: BookRequest,
    session: AsyncSession = Depends(get_session),
    calendar: CalendarAdapter = Depends(get_calendar),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    try:
        booking = await allocate_booking(
            session,
            body.user_id,
            body.service_id,
            body.booking_datetime,
            body.notes,
            calendar=calendar,
            notifier=notifier,
            clock=clock,
        )
    except BookingError as e:
        logger.info("Booking request rejected: %s", e)
        raise _http_error(e) from e
    return _to_public(booking)


@router.get("", response_model=list[BookingAdminPublic])
async def list_all_bookings(
    user_id: int | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[BookingAdminPublic]:
    from_dt = datetime.combine(from_date, time.min) if from_date else None
    # to_date is inclusive of the whole day
    to_dt = datetime.combine(to_date, time.min) + timedelta(days=1) - timedelta(microseconds=1) if to_date else None
    rows = await list_bookings(session, user_id=user_id, from_dt=from_dt, to_dt=to_dt)
    return [
        BookingAdminPublic(
            id=b.id,
            user_id=b.user_id,
            user_name=u.display_name,
            service_id=b.service_id,
            service_name=s.name,
            booking_datetime=b.booking_datetime,
            status=b.status,
            notes=b.notes,
        )
        for b, u, s in rows
    ]


@router.get("/{booking_id}", response_model=BookingPublic)
async def get_one_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    booking = await get_booking(session, booking_id)
    if booking is None:
        raise _http_error(BookingNotFound(str(booking_id)))
    return _to_public(booking)


@router.patch("/{booking_id}", response_model=BookingPublic)
async def reschedule(
    booking_id: int,
    body: UpdateBookingRequest,
    session: AsyncSession = Depends(get_session),
    calendar: CalendarAdapter = Depends(get_calendar),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    try:
        ok = await update_booking(
            session,
            booking_id,
            booking_datetime=body.booking_datetime,
            service_id=body.service_id,
            notes=body.notes,
            requester_user_id=body.requester_user_id,
            calendar=calendar,
            notifier=notifier,
            clock=clock,
        )
    except BookingError as e:
        logger.info("Update of booking %s rejected: %s", booking_id, e)
        raise _http_error(e) from e
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found or already cancelled",
        )
    booking = await get_booking(session, booking_id)
    return _to_public(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel(
    booking_id: int,
    requester_user_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    calendar: CalendarAdapter = Depends(get_calendar),
    clock: Clock = Depends(get_clock),
) -> None:
    try:
        ok = await cancel_booking(session, booking_id, requester_user_id, calendar=calendar, clock=clock)
    except BookingError as e:
        raise _http_error(e) from e
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found or already cancelled",
        )
