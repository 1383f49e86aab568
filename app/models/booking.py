from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    booking_datetime: datetime = Field(index=True)
    status: BookingStatus = Field(default=BookingStatus.confirmed, index=True)
    external_event_id: str | None = None
    # Delivery bookkeeping. The reminder flags only ever go false -> true.
    confirmation_sent: bool = False
    reminder_24h_sent: bool = False
    reminder_2h_sent: bool = False
    notes: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime | None = None


class BookingPublic(SQLModel):
    id: int
    user_id: int
    service_id: int
    booking_datetime: datetime
    status: BookingStatus
    external_event_id: str | None = None
    confirmation_sent: bool
    reminder_24h_sent: bool
    reminder_2h_sent: bool
    notes: str | None = None
    created_at: datetime


class BookingAdminPublic(SQLModel):
    id: int
    user_id: int
    user_name: str
    service_id: int
    service_name: str
    booking_datetime: datetime
    status: BookingStatus
    notes: str | None = None
