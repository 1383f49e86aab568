from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class TimeSlot(SQLModel, table=True):
    """A bookable interval [start_time, end_time).

    occupied implies booking_id points at a Confirmed booking. booking_id is a
    back-reference only; the slot does not own the booking.
    """

    __tablename__ = "time_slots"
    id: int | None = Field(default=None, primary_key=True)
    start_time: datetime = Field(unique=True, index=True)
    end_time: datetime
    available: bool = True
    occupied: bool = False
    # unique: one slot per live booking
    booking_id: int | None = Field(default=None, unique=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)

    @property
    def bookable(self) -> bool:
        return self.available and not self.occupied


class TimeSlotPublic(SQLModel):
    id: int
    start_time: datetime
    end_time: datetime
    available: bool
    occupied: bool
