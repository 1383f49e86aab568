from datetime import datetime

from pydantic import BaseModel, Field

from app.core.config import settings


class BookRequest(BaseModel):
    user_id: int = Field(gt=0)
    service_id: int = Field(gt=0)
    booking_datetime: datetime
    notes: str | None = Field(default=None, max_length=settings.notes_max_length)


class UpdateBookingRequest(BaseModel):
    booking_datetime: datetime | None = None
    service_id: int | None = Field(default=None, gt=0)
    notes: str | None = Field(default=None, max_length=settings.notes_max_length)
    # Set by end-user surfaces; admin callers leave it out
    requester_user_id: int | None = None
