from app.models.user import User, UserPublic, UserUpsert
from app.models.service import Service, ServicePublic
from app.models.slot import TimeSlot, TimeSlotPublic
from app.models.booking import Booking, BookingAdminPublic, BookingPublic, BookingStatus

__all__ = [
    "User",
    "UserPublic",
    "UserUpsert",
    "Service",
    "ServicePublic",
    "TimeSlot",
    "TimeSlotPublic",
    "Booking",
    "BookingAdminPublic",
    "BookingPublic",
    "BookingStatus",
]
