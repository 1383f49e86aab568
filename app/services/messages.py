from datetime import datetime, timedelta

from app.models.service import Service
from app.models.user import User


def _fmt(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")


def _price(service: Service) -> str:
    return f"${service.price:.2f}"


def calendar_event_title(service: Service) -> str:
    return service.name


def calendar_event_body(user: User) -> str:
    lines = [f"Client: {user.display_name}"]
    if user.phone_number:
        lines.append(f"Phone: {user.phone_number}")
    if user.username:
        lines.append(f"Telegram: @{user.username}")
    return "\n".join(lines)


def event_end(start: datetime, service: Service) -> datetime:
    return start + timedelta(minutes=service.duration_minutes)


def confirmation_message(service: Service, booking_datetime: datetime) -> str:
    return (
        "✅ Booking confirmed!\n\n"
        f"Service: {service.name}\n"
        f"Date: {_fmt(booking_datetime)}\n"
        f"Duration: {service.duration_minutes} min\n"
        f"Price: {_price(service)}"
    )


def update_message(service: Service, booking_datetime: datetime) -> str:
    return (
        "📅 Booking updated!\n\n"
        f"Service: {service.name}\n"
        f"New date: {_fmt(booking_datetime)}\n"
        f"Duration: {service.duration_minutes} min"
    )


def reminder_message(lead: str, service: Service, booking_datetime: datetime) -> str:
    return (
        f"⏰ Reminder: your appointment is in {lead}!\n\n"
        f"Service: {service.name}\n"
        f"Date: {_fmt(booking_datetime)}\n"
        f"Duration: {service.duration_minutes} min"
    )
