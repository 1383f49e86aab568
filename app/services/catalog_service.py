import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.service import Service
from app.models.user import User, UserUpsert

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    ("Swedish Massage", "Classic relaxation massage with gentle pressure", Decimal("80"), 60),
    ("Deep Tissue Massage", "Intense massage targeting deep muscle layers", Decimal("100"), 60),
    ("Hot Stone Massage", "Relaxing massage using heated stones", Decimal("120"), 90),
    ("Sports Massage", "Therapeutic massage for athletes and active individuals", Decimal("90"), 60),
    ("Aromatherapy Massage", "Gentle massage with essential oils", Decimal("110"), 75),
]


async def get_service(session: AsyncSession, service_id: int) -> Service | None:
    return await session.get(Service, service_id)


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def list_services(session: AsyncSession, active_only: bool = True) -> list[Service]:
    q = select(Service).order_by(Service.id)
    if active_only:
        q = q.where(Service.is_active == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def seed_services(session: AsyncSession) -> int:
    """Insert the default catalog when the services table is empty."""
    count = await session.scalar(select(func.count()).select_from(Service))
    if count:
        return 0
    for name, description, price, duration in DEFAULT_SERVICES:
        session.add(
            Service(
                name=name,
                description=description,
                price=price,
                duration_minutes=duration,
                is_active=True,
            )
        )
    await session.flush()
    return len(DEFAULT_SERVICES)


async def get_or_create_user(
    session: AsyncSession, telegram_user_id: int, data: UserUpsert | None = None
) -> User:
    """First contact from the chat layer. Profile fields are refreshed when supplied."""
    result = await session.execute(select(User).where(User.telegram_user_id == telegram_user_id))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(telegram_user_id=telegram_user_id)
        logger.info("Registering new user for telegram id %s", telegram_user_id)
    if data is not None:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user
