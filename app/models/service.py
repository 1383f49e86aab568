from datetime import UTC, datetime
from decimal import Decimal

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class ServiceBase(SQLModel):
    name: str
    description: str = ""
    price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    duration_minutes: int
    is_active: bool = True


class Service(ServiceBase, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)


class ServicePublic(ServiceBase):
    id: int
