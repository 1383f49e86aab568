from datetime import UTC, datetime

from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class UserBase(SQLModel):
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    # Telegram ids exceed 32 bits
    telegram_user_id: int = Field(sa_column=Column(BigInteger, unique=True, index=True, nullable=False))
    created_at: datetime = Field(default_factory=_utc_naive_now)

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.username or f"user {self.telegram_user_id}"


class UserUpsert(UserBase):
    pass


class UserPublic(UserBase):
    id: int
    telegram_user_id: int
