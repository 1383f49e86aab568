from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.models.user import UserPublic, UserUpsert
from app.services.catalog_service import get_or_create_user

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/telegram/{telegram_user_id}", response_model=UserPublic)
async def register_chat_user(
    telegram_user_id: int,
    body: UserUpsert,
    session: AsyncSession = Depends(get_session),
) -> UserPublic:
    """First contact from the chat bot: create the user or refresh their profile."""
    user = await get_or_create_user(session, telegram_user_id, body)
    return UserPublic.model_validate(user, from_attributes=True)
