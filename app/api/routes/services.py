from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.models.service import ServicePublic
from app.services.catalog_service import list_services

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=list[ServicePublic])
async def get_services(
    active_only: bool = Query(True, description="Leave out services that are no longer offered"),
    session: AsyncSession = Depends(get_session),
) -> list[ServicePublic]:
    services = await list_services(session, active_only=active_only)
    return [ServicePublic.model_validate(s, from_attributes=True) for s in services]
