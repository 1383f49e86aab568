from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.schemas.slot import AvailableSlotsResponse, SlotInfo
from app.services.slot_service import get_slots_for_date

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Return all slots for the given date (UTC). Each slot has start_utc, end_utc, and available (bool)."""
    slots = await get_slots_for_date(session, date_param)
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        slots=[SlotInfo(start_utc=s.start_time, end_utc=s.end_time, available=s.bookable) for s in slots],
    )
