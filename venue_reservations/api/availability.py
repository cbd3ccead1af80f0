from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.database import get_db
from venue_reservations.schemas.availability import AreaAvailability
from venue_reservations.services.availability_service import AvailabilityService
from venue_reservations.services.reservation_service import ReservationService

router = APIRouter(prefix="/v1/availability", tags=["availability"])


@router.get("", response_model=list[AreaAvailability])
async def get_availability(
    unit_id: Optional[str] = Query(default=None),
    unit: Optional[str] = Query(default=None, description="Unit slug or name"),
    area_id: Optional[list[str]] = Query(default=None),
    date_: Optional[date] = Query(default=None, alias="date"),
    time_: Optional[time] = Query(default=None, alias="time"),
    db: AsyncSession = Depends(get_db),
):
    """
    Remaining seats per area. Without ``time`` the whole day is reported and
    only ALL_DAY blocks are taken into account.
    """
    resolved = await ReservationService.resolve_unit(db, unit_id, unit)
    return await AvailabilityService.compute_availability(
        db, resolved.id, area_ids=area_id, day=date_, at_time=time_
    )
