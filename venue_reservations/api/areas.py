from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import Identity, audit_context, require_admin, require_staff
from venue_reservations.database import get_db
from venue_reservations.schemas.area import AreaCreate, AreaOut, AreaPage, AreaUpdate
from venue_reservations.schemas.availability import AreaAvailability
from venue_reservations.services.audit_service import log_action
from venue_reservations.services.area_service import AreaService
from venue_reservations.services.availability_service import AvailabilityService
from venue_reservations.services.unit_service import UnitService

router = APIRouter(prefix="/v1/areas", tags=["areas"])


@router.get("/public/by-unit/{unit_id}", response_model=list[AreaAvailability])
async def public_areas_by_unit(
    unit_id: str,
    date_: Optional[date] = Query(default=None, alias="date"),
    time_: Optional[time] = Query(default=None, alias="time"),
    db: AsyncSession = Depends(get_db),
):
    """Active areas of a unit; with ``date`` (and optionally ``time``) includes remaining seats."""
    await UnitService.get_unit(db, unit_id)
    return await AvailabilityService.compute_availability(db, unit_id, day=date_, at_time=time_)


@router.get("", response_model=AreaPage)
async def list_areas(
    unit_id: Optional[str] = Query(default=None),
    active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    items, total = await AreaService.list_areas(db, unit_id, active, search, page, page_size)
    return AreaPage(items=items, total=total, page=page, page_size=page_size)


@router.get("/{area_id}", response_model=AreaOut)
async def get_area(
    area_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await AreaService.get_area(db, area_id)


@router.post("", response_model=AreaOut, status_code=201)
async def create_area(
    payload: AreaCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    area = await AreaService.create_area(db, payload)
    out = AreaOut.model_validate(area)
    await log_action(
        db, "area", "CREATE", area.id,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.put("/{area_id}", response_model=AreaOut)
async def update_area(
    area_id: str,
    payload: AreaUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    before = AreaOut.model_validate(await AreaService.get_area(db, area_id)).model_dump(mode="json")
    area = await AreaService.update_area(db, area_id, payload)
    out = AreaOut.model_validate(area)
    await log_action(
        db, "area", "UPDATE", area.id,
        old_data=before,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.delete("/{area_id}", status_code=204)
async def delete_area(
    area_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    area = await AreaService.delete_area(db, area_id)
    await log_action(
        db, "area", "DELETE", area_id,
        old_data=AreaOut.model_validate(area).model_dump(mode="json"),
        context=audit_context(request, identity),
    )
