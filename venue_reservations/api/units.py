from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import Identity, audit_context, require_admin, require_staff
from venue_reservations.database import get_db
from venue_reservations.schemas.unit import UnitCreate, UnitOption, UnitOut, UnitPage, UnitUpdate
from venue_reservations.services.audit_service import log_action
from venue_reservations.services.unit_service import UnitService

router = APIRouter(prefix="/v1/units", tags=["units"])


@router.get("/public/options", response_model=list[UnitOption])
async def public_unit_options(db: AsyncSession = Depends(get_db)):
    return await UnitService.list_public_options(db)


@router.get("", response_model=UnitPage)
async def list_units(
    search: Optional[str] = Query(default=None),
    active: Optional[bool] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    items, total = await UnitService.list_units(db, search, active, page, page_size)
    return UnitPage(items=items, total=total, page=page, page_size=page_size)


@router.get("/{unit_id}", response_model=UnitOut)
async def get_unit(
    unit_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await UnitService.get_unit(db, unit_id)


@router.post("", response_model=UnitOut, status_code=201)
async def create_unit(
    payload: UnitCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    unit = await UnitService.create_unit(db, payload)
    out = UnitOut.model_validate(unit)
    await log_action(
        db, "unit", "CREATE", unit.id,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.put("/{unit_id}", response_model=UnitOut)
async def update_unit(
    unit_id: str,
    payload: UnitUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    before = UnitOut.model_validate(await UnitService.get_unit(db, unit_id)).model_dump(mode="json")
    unit = await UnitService.update_unit(db, unit_id, payload)
    out = UnitOut.model_validate(unit)
    await log_action(
        db, "unit", "UPDATE", unit.id,
        old_data=before,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.delete("/{unit_id}", status_code=204)
async def delete_unit(
    unit_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    unit = await UnitService.delete_unit(db, unit_id)
    await log_action(
        db, "unit", "DELETE", unit_id,
        old_data=UnitOut.model_validate(unit).model_dump(mode="json"),
        context=audit_context(request, identity),
    )
