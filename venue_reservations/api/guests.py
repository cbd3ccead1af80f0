from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import Identity, require_staff
from venue_reservations.database import get_db
from venue_reservations.schemas.guest import GuestBulkCreate, GuestBulkResult, GuestCreate, GuestOut
from venue_reservations.services.guest_service import GuestService

router = APIRouter(prefix="/v1/reservations/{reservation_id}/guests", tags=["guests"])


@router.get("", response_model=list[GuestOut])
async def list_guests(
    reservation_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await GuestService.list_guests(db, reservation_id)


@router.post("", response_model=GuestOut, status_code=201)
async def add_guest(
    reservation_id: str,
    payload: GuestCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await GuestService.add_guest(db, reservation_id, payload)


@router.post("/bulk", response_model=GuestBulkResult)
async def add_guests_bulk(
    reservation_id: str,
    payload: GuestBulkCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    created, skipped = await GuestService.add_guests_bulk(db, reservation_id, payload.guests)
    return GuestBulkResult(created=created, skipped=skipped)


@router.delete("/{guest_id}", status_code=204)
async def delete_guest(
    reservation_id: str,
    guest_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    await GuestService.delete_guest(db, reservation_id, guest_id)
