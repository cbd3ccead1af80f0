from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import (
    Identity,
    audit_context,
    require_admin,
    require_staff,
    strip_admin_only_fields,
)
from venue_reservations.database import get_db
from venue_reservations.models import ReservationStatus
from venue_reservations.schemas.reservation import (
    CheckinByToken,
    ReservationCreate,
    ReservationOut,
    ReservationPage,
    ReservationPublicOut,
    ReservationStatusOut,
    ReservationStatusUpdate,
    ReservationUpdate,
)
from venue_reservations.services.audit_service import log_action
from venue_reservations.services.notification_service import (
    ReservationTicket,
    notification_service,
)
from venue_reservations.services.reservation_service import ReservationService

router = APIRouter(prefix="/v1/reservations", tags=["reservations"])


def _snapshot(reservation) -> dict:
    return ReservationOut.model_validate(reservation).model_dump(mode="json")


@router.get("", response_model=ReservationPage)
async def list_reservations(
    search: Optional[str] = Query(default=None),
    unit_id: Optional[str] = Query(default=None),
    area_id: Optional[str] = Query(default=None),
    status: Optional[ReservationStatus] = Query(default=None),
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=20, ge=1),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    items, total = await ReservationService.list_reservations(
        db, search, unit_id, area_id, status, date_from, date_to, skip, take
    )
    return ReservationPage(items=items, total=total, skip=skip, take=min(take, 100))


@router.get("/lookup/{code}", response_model=ReservationOut)
async def lookup_by_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await ReservationService.lookup_by_code(db, code)


@router.get("/checkin/{token}", response_model=ReservationPublicOut)
async def preview_checkin(token: str, db: AsyncSession = Depends(get_db)):
    """Token landing page data. Does not check the reservation in."""
    return await ReservationService.preview_by_token(db, token)


@router.post("/checkin/by-token", response_model=ReservationOut)
async def checkin_by_token(
    payload: CheckinByToken,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    reservation = await ReservationService.check_in_by_token(db, payload.token, identity.user_id)
    out = _snapshot(reservation)
    await log_action(db, "reservation", "CHECKIN", reservation.id, new_data=out,
                     context=audit_context(request, identity))
    return out


@router.post("/code/{code}/renew-qr", response_model=ReservationOut)
async def renew_qr_by_code(
    code: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    reservation = await ReservationService.renew_qr(db, code=code)
    out = _snapshot(reservation)
    await log_action(db, "reservation", "QR_RENEW", reservation.id, new_data=out,
                     context=audit_context(request, identity))
    return out


@router.get("/{reservation_id}/status", response_model=ReservationStatusOut)
async def reservation_status(reservation_id: str, db: AsyncSession = Depends(get_db)):
    """Polled by the booking page while the guest waits at the door."""
    return await ReservationService.get_reservation(db, reservation_id)


@router.get("/{reservation_id}", response_model=ReservationOut)
async def get_reservation(
    reservation_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await ReservationService.get_reservation(db, reservation_id)


@router.post("", response_model=ReservationOut, status_code=201)
async def create_reservation(
    payload: ReservationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    data = strip_admin_only_fields(payload.model_dump(), identity)
    reservation = await ReservationService.create_reservation(db, data)
    out = _snapshot(reservation)
    ticket = ReservationTicket.from_reservation(reservation)
    await log_action(db, "reservation", "CREATE", reservation.id, new_data=out,
                     context=audit_context(request, identity))
    background_tasks.add_task(notification_service.send_reservation_ticket, ticket)
    return out


@router.put("/{reservation_id}", response_model=ReservationOut)
async def update_reservation(
    reservation_id: str,
    payload: ReservationUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    before = _snapshot(await ReservationService.get_reservation(db, reservation_id))
    data = strip_admin_only_fields(payload.model_dump(exclude_unset=True), identity)
    reservation = await ReservationService.update_reservation(db, reservation_id, data)
    out = _snapshot(reservation)
    await log_action(db, "reservation", "UPDATE", reservation.id, old_data=before, new_data=out,
                     context=audit_context(request, identity))
    return out


@router.delete("/{reservation_id}", status_code=204)
async def delete_reservation(
    reservation_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    reservation = await ReservationService.delete_reservation(db, reservation_id)
    await log_action(db, "reservation", "DELETE", reservation_id, old_data=_snapshot(reservation),
                     context=audit_context(request, identity))


@router.post("/{reservation_id}/checkin", response_model=ReservationOut)
async def checkin(
    reservation_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    reservation = await ReservationService.check_in(db, reservation_id, identity.user_id)
    out = _snapshot(reservation)
    await log_action(db, "reservation", "CHECKIN", reservation.id, new_data=out,
                     context=audit_context(request, identity))
    return out


@router.post("/{reservation_id}/renew-qr", response_model=ReservationOut)
async def renew_qr(
    reservation_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    reservation = await ReservationService.renew_qr(db, reservation_id=reservation_id)
    out = _snapshot(reservation)
    await log_action(db, "reservation", "QR_RENEW", reservation.id, new_data=out,
                     context=audit_context(request, identity))
    return out


@router.put("/{reservation_id}/status", response_model=ReservationOut)
async def set_status(
    reservation_id: str,
    payload: ReservationStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    before = _snapshot(await ReservationService.get_reservation(db, reservation_id))
    reservation = await ReservationService.set_status(
        db, reservation_id, payload.status, renew_qr=payload.renew_qr
    )
    out = _snapshot(reservation)
    action = "NO_SHOW" if payload.status == ReservationStatus.NO_SHOW else "STATUS"
    await log_action(db, "reservation", action, reservation.id, old_data=before, new_data=out,
                     context=audit_context(request, identity))
    return out
