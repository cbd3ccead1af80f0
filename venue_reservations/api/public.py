"""
Unauthenticated booking endpoints used by the public site.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import audit_context
from venue_reservations.core.config import settings
from venue_reservations.core.rate_limiter import limiter
from venue_reservations.database import get_db
from venue_reservations.schemas.guest import GuestBulkCreate, GuestBulkResult
from venue_reservations.schemas.reservation import (
    CalendarLinkOut,
    ReservationCreate,
    ReservationOut,
    ReservationPublicOut,
)
from venue_reservations.services.audit_service import log_action
from venue_reservations.services.guest_service import GuestService
from venue_reservations.services.notification_service import (
    ReservationTicket,
    notification_service,
)
from venue_reservations.services.reservation_service import ReservationService

router = APIRouter(prefix="/v1/reservations/public", tags=["public"])

UTM_FIELDS = ("utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term")


@router.post("", response_model=ReservationPublicOut, status_code=201)
@limiter.limit(settings.rate_limit_public_booking)
async def public_create_reservation(
    request: Request,
    payload: ReservationCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """
    Guest self-booking.

    Rejections: UNIT_NOT_FOUND / AREA_NOT_FOUND (404),
    ALREADY_HAS_ACTIVE_RESERVATION, BLOCKED_DAY, NO_CAPACITY (409).
    """
    data = payload.model_dump()
    # Campaign links carry attribution in the query string; body values win
    for field in UTM_FIELDS:
        if not (data.get(field) or "").strip():
            value = (request.query_params.get(field) or "").strip()
            data[field] = value[:120] or None

    reservation = await ReservationService.create_reservation(db, data)
    out = ReservationPublicOut.model_validate(reservation)
    snapshot = ReservationOut.model_validate(reservation).model_dump(mode="json")
    ticket = ReservationTicket.from_reservation(reservation)

    await log_action(db, "reservation", "CREATE", reservation.id, new_data=snapshot,
                     context=audit_context(request))
    background_tasks.add_task(notification_service.send_reservation_ticket, ticket)
    return out


@router.get("/active", response_model=ReservationPublicOut)
async def public_active_reservation(
    reservation_id: Optional[str] = Query(default=None, alias="id"),
    email: Optional[str] = Query(default=None),
    phone: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await ReservationService.find_active(db, reservation_id, email, phone)


@router.get("/{reservation_id}", response_model=ReservationPublicOut)
async def public_get_reservation(reservation_id: str, db: AsyncSession = Depends(get_db)):
    return await ReservationService.get_reservation(db, reservation_id)


@router.post("/{reservation_id}/guests/bulk", response_model=GuestBulkResult)
async def public_add_guests(
    reservation_id: str,
    payload: GuestBulkCreate,
    db: AsyncSession = Depends(get_db),
):
    created, skipped = await GuestService.add_guests_bulk(db, reservation_id, payload.guests)
    return GuestBulkResult(created=created, skipped=skipped)


@router.get("/{reservation_id}/calendar-link", response_model=CalendarLinkOut)
async def public_calendar_link(reservation_id: str, db: AsyncSession = Depends(get_db)):
    url, emails = await ReservationService.calendar_link(db, reservation_id)
    return CalendarLinkOut(url=url, emails=emails)
