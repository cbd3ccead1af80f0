import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import Any, List, Optional
from urllib.parse import urlencode

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.config import settings
from venue_reservations.core.errors import (
    AppError,
    ConflictError,
    GoneError,
    NotFoundError,
    ValidationError,
)
from venue_reservations.core.locks import KeyedLock
from venue_reservations.domain.periods import (
    aggregation_window,
    classify_period,
    day_bounds,
    normalize_wall_clock,
    start_of_day,
)
from venue_reservations.models import (
    COUNTING_STATUSES,
    Area,
    Guest,
    Reservation,
    ReservationStatus,
    Unit,
)
from venue_reservations.services.availability_service import period_capacity
from venue_reservations.services.block_service import BlockService
from venue_reservations.services.capacity_service import CapacityService
from venue_reservations.services.code_service import CodeService
from venue_reservations.utils.phone import normalize_phone
from venue_reservations.utils.validators import (
    normalize_cpf,
    normalize_email,
    normalize_reservation_code,
    slugify,
)

logger = logging.getLogger(__name__)

ATTRIBUTION_FIELDS = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "url",
    "ref",
    "source",
)
MAX_PAGE_SIZE = 100
CALENDAR_EVENT_DURATION = timedelta(hours=2)

# Serialises read-check-insert per (area, day, period) inside this process
admission_lock = KeyedLock()


def local_now() -> datetime:
    return datetime.now()


def slot_key(area_id: str, moment: datetime) -> tuple:
    return ("slot", area_id, moment.date(), classify_period(moment).value)


async def check_slot(
    db: AsyncSession,
    unit_id: str,
    area: Area,
    moment: datetime,
    party: int,
    credit: int = 0,
    allow_blocked_credit: bool = False,
    error_code: str = "NO_CAPACITY",
) -> None:
    """
    Raises when ``party`` seats do not fit in the area's period at ``moment``.

    ``credit`` is the seat count the caller already holds in that same slot
    (an update that stays put). A blocked slot rejects outright unless
    ``allow_blocked_credit`` is set, in which case only the credit is usable.
    """
    period = classify_period(moment)
    blocked = await BlockService.is_blocked(db, unit_id, area.id, moment, period)
    if blocked and not allow_blocked_credit:
        raise ConflictError(
            "Reservations are blocked for this day and period",
            code="BLOCKED_DAY",
            date=moment.date().isoformat(),
            period=period.value,
        )

    capacity = period_capacity(area, period)
    used = await CapacityService.used_for_area(db, area.id, aggregation_window(moment, period))
    remaining = 0 if blocked else max(0, capacity - used)
    available = remaining + credit
    if party <= available:
        return

    if error_code == "NO_CAPACITY":
        raise ConflictError(
            "Not enough seats left for this period",
            code=error_code,
            remaining=remaining,
            period=period.value,
        )
    raise ConflictError(
        "Area has no capacity for this change",
        code=error_code,
        available=available,
        credit=credit,
        period=period.value,
    )


async def commit_or_conflict(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Integrity error on commit: {e.orig}")
        raise ConflictError("Duplicate value", code="DUPLICATE_KEY") from e


@asynccontextmanager
async def admission(db: AsyncSession, area: Area, moment: datetime, *extra_keys):
    """
    Holds the slot lock (plus any extra keys) and a row lock on the area for
    the duration of the block, then commits. Any AppError rolls back.
    """
    area_id = area.id
    async with admission_lock.hold(slot_key(area_id, moment), *extra_keys):
        try:
            # Row lock on engines that support it; SQLite renders no FOR UPDATE
            await db.execute(select(Area.id).where(Area.id == area_id).with_for_update())
            yield
            await commit_or_conflict(db)
        except AppError as e:
            await db.rollback()
            logger.warning(f"Admission rejected for area {area_id} at {moment}: {e.code}")
            raise


class ReservationService:
    # ------------------------------------------------------------------
    # Unit / area resolution
    # ------------------------------------------------------------------

    @staticmethod
    async def resolve_unit(
        db: AsyncSession,
        unit_id: Optional[str] = None,
        unit_name: Optional[str] = None,
        active_only: bool = False,
    ) -> Unit:
        """
        Id first. Otherwise by slug, then case-insensitive exact name, then
        case-insensitive substring; each tier is one query with LIMIT 1.
        """
        not_found = NotFoundError("Unit not found", code="UNIT_NOT_FOUND")
        if unit_id:
            unit = await db.get(Unit, unit_id)
            if unit is None or (active_only and not unit.is_active):
                raise not_found
            return unit

        name = (unit_name or "").strip()
        if not name:
            raise ValidationError("unit_id or unit is required", code="UNIT_REQUIRED")

        base = select(Unit)
        if active_only:
            base = base.where(Unit.is_active.is_(True))
        tiers = [
            Unit.slug == slugify(name),
            func.lower(Unit.name) == name.lower(),
            Unit.name.ilike(f"%{name}%"),
        ]
        for clause in tiers:
            result = await db.execute(base.where(clause).order_by(Unit.name.asc()).limit(1))
            unit = result.scalars().first()
            if unit:
                return unit
        raise not_found

    @staticmethod
    async def resolve_area(
        db: AsyncSession,
        unit: Unit,
        area_id: Optional[str] = None,
        area_name: Optional[str] = None,
        active_only: bool = False,
    ) -> Area:
        not_found = NotFoundError("Area not found for this unit", code="AREA_NOT_FOUND")
        if area_id:
            area = await db.get(Area, area_id)
            if area is None or area.unit_id != unit.id or (active_only and not area.is_active):
                raise not_found
            return area

        name = (area_name or "").strip()
        if not name:
            raise ValidationError("area_id or area is required", code="AREA_REQUIRED")

        base = select(Area).where(Area.unit_id == unit.id)
        if active_only:
            base = base.where(Area.is_active.is_(True))
        for clause in (func.lower(Area.name) == name.lower(), Area.name.ilike(f"%{name}%")):
            result = await db.execute(base.where(clause).order_by(Area.name.asc()).limit(1))
            area = result.scalars().first()
            if area:
                return area
        raise not_found

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_reservation(db: AsyncSession, reservation_id: str) -> Reservation:
        reservation = await db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found", code="RESERVATION_NOT_FOUND")
        return reservation

    @staticmethod
    async def lookup_by_code(db: AsyncSession, raw_code: str) -> Reservation:
        code = normalize_reservation_code(raw_code)
        if code is None:
            raise ValidationError("Reservation code must be 6 letters or digits", code="INVALID_CODE")
        result = await db.execute(select(Reservation).where(Reservation.reservation_code == code))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation not found", code="RESERVATION_NOT_FOUND")
        return reservation

    @staticmethod
    async def find_active_by_contact(
        db: AsyncSession,
        email: Optional[str],
        phone: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> Optional[Reservation]:
        contact = []
        if email:
            contact.append(Reservation.email == email)
        if phone:
            contact.append(Reservation.phone == phone)
        if not contact:
            return None

        query = select(Reservation).where(
            Reservation.status == ReservationStatus.AWAITING_CHECKIN, or_(*contact)
        )
        if exclude_id:
            query = query.where(Reservation.id != exclude_id)
        result = await db.execute(query.order_by(Reservation.created_at.desc()).limit(1))
        return result.scalars().first()

    @classmethod
    async def find_active(
        cls,
        db: AsyncSession,
        reservation_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Reservation:
        """Current AWAITING_CHECKIN reservation by id, or by guest email/phone."""
        if reservation_id:
            reservation = await cls.get_reservation(db, reservation_id)
            if reservation.status != ReservationStatus.AWAITING_CHECKIN:
                raise NotFoundError("No active reservation", code="NO_ACTIVE_RESERVATION")
            return reservation

        email = normalize_email(email)
        phone = normalize_phone(phone) or None
        if not email and not phone:
            raise ValidationError("Provide id, email or phone", code="VALIDATION")
        reservation = await cls.find_active_by_contact(db, email, phone)
        if reservation is None:
            raise NotFoundError("No active reservation", code="NO_ACTIVE_RESERVATION")
        return reservation

    @staticmethod
    async def list_reservations(
        db: AsyncSession,
        search: Optional[str] = None,
        unit_id: Optional[str] = None,
        area_id: Optional[str] = None,
        status: Optional[ReservationStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        skip: int = 0,
        take: int = 20,
    ) -> tuple[List[Reservation], int]:
        skip = max(0, skip)
        take = max(1, min(take, MAX_PAGE_SIZE))

        filters = []
        if unit_id:
            filters.append(Reservation.unit_id == unit_id)
        if area_id:
            filters.append(Reservation.area_id == area_id)
        if status:
            filters.append(Reservation.status == status)
        if date_from:
            filters.append(Reservation.reservation_date >= start_of_day(date_from))
        if date_to:
            # Inclusive of the whole final day
            filters.append(Reservation.reservation_date <= day_bounds(date_to).end)

        term = (search or "").strip()
        if term:
            code = normalize_reservation_code(term)
            if code:
                # Fast path: a 6-char term that is an exact code
                result = await db.execute(
                    select(Reservation).where(Reservation.reservation_code == code, *filters)
                )
                hit = result.scalar_one_or_none()
                if hit is not None:
                    return [hit], 1

            pattern = f"%{term}%"
            matches = [
                Reservation.full_name.ilike(pattern),
                Reservation.email.ilike(pattern),
                Reservation.cpf.ilike(pattern),
                Reservation.utm_campaign.ilike(pattern),
                Reservation.reservation_code.ilike(pattern),
            ]
            digits = normalize_phone(term)
            if digits:
                matches.append(Reservation.phone.ilike(f"%{digits}%"))
            filters.append(or_(*matches))

        query = select(Reservation)
        if filters:
            query = query.where(*filters)
        total = await db.scalar(select(func.count()).select_from(query.subquery()))
        result = await db.execute(
            query.order_by(Reservation.reservation_date.asc(), Reservation.created_at.asc())
            .offset(skip)
            .limit(take)
        )
        return list(result.scalars().all()), int(total or 0)

    @classmethod
    async def preview_by_token(cls, db: AsyncSession, token: str) -> Reservation:
        """Validates a QR token without touching the reservation."""
        reservation = await cls._by_token(db, token)
        cls._ensure_not_expired(reservation)
        return reservation

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    @classmethod
    async def create_reservation(cls, db: AsyncSession, data: dict[str, Any]) -> Reservation:
        """
        Validated create: unit, area, one active reservation per contact,
        blocks, then capacity. The checks and the insert run under the
        admission lock for the target slot, so concurrent requests cannot
        jointly overbook it.
        """
        unit = await cls.resolve_unit(db, data.get("unit_id"), data.get("unit"), active_only=True)
        area = await cls.resolve_area(db, unit, data.get("area_id"), data.get("area"), active_only=True)

        moment = normalize_wall_clock(data["reservation_date"])
        email = normalize_email(data.get("email"))
        phone = normalize_phone(data.get("phone")) or None
        people = int(data["people"])
        kids = int(data.get("kids") or 0)

        contact_keys = []
        if email:
            contact_keys.append(("contact", "email", email))
        if phone:
            contact_keys.append(("contact", "phone", phone))

        async with admission(db, area, moment, *contact_keys):
            existing = await cls.find_active_by_contact(db, email, phone)
            if existing is not None:
                raise ConflictError(
                    "There is already an active reservation for this contact",
                    code="ALREADY_HAS_ACTIVE_RESERVATION",
                    reservation_id=existing.id,
                    reservation_code=existing.reservation_code,
                )

            await check_slot(db, unit.id, area, moment, people + kids)

            birthday = data.get("birthday_date")
            reservation = Reservation(
                full_name=data["full_name"].strip(),
                cpf=normalize_cpf(data.get("cpf")),
                email=email,
                phone=phone,
                birthday_date=normalize_wall_clock(birthday) if birthday else None,
                people=people,
                kids=kids,
                reservation_date=moment,
                reservation_type=data.get("reservation_type"),
                notes=data.get("notes"),
                unit_id=unit.id,
                unit_name=unit.name,
                area_id=area.id,
                area_name=area.name,
                status=ReservationStatus.AWAITING_CHECKIN,
                reservation_code=await CodeService.generate_reservation_code(db),
                qr_token=await CodeService.generate_qr_token(db),
                qr_expires_at=local_now() + timedelta(hours=settings.qr_ttl_hours),
                **{field: data.get(field) for field in ATTRIBUTION_FIELDS},
            )
            db.add(reservation)

        await db.refresh(reservation)
        logger.info(
            f"Reservation {reservation.reservation_code} created: area={area.id} "
            f"at={moment:%Y-%m-%d %H:%M} party={reservation.party_size}"
        )
        return reservation

    @classmethod
    async def update_reservation(
        cls, db: AsyncSession, reservation_id: str, data: dict[str, Any]
    ) -> Reservation:
        """
        Partial update. When the slot or party size changes on a counting
        reservation, capacity is re-checked against the merged target; the
        reservation's own seats are credited back if it stays in the same
        unit, area, day and period.
        """
        reservation = await cls.get_reservation(db, reservation_id)

        unit_given = bool(data.get("unit_id") or data.get("unit"))
        area_given = bool(data.get("area_id") or data.get("area"))

        if unit_given:
            unit = await cls.resolve_unit(db, data.get("unit_id"), data.get("unit"))
        elif reservation.unit_id:
            unit = await db.get(Unit, reservation.unit_id)
        else:
            unit = None

        if area_given or (unit is not None and unit.id != reservation.unit_id):
            if unit is None:
                raise ValidationError("A unit is required to choose an area", code="UNIT_REQUIRED")
            area = await cls.resolve_area(
                db,
                unit,
                data.get("area_id") if area_given else reservation.area_id,
                data.get("area") if area_given else None,
            )
        elif reservation.area_id:
            area = await db.get(Area, reservation.area_id)
        else:
            area = None

        moment = (
            normalize_wall_clock(data["reservation_date"])
            if data.get("reservation_date")
            else reservation.reservation_date
        )
        people = data.get("people") or reservation.people
        kids = data["kids"] if data.get("kids") is not None else reservation.kids
        party = people + kids

        slot_changed = (
            (unit.id if unit else None) != reservation.unit_id
            or (area.id if area else None) != reservation.area_id
            or moment != reservation.reservation_date
            or party != reservation.party_size
        )
        needs_check = (
            slot_changed
            and unit is not None
            and area is not None
            and reservation.status in COUNTING_STATUSES
        )

        if not needs_check:
            cls._apply_update(reservation, data, unit, area, moment)
            await commit_or_conflict(db)
            await db.refresh(reservation)
            return reservation

        same_slot = (
            unit.id == reservation.unit_id
            and area.id == reservation.area_id
            and moment.date() == reservation.reservation_date.date()
            and classify_period(moment) == classify_period(reservation.reservation_date)
        )
        credit = reservation.party_size if same_slot else 0

        async with admission(db, area, moment):
            await check_slot(
                db,
                unit.id,
                area,
                moment,
                party,
                credit=credit,
                allow_blocked_credit=same_slot,
                error_code="AREA_NO_CAPACITY",
            )
            cls._apply_update(reservation, data, unit, area, moment)

        await db.refresh(reservation)
        logger.info(f"Reservation {reservation.reservation_code} updated (credit={credit})")
        return reservation

    @staticmethod
    def _apply_update(
        reservation: Reservation,
        data: dict[str, Any],
        unit: Optional[Unit],
        area: Optional[Area],
        moment: datetime,
    ) -> None:
        if data.get("full_name"):
            reservation.full_name = data["full_name"].strip()
        if data.get("people"):
            reservation.people = data["people"]
        if data.get("kids") is not None:
            reservation.kids = data["kids"]
        if "birthday_date" in data:
            bd = data["birthday_date"]
            reservation.birthday_date = normalize_wall_clock(bd) if bd else None
        if "cpf" in data:
            reservation.cpf = normalize_cpf(data["cpf"])
        if "email" in data:
            reservation.email = normalize_email(data["email"])
        if "phone" in data:
            reservation.phone = normalize_phone(data["phone"]) or None
        for field in ("notes", "reservation_type", *ATTRIBUTION_FIELDS):
            if field in data:
                setattr(reservation, field, data[field])

        reservation.reservation_date = moment
        if unit is not None:
            reservation.unit_id = unit.id
            reservation.unit_name = unit.name
        if area is not None:
            reservation.area_id = area.id
            reservation.area_name = area.name

    @classmethod
    async def delete_reservation(cls, db: AsyncSession, reservation_id: str) -> Reservation:
        reservation = await cls.get_reservation(db, reservation_id)
        await db.execute(delete(Guest).where(Guest.reservation_id == reservation_id))
        await db.execute(delete(Reservation).where(Reservation.id == reservation_id))
        await db.commit()
        logger.info(f"Reservation {reservation.reservation_code} deleted")
        return reservation

    # ------------------------------------------------------------------
    # Check-in and ticket lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    async def _by_token(db: AsyncSession, token: str) -> Reservation:
        token = (token or "").strip()
        if not token:
            raise ValidationError("token is required")
        result = await db.execute(select(Reservation).where(Reservation.qr_token == token))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("No reservation for this token", code="RESERVATION_NOT_FOUND")
        return reservation

    @staticmethod
    def _ensure_not_expired(reservation: Reservation) -> None:
        if reservation.qr_expires_at and reservation.qr_expires_at < local_now():
            raise GoneError("QR code expired", code="QR_EXPIRED")

    @staticmethod
    async def _mark_checked_in(
        db: AsyncSession, reservation: Reservation, checked_in_by: Optional[str]
    ) -> Reservation:
        if reservation.checked_in_at is not None:
            raise ConflictError(
                "Reservation already checked in",
                code="ALREADY_CHECKED_IN",
                checked_in_at=reservation.checked_in_at.isoformat(),
            )
        if reservation.status not in COUNTING_STATUSES:
            raise ConflictError(
                f"Cannot check in a {reservation.status.value} reservation",
                code="INVALID_STATUS",
                status=reservation.status.value,
            )

        reservation.status = ReservationStatus.CHECKED_IN
        reservation.checked_in_at = local_now()
        reservation.checked_in_by = checked_in_by
        await db.commit()
        await db.refresh(reservation)
        logger.info(f"Reservation {reservation.reservation_code} checked in")
        return reservation

    @classmethod
    async def check_in(
        cls, db: AsyncSession, reservation_id: str, checked_in_by: Optional[str] = None
    ) -> Reservation:
        reservation = await cls.get_reservation(db, reservation_id)
        return await cls._mark_checked_in(db, reservation, checked_in_by)

    @classmethod
    async def check_in_by_token(
        cls, db: AsyncSession, token: str, checked_in_by: Optional[str] = None
    ) -> Reservation:
        reservation = await cls._by_token(db, token)
        cls._ensure_not_expired(reservation)
        return await cls._mark_checked_in(db, reservation, checked_in_by)

    @classmethod
    async def _commit_transition(cls, db: AsyncSession, reservation: Reservation, mutate) -> None:
        """
        Applies ``mutate`` and commits. If the reservation moves from a
        non-counting into a counting status, its slot must still have room.
        """
        reactivated_area = None
        if reservation.status not in COUNTING_STATUSES and reservation.unit_id and reservation.area_id:
            reactivated_area = await db.get(Area, reservation.area_id)

        if reactivated_area is None:
            mutate()
            await commit_or_conflict(db)
            return

        async with admission(db, reactivated_area, reservation.reservation_date):
            await check_slot(
                db,
                reservation.unit_id,
                reactivated_area,
                reservation.reservation_date,
                reservation.party_size,
                error_code="AREA_NO_CAPACITY",
            )
            mutate()

    @classmethod
    async def renew_qr(
        cls,
        db: AsyncSession,
        reservation_id: Optional[str] = None,
        code: Optional[str] = None,
    ) -> Reservation:
        """New token and expiry; the reservation goes back to AWAITING_CHECKIN."""
        if reservation_id:
            reservation = await cls.get_reservation(db, reservation_id)
        else:
            reservation = await cls.lookup_by_code(db, code or "")

        new_token = await CodeService.generate_qr_token(db)
        expires_at = local_now() + timedelta(hours=settings.qr_renew_ttl_hours)

        def mutate():
            reservation.qr_token = new_token
            reservation.qr_expires_at = expires_at
            reservation.status = ReservationStatus.AWAITING_CHECKIN
            reservation.checked_in_at = None
            reservation.checked_in_by = None

        await cls._commit_transition(db, reservation, mutate)
        await db.refresh(reservation)
        logger.info(f"QR renewed for reservation {reservation.reservation_code}")
        return reservation

    @classmethod
    async def set_status(
        cls,
        db: AsyncSession,
        reservation_id: str,
        status: ReservationStatus,
        renew_qr: bool = False,
    ) -> Reservation:
        reservation = await cls.get_reservation(db, reservation_id)
        new_token = await CodeService.generate_qr_token(db) if renew_qr else None
        becomes_counting = status in COUNTING_STATUSES

        def mutate():
            reservation.status = status
            if status == ReservationStatus.AWAITING_CHECKIN:
                reservation.checked_in_at = None
                reservation.checked_in_by = None
            elif status == ReservationStatus.CHECKED_IN and reservation.checked_in_at is None:
                reservation.checked_in_at = local_now()
            if new_token:
                reservation.qr_token = new_token
                reservation.qr_expires_at = local_now() + timedelta(hours=settings.qr_renew_ttl_hours)

        if becomes_counting:
            await cls._commit_transition(db, reservation, mutate)
        else:
            mutate()
            await commit_or_conflict(db)
        await db.refresh(reservation)
        logger.info(f"Reservation {reservation.reservation_code} status -> {status.value}")
        return reservation

    # ------------------------------------------------------------------
    # Calendar invite
    # ------------------------------------------------------------------

    @classmethod
    async def calendar_link(cls, db: AsyncSession, reservation_id: str) -> tuple[str, list[str]]:
        """Google Calendar template link for the reservation and its guests."""
        reservation = await cls.get_reservation(db, reservation_id)
        result = await db.execute(
            select(Guest.email)
            .where(Guest.reservation_id == reservation_id)
            .order_by(Guest.created_at.asc())
        )

        emails: list[str] = []
        for email in [reservation.email, *(row[0] for row in result.all())]:
            email = normalize_email(email)
            if email and email not in emails:
                emails.append(email)

        return build_calendar_link(reservation, emails), emails


def build_calendar_link(reservation: Reservation, emails: list[str]) -> str:
    start = reservation.reservation_date
    end = start + CALENDAR_EVENT_DURATION
    fmt = "%Y%m%dT%H%M%S"

    details = [
        f"Unit: {reservation.unit_name}" if reservation.unit_name else None,
        f"Area: {reservation.area_name}" if reservation.area_name else None,
        f"Reservation code: {reservation.reservation_code}",
    ]
    params = {
        "action": "TEMPLATE",
        "text": f"Reservation for {reservation.full_name.upper()}",
        "dates": f"{start.strftime(fmt)}/{end.strftime(fmt)}",
        "details": "\n".join(d for d in details if d),
    }
    if emails:
        params["add"] = ",".join(emails)
    if reservation.unit_name:
        params["location"] = reservation.unit_name
    return "https://calendar.google.com/calendar/render?" + urlencode(params)
