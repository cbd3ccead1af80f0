import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.errors import ConflictError, NotFoundError
from venue_reservations.models import Guest, Reservation
from venue_reservations.schemas.guest import GuestCreate
from venue_reservations.utils.validators import normalize_email

logger = logging.getLogger(__name__)


class GuestService:
    """Guest lists attached to a reservation. Guests never outlive it."""

    @staticmethod
    async def _ensure_reservation(db: AsyncSession, reservation_id: str) -> Reservation:
        reservation = await db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found", code="RESERVATION_NOT_FOUND")
        return reservation

    @classmethod
    async def list_guests(cls, db: AsyncSession, reservation_id: str) -> List[Guest]:
        await cls._ensure_reservation(db, reservation_id)
        result = await db.execute(
            select(Guest)
            .where(Guest.reservation_id == reservation_id)
            .order_by(Guest.created_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _stored_emails(db: AsyncSession, reservation_id: str) -> set[str]:
        result = await db.execute(
            select(Guest.email).where(Guest.reservation_id == reservation_id)
        )
        return {row[0] for row in result.all()}

    @classmethod
    async def add_guest(cls, db: AsyncSession, reservation_id: str, guest_in: GuestCreate) -> Guest:
        await cls._ensure_reservation(db, reservation_id)
        email = normalize_email(guest_in.email)
        if email in await cls._stored_emails(db, reservation_id):
            raise ConflictError(
                "Guest email already on this reservation",
                code="GUEST_EMAIL_IN_USE",
                email=email,
            )

        guest = Guest(
            reservation_id=reservation_id,
            name=guest_in.name.strip(),
            email=email,
            role=guest_in.role,
        )
        db.add(guest)
        await db.commit()
        await db.refresh(guest)
        return guest

    @classmethod
    async def add_guests_bulk(
        cls, db: AsyncSession, reservation_id: str, guests_in: List[GuestCreate]
    ) -> tuple[int, int]:
        """
        Adds every guest whose email is new to the reservation.
        Returns (created, skipped); duplicates inside the payload are skipped too.
        """
        await cls._ensure_reservation(db, reservation_id)
        seen = await cls._stored_emails(db, reservation_id)

        created = 0
        for guest_in in guests_in:
            email = normalize_email(guest_in.email)
            if not email or email in seen:
                continue
            seen.add(email)
            db.add(
                Guest(
                    reservation_id=reservation_id,
                    name=guest_in.name.strip(),
                    email=email,
                    role=guest_in.role,
                )
            )
            created += 1

        await db.commit()
        skipped = len(guests_in) - created
        logger.info(f"Guests added to {reservation_id}: created={created} skipped={skipped}")
        return created, skipped

    @classmethod
    async def delete_guest(cls, db: AsyncSession, reservation_id: str, guest_id: str) -> None:
        result = await db.execute(
            delete(Guest).where(Guest.id == guest_id, Guest.reservation_id == reservation_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Guest not found", code="GUEST_NOT_FOUND")
        await db.commit()
