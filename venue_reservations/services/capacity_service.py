from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.domain.periods import Window
from venue_reservations.models import COUNTING_STATUSES, Reservation


class CapacityService:
    """Committed demand (people + kids) per area inside a time window."""

    @staticmethod
    async def used_by_area(
        db: AsyncSession, area_ids: Iterable[str], window: Window
    ) -> dict[str, int]:
        """
        Returns {area_id: seats}. Areas without reservations are absent and
        should be read as zero. Only AWAITING_CHECKIN / CHECKED_IN count.
        """
        ids = [area_id for area_id in area_ids if area_id]
        if not ids:
            return {}

        seats = func.coalesce(
            func.sum(Reservation.people + func.coalesce(Reservation.kids, 0)), 0
        )
        query = (
            select(Reservation.area_id, seats)
            .where(
                Reservation.area_id.in_(ids),
                Reservation.reservation_date >= window.start,
                Reservation.reservation_date <= window.end,
                Reservation.status.in_(COUNTING_STATUSES),
            )
            .group_by(Reservation.area_id)
        )
        result = await db.execute(query)
        return {area_id: int(total or 0) for area_id, total in result.all()}

    @classmethod
    async def used_for_area(cls, db: AsyncSession, area_id: str, window: Window) -> int:
        used = await cls.used_by_area(db, [area_id], window)
        return used.get(area_id, 0)
