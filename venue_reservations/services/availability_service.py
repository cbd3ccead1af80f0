import datetime
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.config import settings
from venue_reservations.domain.periods import (
    Period,
    aggregation_window,
    classify_period,
    day_bounds,
)
from venue_reservations.models import Area
from venue_reservations.schemas.availability import AreaAvailability
from venue_reservations.services.block_service import BlockService
from venue_reservations.services.capacity_service import CapacityService
from venue_reservations.utils.validators import absolutize_url

logger = logging.getLogger(__name__)


def period_capacity(area: Area, period: Optional[Period]) -> int:
    """Seats for a period; NULL capacity means zero. No period means the whole day."""
    afternoon = max(0, area.capacity_afternoon or 0)
    night = max(0, area.capacity_night or 0)
    if period is None:
        return afternoon + night
    if period == Period.AFTERNOON:
        return afternoon
    return night


def _static_view(area: Area) -> AreaAvailability:
    return AreaAvailability(
        id=area.id,
        name=area.name,
        unit_id=area.unit_id,
        capacity_afternoon=area.capacity_afternoon,
        capacity_night=area.capacity_night,
        photo_url=absolutize_url(area.photo_url, settings.public_images_base),
        description=area.description,
        icon_emoji=area.icon_emoji,
        is_active=area.is_active,
    )


class AvailabilityService:
    @staticmethod
    async def compute_availability(
        db: AsyncSession,
        unit_id: str,
        area_ids: Optional[list[str]] = None,
        day: Optional[datetime.date] = None,
        at_time: Optional[datetime.time] = None,
    ) -> list[AreaAvailability]:
        """
        Remaining seats per active area of a unit.

        - no ``day``: static metadata only
        - ``day`` + ``at_time``: the period containing that time
        - ``day`` alone: whole-day totals; only ALL_DAY blocks apply here

        Read-only, takes no locks.
        """
        query = select(Area).where(Area.unit_id == unit_id, Area.is_active.is_(True))
        if area_ids:
            query = query.where(Area.id.in_(area_ids))
        result = await db.execute(query.order_by(Area.name.asc()))
        areas = list(result.scalars().all())

        if day is None:
            return [_static_view(area) for area in areas]
        if not areas:
            return []

        period = classify_period(at_time) if at_time is not None else None
        window = aggregation_window(day, period) if period else day_bounds(day)

        used = await CapacityService.used_by_area(db, [a.id for a in areas], window)
        blocks = await BlockService.resolve_blocks(db, unit_id, day, period)

        views = []
        for area in areas:
            capacity = period_capacity(area, period)
            blocked = blocks.covers(area.id)
            remaining = 0 if blocked else max(0, capacity - used.get(area.id, 0))
            view = _static_view(area)
            view.period = period
            view.capacity = capacity
            view.remaining = remaining
            view.available = remaining
            view.is_available = remaining > 0
            view.blocked = blocked
            views.append(view)
        return views
