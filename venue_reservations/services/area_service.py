import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.errors import ConflictError, NotFoundError
from venue_reservations.models import Area, Reservation, ReservationBlock, Unit
from venue_reservations.schemas.area import AreaCreate, AreaUpdate

logger = logging.getLogger(__name__)


class AreaService:
    @staticmethod
    async def list_areas(
        db: AsyncSession,
        unit_id: Optional[str] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Area], int]:
        query = select(Area)
        if unit_id:
            query = query.where(Area.unit_id == unit_id)
        if active is not None:
            query = query.where(Area.is_active.is_(active))
        if search:
            query = query.where(Area.name.ilike(f"%{search.strip()}%"))

        total = await db.scalar(select(func.count()).select_from(query.subquery()))
        result = await db.execute(
            query.order_by(Area.name.asc()).offset((page - 1) * page_size).limit(page_size)
        )
        return list(result.scalars().all()), int(total or 0)

    @staticmethod
    async def get_area(db: AsyncSession, area_id: str) -> Area:
        area = await db.get(Area, area_id)
        if area is None:
            raise NotFoundError("Area not found", code="AREA_NOT_FOUND")
        return area

    @staticmethod
    async def _ensure_unit(db: AsyncSession, unit_id: str) -> Unit:
        unit = await db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", code="UNIT_NOT_FOUND")
        return unit

    @staticmethod
    async def _ensure_name_free(
        db: AsyncSession, unit_id: str, name: str, exclude_id: Optional[str] = None
    ) -> None:
        query = select(Area.id).where(
            Area.unit_id == unit_id, func.lower(Area.name) == name.lower()
        )
        if exclude_id:
            query = query.where(Area.id != exclude_id)
        if (await db.execute(query.limit(1))).first() is not None:
            raise ConflictError(
                "An area with this name already exists in the unit",
                code="AREA_NAME_IN_USE",
                name=name,
            )

    @classmethod
    async def create_area(cls, db: AsyncSession, area_in: AreaCreate) -> Area:
        await cls._ensure_unit(db, area_in.unit_id)
        name = area_in.name.strip()
        await cls._ensure_name_free(db, area_in.unit_id, name)

        data = area_in.model_dump()
        data["name"] = name
        area = Area(**data)
        db.add(area)
        await db.commit()
        await db.refresh(area)
        logger.info(f"Area created: {area.id} ({area.name}) in unit {area.unit_id}")
        return area

    @classmethod
    async def update_area(cls, db: AsyncSession, area_id: str, area_in: AreaUpdate) -> Area:
        area = await cls.get_area(db, area_id)
        update_data = area_in.model_dump(exclude_unset=True)
        # unit, name and active flag cannot be cleared
        for key in ("unit_id", "name", "is_active"):
            if update_data.get(key) is None:
                update_data.pop(key, None)

        unit_id = update_data.get("unit_id", area.unit_id)
        name = update_data.get("name", area.name).strip()
        if unit_id != area.unit_id:
            await cls._ensure_unit(db, unit_id)
        if unit_id != area.unit_id or name.lower() != area.name.lower():
            await cls._ensure_name_free(db, unit_id, name, exclude_id=area.id)
        if "name" in update_data:
            update_data["name"] = name

        for key, value in update_data.items():
            setattr(area, key, value)

        await db.commit()
        await db.refresh(area)
        return area

    @classmethod
    async def delete_area(cls, db: AsyncSession, area_id: str) -> Area:
        area = await cls.get_area(db, area_id)
        count = await db.scalar(
            select(func.count(Reservation.id)).where(Reservation.area_id == area_id)
        )
        if count:
            raise ConflictError(
                "Area has reservations and cannot be deleted",
                code="AREA_HAS_RESERVATIONS",
                reservations=int(count),
            )
        await db.execute(delete(ReservationBlock).where(ReservationBlock.area_id == area_id))
        await db.execute(delete(Area).where(Area.id == area_id))
        await db.commit()
        logger.info(f"Area deleted: {area_id}")
        return area
