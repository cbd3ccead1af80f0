import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.errors import ConflictError, NotFoundError, ValidationError
from venue_reservations.models import Area, Reservation, ReservationBlock, Unit
from venue_reservations.schemas.unit import UnitCreate, UnitUpdate
from venue_reservations.utils.validators import slugify

logger = logging.getLogger(__name__)


class UnitService:
    @staticmethod
    async def list_units(
        db: AsyncSession,
        search: Optional[str] = None,
        active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Unit], int]:
        query = select(Unit)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Unit.name.ilike(pattern), Unit.slug.ilike(pattern)))
        if active is not None:
            query = query.where(Unit.is_active.is_(active))

        total = await db.scalar(select(func.count()).select_from(query.subquery()))
        result = await db.execute(
            query.order_by(Unit.name.asc()).offset((page - 1) * page_size).limit(page_size)
        )
        return list(result.scalars().all()), int(total or 0)

    @staticmethod
    async def list_public_options(db: AsyncSession) -> List[Unit]:
        result = await db.execute(
            select(Unit).where(Unit.is_active.is_(True)).order_by(Unit.name.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_unit(db: AsyncSession, unit_id: str) -> Unit:
        unit = await db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", code="UNIT_NOT_FOUND")
        return unit

    @staticmethod
    async def _ensure_slug_free(db: AsyncSession, slug: str, exclude_id: Optional[str] = None) -> None:
        query = select(Unit.id).where(Unit.slug == slug)
        if exclude_id:
            query = query.where(Unit.id != exclude_id)
        if (await db.execute(query.limit(1))).first() is not None:
            raise ConflictError("Slug already in use", code="SLUG_IN_USE", slug=slug)

    @classmethod
    async def create_unit(cls, db: AsyncSession, unit_in: UnitCreate) -> Unit:
        slug = slugify(unit_in.slug or unit_in.name)
        if not slug:
            raise ValidationError("Could not derive a slug from the unit name")
        await cls._ensure_slug_free(db, slug)

        unit = Unit(name=unit_in.name.strip(), slug=slug, is_active=unit_in.is_active)
        db.add(unit)
        await db.commit()
        await db.refresh(unit)
        logger.info(f"Unit created: {unit.id} ({unit.slug})")
        return unit

    @classmethod
    async def update_unit(cls, db: AsyncSession, unit_id: str, unit_in: UnitUpdate) -> Unit:
        unit = await cls.get_unit(db, unit_id)
        update_data = unit_in.model_dump(exclude_unset=True, exclude_none=True)

        # A rename regenerates the slug unless one is given explicitly
        if "slug" in update_data:
            new_slug = slugify(update_data["slug"])
        elif "name" in update_data and update_data["name"] != unit.name:
            new_slug = slugify(update_data["name"])
        else:
            new_slug = unit.slug
        if not new_slug:
            raise ValidationError("Slug cannot be empty")
        if new_slug != unit.slug:
            await cls._ensure_slug_free(db, new_slug, exclude_id=unit.id)

        if "name" in update_data:
            unit.name = update_data["name"].strip()
        if "is_active" in update_data:
            unit.is_active = update_data["is_active"]
        unit.slug = new_slug

        await db.commit()
        await db.refresh(unit)
        return unit

    @classmethod
    async def delete_unit(cls, db: AsyncSession, unit_id: str) -> Unit:
        unit = await cls.get_unit(db, unit_id)
        count = await db.scalar(
            select(func.count(Reservation.id)).where(
                or_(
                    Reservation.unit_id == unit_id,
                    Reservation.area_id.in_(select(Area.id).where(Area.unit_id == unit_id)),
                )
            )
        )
        if count:
            raise ConflictError(
                "Unit has reservations and cannot be deleted",
                code="UNIT_HAS_RESERVATIONS",
                reservations=int(count),
            )
        # Areas and blocks belong to the unit and go with it
        await db.execute(delete(ReservationBlock).where(ReservationBlock.unit_id == unit_id))
        await db.execute(delete(Area).where(Area.unit_id == unit_id))
        await db.execute(delete(Unit).where(Unit.id == unit_id))
        await db.commit()
        logger.info(f"Unit deleted: {unit_id}")
        return unit
