import datetime
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.errors import ConflictError, NotFoundError, ValidationError
from venue_reservations.domain.periods import Period, day_bounds, start_of_day
from venue_reservations.models import Area, BlockMode, BlockPeriod, ReservationBlock, Unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockSet:
    """Blocks affecting one (unit, day, period), resolved with a single query."""

    blocks_all_areas: bool = False
    blocked_area_ids: frozenset[str] = field(default_factory=frozenset)

    def covers(self, area_id: str) -> bool:
        return self.blocks_all_areas or area_id in self.blocked_area_ids


def _matching_periods(period: Optional[Period]) -> list[BlockPeriod]:
    # Whole-day view (no period) only honours ALL_DAY blocks
    if period is None:
        return [BlockPeriod.ALL_DAY]
    return [BlockPeriod.ALL_DAY, BlockPeriod(period.value)]


class BlockService:
    @staticmethod
    async def is_blocked(
        db: AsyncSession,
        unit_id: str,
        area_id: Optional[str],
        day: datetime.date | datetime.datetime,
        period: Optional[Period],
    ) -> bool:
        bounds = day_bounds(day)
        area_clause = ReservationBlock.area_id.is_(None)
        if area_id:
            area_clause = or_(area_clause, ReservationBlock.area_id == area_id)

        query = select(ReservationBlock.id).where(
            ReservationBlock.unit_id == unit_id,
            ReservationBlock.mode == BlockMode.PERIOD,
            ReservationBlock.date >= bounds.start,
            ReservationBlock.date <= bounds.end,
            ReservationBlock.period.in_(_matching_periods(period)),
            area_clause,
        )
        result = await db.execute(query.limit(1))
        return result.first() is not None

    @staticmethod
    async def resolve_blocks(
        db: AsyncSession,
        unit_id: str,
        day: datetime.date | datetime.datetime,
        period: Optional[Period],
    ) -> BlockSet:
        bounds = day_bounds(day)
        result = await db.execute(
            select(ReservationBlock.area_id).where(
                ReservationBlock.unit_id == unit_id,
                ReservationBlock.mode == BlockMode.PERIOD,
                ReservationBlock.date >= bounds.start,
                ReservationBlock.date <= bounds.end,
                ReservationBlock.period.in_(_matching_periods(period)),
            )
        )
        area_ids = [row[0] for row in result.all()]
        return BlockSet(
            blocks_all_areas=any(area_id is None for area_id in area_ids),
            blocked_area_ids=frozenset(a for a in area_ids if a is not None),
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @staticmethod
    async def _check_scope(db: AsyncSession, unit_id: str, area_id: Optional[str]) -> None:
        if await db.get(Unit, unit_id) is None:
            raise NotFoundError("Unit not found", code="UNIT_NOT_FOUND")
        if area_id:
            area = await db.get(Area, area_id)
            if area is None or area.unit_id != unit_id:
                raise NotFoundError("Area not found for this unit", code="AREA_NOT_FOUND")

    @staticmethod
    async def _find_identical(
        db: AsyncSession,
        unit_id: str,
        area_id: Optional[str],
        day_start: datetime.datetime,
        period: BlockPeriod,
        exclude_id: Optional[str] = None,
    ) -> Optional[ReservationBlock]:
        area_clause = (
            ReservationBlock.area_id.is_(None)
            if area_id is None
            else ReservationBlock.area_id == area_id
        )
        query = select(ReservationBlock).where(
            ReservationBlock.unit_id == unit_id,
            area_clause,
            ReservationBlock.date == day_start,
            ReservationBlock.mode == BlockMode.PERIOD,
            ReservationBlock.period == period,
        )
        if exclude_id:
            query = query.where(ReservationBlock.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalars().first()

    @classmethod
    async def upsert_block(
        cls,
        db: AsyncSession,
        unit_id: str,
        day: datetime.date | datetime.datetime,
        period: BlockPeriod,
        area_id: Optional[str] = None,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ReservationBlock:
        """
        Creates a block, or refreshes the reason of the identical one.

        There is no unique index on blocks; duplicates are avoided by looking
        up (unit, area, day, period) before inserting.
        """
        await cls._check_scope(db, unit_id, area_id)
        day_start = start_of_day(day)

        block = await cls._find_identical(db, unit_id, area_id, day_start, period)
        if block:
            # A repost without a reason keeps the stored one
            if reason is not None:
                block.reason = reason
            await db.commit()
            await db.refresh(block)
            return block

        block = ReservationBlock(
            unit_id=unit_id,
            area_id=area_id,
            date=day_start,
            mode=BlockMode.PERIOD,
            period=period,
            reason=reason,
            created_by=created_by,
        )
        db.add(block)
        await db.commit()
        await db.refresh(block)
        logger.info(
            f"Block created: unit={unit_id} area={area_id or '*'} "
            f"day={day_start.date()} period={period.value}"
        )
        return block

    @staticmethod
    async def list_blocks(
        db: AsyncSession,
        unit_id: Optional[str] = None,
        area_id: Optional[str] = None,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
    ) -> list[ReservationBlock]:
        filters = []
        if unit_id:
            filters.append(ReservationBlock.unit_id == unit_id)
        if area_id:
            filters.append(ReservationBlock.area_id == area_id)
        if date_from:
            filters.append(ReservationBlock.date >= start_of_day(date_from))
        if date_to:
            filters.append(ReservationBlock.date <= day_bounds(date_to).end)

        query = select(ReservationBlock)
        if filters:
            query = query.where(and_(*filters))
        query = query.order_by(ReservationBlock.date.asc(), ReservationBlock.created_at.asc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_block(db: AsyncSession, block_id: str) -> ReservationBlock:
        block = await db.get(ReservationBlock, block_id)
        if block is None:
            raise NotFoundError("Block not found", code="BLOCK_NOT_FOUND")
        return block

    @classmethod
    async def update_block(cls, db: AsyncSession, block_id: str, data: dict) -> ReservationBlock:
        block = await cls.get_block(db, block_id)

        unit_id = data.get("unit_id") or block.unit_id
        area_id = data["area_id"] if "area_id" in data else block.area_id
        if unit_id != block.unit_id or area_id != block.area_id:
            await cls._check_scope(db, unit_id, area_id)

        if data.get("mode") not in (None, BlockMode.PERIOD, BlockMode.PERIOD.value):
            raise ValidationError("Only PERIOD blocks are supported")

        day_start = start_of_day(data["date"]) if data.get("date") is not None else block.date
        period = BlockPeriod(data["period"]) if data.get("period") is not None else block.period
        clash = await cls._find_identical(db, unit_id, area_id, day_start, period, exclude_id=block.id)
        if clash is not None:
            raise ConflictError(
                "An identical block already exists",
                code="BLOCK_EXISTS",
                block_id=clash.id,
            )

        block.unit_id = unit_id
        block.area_id = area_id
        block.date = day_start
        block.period = period
        if "reason" in data:
            block.reason = data["reason"]

        await db.commit()
        await db.refresh(block)
        return block

    @classmethod
    async def delete_block(cls, db: AsyncSession, block_id: str) -> None:
        block = await cls.get_block(db, block_id)
        await db.delete(block)
        await db.commit()
        logger.info(f"Block deleted: {block_id}")
