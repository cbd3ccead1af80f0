from datetime import time

import pytest

from conftest import DAY, at
from venue_reservations.core.config import settings
from venue_reservations.domain.periods import Period
from venue_reservations.models import BlockPeriod, ReservationStatus
from venue_reservations.services.availability_service import AvailabilityService
from venue_reservations.services.block_service import BlockService


def by_name(views):
    return {v.name: v for v in views}


class TestAvailability:
    """Remaining seats per area"""

    @pytest.mark.asyncio
    async def test_static_listing_without_date(self, db, venue):
        views = by_name(await AvailabilityService.compute_availability(db, venue.unit.id))

        assert set(views) == {"Deck", "Salao"}
        assert views["Deck"].capacity_afternoon == 10
        assert views["Deck"].remaining is None
        assert views["Deck"].period is None

    @pytest.mark.asyncio
    async def test_period_view(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=4, kids=2)
        await add_reservation(venue.deck, at(20), people=3)

        afternoon = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(14, 0))
        )
        night = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(19, 0))
        )

        assert afternoon["Deck"].period == Period.AFTERNOON
        assert afternoon["Deck"].capacity == 10
        assert afternoon["Deck"].remaining == 4
        assert afternoon["Deck"].available == 4
        assert afternoon["Deck"].is_available is True
        assert night["Deck"].remaining == 7

    @pytest.mark.asyncio
    async def test_morning_reservation_uses_afternoon_seats(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(10), people=3)

        views = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(12, 30))
        )

        assert views["Deck"].remaining == 7

    @pytest.mark.asyncio
    async def test_null_capacity_is_zero(self, db, venue):
        views = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(20, 0))
        )

        assert views["Salao"].capacity == 0
        assert views["Salao"].remaining == 0
        assert views["Salao"].is_available is False

    @pytest.mark.asyncio
    async def test_remaining_never_negative(self, db, venue, add_reservation):
        # Seeded past capacity, bypassing admission
        await add_reservation(venue.deck, at(13), people=12)

        views = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(13, 0))
        )

        assert views["Deck"].remaining == 0

    @pytest.mark.asyncio
    async def test_whole_day_view(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=4)
        await add_reservation(venue.deck, at(21), people=5)
        await add_reservation(venue.deck, at(21), people=5, status=ReservationStatus.CANCELLED)

        views = by_name(await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY))

        assert views["Deck"].period is None
        assert views["Deck"].capacity == 20
        assert views["Deck"].remaining == 11

    @pytest.mark.asyncio
    async def test_blocks_force_zero(self, db, venue):
        await BlockService.upsert_block(
            db, venue.unit.id, DAY, BlockPeriod.NIGHT, area_id=venue.deck.id
        )

        night = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(19, 0))
        )
        afternoon = by_name(
            await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY, at_time=time(13, 0))
        )
        whole_day = by_name(await AvailabilityService.compute_availability(db, venue.unit.id, day=DAY))

        assert night["Deck"].remaining == 0
        assert night["Deck"].blocked is True
        assert afternoon["Deck"].remaining == 10
        # A period block does not suppress the whole-day figure
        assert whole_day["Deck"].remaining == 20

    @pytest.mark.asyncio
    async def test_all_day_block_zeroes_both_periods(self, db, venue):
        await BlockService.upsert_block(db, venue.unit.id, DAY, BlockPeriod.ALL_DAY)

        for when in (time(13, 0), time(20, 0), None):
            views = await AvailabilityService.compute_availability(
                db, venue.unit.id, day=DAY, at_time=when
            )
            assert all(v.remaining == 0 for v in views)

    @pytest.mark.asyncio
    async def test_idempotent_and_filterable(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=2)

        first = await AvailabilityService.compute_availability(
            db, venue.unit.id, area_ids=[venue.deck.id], day=DAY, at_time=time(13, 0)
        )
        second = await AvailabilityService.compute_availability(
            db, venue.unit.id, area_ids=[venue.deck.id], day=DAY, at_time=time(13, 0)
        )

        assert [v.model_dump() for v in first] == [v.model_dump() for v in second]
        assert [v.name for v in first] == ["Deck"]

    @pytest.mark.asyncio
    async def test_relative_photo_urls_are_absolutized(self, db, venue, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "public_images_base", "https://cdn.example.com/img/")
        async with session_factory() as session:
            deck = await session.get(type(venue.deck), venue.deck.id)
            deck.photo_url = "/areas/deck.jpg"
            await session.commit()

        views = by_name(await AvailabilityService.compute_availability(db, venue.unit.id))

        assert views["Deck"].photo_url == "https://cdn.example.com/img/areas/deck.jpg"
