import pytest

from conftest import DAY, at
from venue_reservations.domain.periods import Period, aggregation_window, day_bounds
from venue_reservations.models import ReservationStatus
from venue_reservations.services.capacity_service import CapacityService


class TestUsedByArea:
    """Seats already taken per area"""

    @pytest.mark.asyncio
    async def test_sums_people_and_kids_per_area(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=3, kids=1)
        await add_reservation(venue.deck, at(15), people=2, kids=0)
        await add_reservation(venue.salao, at(14), people=5, kids=2)

        used = await CapacityService.used_by_area(
            db, [venue.deck.id, venue.salao.id], aggregation_window(DAY, Period.AFTERNOON)
        )

        assert used == {venue.deck.id: 6, venue.salao.id: 7}

    @pytest.mark.asyncio
    async def test_only_counting_statuses(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=2, status=ReservationStatus.AWAITING_CHECKIN)
        await add_reservation(venue.deck, at(13), people=3, status=ReservationStatus.CHECKED_IN)
        await add_reservation(venue.deck, at(13), people=4, status=ReservationStatus.NO_SHOW)
        await add_reservation(venue.deck, at(13), people=5, status=ReservationStatus.CANCELLED)

        used = await CapacityService.used_for_area(db, venue.deck.id, day_bounds(DAY))

        assert used == 5

    @pytest.mark.asyncio
    async def test_window_is_respected(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(11), people=1)  # morning -> afternoon
        await add_reservation(venue.deck, at(17, 29), people=2)
        await add_reservation(venue.deck, at(17, 30), people=4)  # night

        afternoon = await CapacityService.used_for_area(
            db, venue.deck.id, aggregation_window(DAY, Period.AFTERNOON)
        )
        night = await CapacityService.used_for_area(
            db, venue.deck.id, aggregation_window(DAY, Period.NIGHT)
        )

        assert afternoon == 3
        assert night == 4

    @pytest.mark.asyncio
    async def test_absent_areas_and_empty_input(self, db, venue):
        assert await CapacityService.used_by_area(db, [], day_bounds(DAY)) == {}
        assert await CapacityService.used_by_area(db, [venue.deck.id], day_bounds(DAY)) == {}
        assert await CapacityService.used_for_area(db, venue.deck.id, day_bounds(DAY)) == 0
