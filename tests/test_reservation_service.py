"""
Tests for ReservationService: admission, updates, check-in and lookups
"""
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import func, select

from conftest import DAY, at
from venue_reservations.core.errors import (
    ConflictError,
    GoneError,
    NotFoundError,
    ValidationError,
)
from venue_reservations.models import BlockPeriod, Guest, Reservation, ReservationStatus
from venue_reservations.schemas.guest import GuestCreate
from venue_reservations.services.block_service import BlockService
from venue_reservations.services.guest_service import GuestService
from venue_reservations.services.reservation_service import ReservationService
from venue_reservations.utils.validators import RESERVATION_CODE_RE


class TestCreateReservation:
    """Admission checks, in order"""

    @pytest.mark.asyncio
    async def test_create_fills_codes_and_names(self, db, venue, booking_data):
        reservation = await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(13), people=2, kids=1, utm_source="instagram")
        )

        assert reservation.status == ReservationStatus.AWAITING_CHECKIN
        assert RESERVATION_CODE_RE.match(reservation.reservation_code)
        assert re.fullmatch(r"[0-9a-f]{32}", reservation.qr_token)
        assert reservation.qr_expires_at > datetime.now() + timedelta(hours=47)
        assert reservation.unit_name == "Centro"
        assert reservation.area_name == "Deck"
        assert reservation.party_size == 3
        assert reservation.utm_source == "instagram"

    @pytest.mark.asyncio
    async def test_rejects_when_period_is_full(self, db, venue, add_reservation, booking_data):
        await add_reservation(venue.deck, at(13), people=8)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(db, booking_data(venue.deck, at(14), people=3))

        assert exc.value.code == "NO_CAPACITY"
        assert exc.value.extra["remaining"] == 2
        assert exc.value.extra["period"] == "AFTERNOON"

    @pytest.mark.asyncio
    async def test_kids_count_towards_capacity(self, db, venue, add_reservation, booking_data):
        await add_reservation(venue.deck, at(13), people=8)

        with pytest.raises(ConflictError):
            await ReservationService.create_reservation(
                db, booking_data(venue.deck, at(13), people=2, kids=1)
            )
        reservation = await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(13), people=2)
        )
        assert reservation.party_size == 2

    @pytest.mark.asyncio
    async def test_morning_booking_shares_afternoon_seats(self, db, venue, add_reservation, booking_data):
        await add_reservation(venue.deck, at(9), people=9)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(db, booking_data(venue.deck, at(15), people=2))
        assert exc.value.extra["remaining"] == 1

    @pytest.mark.asyncio
    async def test_night_has_its_own_seats(self, db, venue, add_reservation, booking_data):
        await add_reservation(venue.deck, at(13), people=10)

        reservation = await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(17, 30), people=10)
        )
        assert reservation.reservation_date == at(17, 30)

    @pytest.mark.asyncio
    async def test_null_night_capacity_rejects(self, db, venue, booking_data):
        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(db, booking_data(venue.salao, at(20), people=1))
        assert exc.value.code == "NO_CAPACITY"
        assert exc.value.extra["remaining"] == 0

    @pytest.mark.asyncio
    async def test_blocked_day_wins_over_capacity(self, db, venue, add_reservation, booking_data):
        await add_reservation(venue.deck, at(13), people=10)
        await BlockService.upsert_block(db, venue.unit.id, DAY, BlockPeriod.ALL_DAY)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(db, booking_data(venue.deck, at(13)))

        assert exc.value.code == "BLOCKED_DAY"
        assert exc.value.extra["date"] == "2030-06-15"

    @pytest.mark.asyncio
    async def test_area_block_leaves_other_areas_open(self, db, venue, booking_data):
        await BlockService.upsert_block(
            db, venue.unit.id, DAY, BlockPeriod.AFTERNOON, area_id=venue.deck.id
        )

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(db, booking_data(venue.deck, at(13)))
        assert exc.value.code == "BLOCKED_DAY"

        await ReservationService.create_reservation(db, booking_data(venue.salao, at(13)))
        await ReservationService.create_reservation(db, booking_data(venue.deck, at(19)))

    @pytest.mark.asyncio
    async def test_one_active_reservation_per_contact(self, db, venue, booking_data):
        first = await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(13), email="ana@example.com")
        )
        first_id = first.id

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(
                db, booking_data(venue.salao, at(20, 0, DAY + timedelta(days=3)), email=" ANA@example.com ")
            )
        assert exc.value.code == "ALREADY_HAS_ACTIVE_RESERVATION"
        assert exc.value.extra["reservation_id"] == first_id

        await ReservationService.set_status(db, first_id, ReservationStatus.CANCELLED)
        again = await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(13), email="ana@example.com")
        )
        assert again.id != first_id

    @pytest.mark.asyncio
    async def test_phone_is_a_contact_key(self, db, venue, booking_data):
        await ReservationService.create_reservation(
            db, booking_data(venue.deck, at(13), phone="+55 (11) 98888-7777")
        )

        with pytest.raises(ConflictError) as exc:
            await ReservationService.create_reservation(
                db, booking_data(venue.deck, at(13), phone="5511988887777")
            )
        assert exc.value.code == "ALREADY_HAS_ACTIVE_RESERVATION"

    @pytest.mark.asyncio
    async def test_unit_checked_before_area(self, db, venue, booking_data):
        data = booking_data(venue.deck, at(13), unit_id="missing", area_id="missing")

        with pytest.raises(NotFoundError) as exc:
            await ReservationService.create_reservation(db, data)
        assert exc.value.code == "UNIT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_area_must_belong_to_unit(self, db, venue, booking_data):
        data = booking_data(venue.deck, at(13), area_id=venue.quiosque.id)

        with pytest.raises(NotFoundError) as exc:
            await ReservationService.create_reservation(db, data)
        assert exc.value.code == "AREA_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unit_is_required(self, db, venue, booking_data):
        data = booking_data(venue.deck, at(13), unit_id=None)

        with pytest.raises(ValidationError) as exc:
            await ReservationService.create_reservation(db, data)
        assert exc.value.code == "UNIT_REQUIRED"

    @pytest.mark.asyncio
    async def test_resolves_unit_and_area_by_name(self, db, venue, booking_data):
        data = booking_data(venue.deck, at(13), unit_id=None, area_id=None, unit="CENTRO", area="deck")

        reservation = await ReservationService.create_reservation(db, data)

        assert reservation.unit_id == venue.unit.id
        assert reservation.area_id == venue.deck.id

    @pytest.mark.asyncio
    async def test_unit_name_substring_match(self, db, venue):
        unit = await ReservationService.resolve_unit(db, unit_name="rai")
        assert unit.id == venue.other_unit.id

    @pytest.mark.asyncio
    async def test_offset_is_dropped_not_converted(self, db, venue, booking_data):
        moment = datetime(2030, 6, 15, 13, 0, tzinfo=timezone(timedelta(hours=-3)))

        reservation = await ReservationService.create_reservation(db, booking_data(venue.deck, moment))

        assert reservation.reservation_date == at(13)
        assert reservation.reservation_date.tzinfo is None


class TestUpdateReservation:
    """Capacity re-check with credit for the reservation's own seats"""

    @pytest.mark.asyncio
    async def test_same_slot_growth_uses_credit(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=4)
        await add_reservation(venue.deck, at(14), people=4)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.update_reservation(db, own.id, {"people": 7})
        assert exc.value.code == "AREA_NO_CAPACITY"
        assert exc.value.extra["available"] == 6
        assert exc.value.extra["credit"] == 4

        updated = await ReservationService.update_reservation(db, own.id, {"people": 6})
        assert updated.people == 6

    @pytest.mark.asyncio
    async def test_moving_period_gets_no_credit(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=4)
        await add_reservation(venue.deck, at(20), people=8)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.update_reservation(db, own.id, {"reservation_date": at(19)})
        assert exc.value.extra["credit"] == 0
        assert exc.value.extra["available"] == 2

        stored = await db.get(Reservation, own.id)
        assert stored.reservation_date == at(13)

    @pytest.mark.asyncio
    async def test_moving_area(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=4)

        updated = await ReservationService.update_reservation(db, own.id, {"area_id": venue.salao.id})

        assert updated.area_id == venue.salao.id
        assert updated.area_name == "Salao"

    @pytest.mark.asyncio
    async def test_same_slot_in_blocked_period_may_shrink(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=4)
        await BlockService.upsert_block(db, venue.unit.id, DAY, BlockPeriod.AFTERNOON)

        shrunk = await ReservationService.update_reservation(db, own.id, {"people": 3})
        assert shrunk.people == 3

        with pytest.raises(ConflictError) as exc:
            await ReservationService.update_reservation(db, own.id, {"people": 5})
        assert exc.value.code == "AREA_NO_CAPACITY"

    @pytest.mark.asyncio
    async def test_moving_into_blocked_period_is_rejected(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=2)
        await BlockService.upsert_block(db, venue.unit.id, DAY, BlockPeriod.NIGHT)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.update_reservation(db, own.id, {"reservation_date": at(20)})
        assert exc.value.code == "BLOCKED_DAY"

    @pytest.mark.asyncio
    async def test_non_slot_fields_skip_capacity(self, db, venue, add_reservation):
        own = await add_reservation(venue.deck, at(13), people=12)

        updated = await ReservationService.update_reservation(
            db, own.id, {"notes": "window seat", "email": " Ana@Example.com "}
        )

        assert updated.notes == "window seat"
        assert updated.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_cancelled_reservation_is_not_rechecked(self, db, venue, add_reservation):
        await add_reservation(venue.deck, at(13), people=10)
        own = await add_reservation(venue.deck, at(13), people=2, status=ReservationStatus.CANCELLED)

        updated = await ReservationService.update_reservation(db, own.id, {"people": 5})
        assert updated.people == 5

    @pytest.mark.asyncio
    async def test_unknown_reservation(self, db, venue):
        with pytest.raises(NotFoundError):
            await ReservationService.update_reservation(db, "missing", {"people": 2})


class TestCheckIn:
    @pytest.mark.asyncio
    async def test_check_in_once(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))

        checked = await ReservationService.check_in(db, reservation.id, checked_in_by="staff-1")
        assert checked.status == ReservationStatus.CHECKED_IN
        assert checked.checked_in_at is not None
        assert checked.checked_in_by == "staff-1"

        with pytest.raises(ConflictError) as exc:
            await ReservationService.check_in(db, reservation.id)
        assert exc.value.code == "ALREADY_CHECKED_IN"

    @pytest.mark.asyncio
    async def test_cancelled_cannot_check_in(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13), status=ReservationStatus.CANCELLED)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.check_in(db, reservation.id)
        assert exc.value.code == "INVALID_STATUS"

    @pytest.mark.asyncio
    async def test_check_in_by_token(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))

        checked = await ReservationService.check_in_by_token(db, f"  {reservation.qr_token} ")
        assert checked.id == reservation.id
        assert checked.status == ReservationStatus.CHECKED_IN

    @pytest.mark.asyncio
    async def test_expired_token(self, db, venue, add_reservation):
        reservation = await add_reservation(
            venue.deck, at(13), qr_expires_at=datetime.now() - timedelta(minutes=1)
        )

        with pytest.raises(GoneError) as exc:
            await ReservationService.check_in_by_token(db, reservation.qr_token)
        assert exc.value.code == "QR_EXPIRED"
        with pytest.raises(GoneError):
            await ReservationService.preview_by_token(db, reservation.qr_token)

    @pytest.mark.asyncio
    async def test_unknown_token(self, db, venue):
        with pytest.raises(NotFoundError):
            await ReservationService.check_in_by_token(db, "f" * 32)

    @pytest.mark.asyncio
    async def test_preview_does_not_check_in(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))

        preview = await ReservationService.preview_by_token(db, reservation.qr_token)
        assert preview.status == ReservationStatus.AWAITING_CHECKIN

        stored = await ReservationService.get_reservation(db, reservation.id)
        assert stored.checked_in_at is None


class TestTicketLifecycle:
    @pytest.mark.asyncio
    async def test_renew_qr_resets_check_in(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))
        old_token = reservation.qr_token
        await ReservationService.check_in(db, reservation.id)

        renewed = await ReservationService.renew_qr(db, code=reservation.reservation_code.lower())

        assert renewed.qr_token != old_token
        assert renewed.status == ReservationStatus.AWAITING_CHECKIN
        assert renewed.checked_in_at is None
        assert renewed.qr_expires_at > datetime.now() + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_reactivation_needs_room(self, db, venue, add_reservation):
        cancelled = await add_reservation(venue.deck, at(13), people=4, status=ReservationStatus.CANCELLED)
        await add_reservation(venue.deck, at(13), people=8)

        with pytest.raises(ConflictError) as exc:
            await ReservationService.renew_qr(db, reservation_id=cancelled.id)
        assert exc.value.code == "AREA_NO_CAPACITY"

        with pytest.raises(ConflictError):
            await ReservationService.set_status(db, cancelled.id, ReservationStatus.AWAITING_CHECKIN)

        stored = await db.get(Reservation, cancelled.id)
        assert stored.status == ReservationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_no_show_frees_seats(self, db, venue, add_reservation, booking_data):
        blocker = await add_reservation(venue.deck, at(13), people=10)

        marked = await ReservationService.set_status(db, blocker.id, ReservationStatus.NO_SHOW)
        assert marked.status == ReservationStatus.NO_SHOW

        await ReservationService.create_reservation(db, booking_data(venue.deck, at(13), people=10))

    @pytest.mark.asyncio
    async def test_set_status_with_new_qr(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13), status=ReservationStatus.NO_SHOW)

        restored = await ReservationService.set_status(
            db, reservation.id, ReservationStatus.AWAITING_CHECKIN, renew_qr=True
        )

        assert restored.status == ReservationStatus.AWAITING_CHECKIN
        assert restored.qr_token != reservation.qr_token


class TestLookups:
    @pytest.mark.asyncio
    async def test_lookup_by_code(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))

        found = await ReservationService.lookup_by_code(db, f" {reservation.reservation_code.lower()} ")
        assert found.id == reservation.id

        with pytest.raises(ValidationError) as exc:
            await ReservationService.lookup_by_code(db, "AB-12")
        assert exc.value.code == "INVALID_CODE"

        with pytest.raises(NotFoundError):
            await ReservationService.lookup_by_code(db, "000000")

    @pytest.mark.asyncio
    async def test_find_active(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13), email="joao@example.com")
        await add_reservation(venue.deck, at(14), email="old@example.com", status=ReservationStatus.CANCELLED)

        found = await ReservationService.find_active(db, email="JOAO@example.com")
        assert found.id == reservation.id

        with pytest.raises(NotFoundError) as exc:
            await ReservationService.find_active(db, email="old@example.com")
        assert exc.value.code == "NO_ACTIVE_RESERVATION"

        with pytest.raises(ValidationError):
            await ReservationService.find_active(db)

    @pytest.mark.asyncio
    async def test_list_filters_and_pagination(self, db, venue, add_reservation):
        for hour in (11, 13, 15):
            await add_reservation(venue.deck, at(hour))
        await add_reservation(venue.salao, at(13, 0, DAY + timedelta(days=1)))

        items, total = await ReservationService.list_reservations(db, area_id=venue.deck.id, take=2)
        assert total == 3
        assert [r.reservation_date for r in items] == [at(11), at(13)]

        items, total = await ReservationService.list_reservations(
            db, date_from=DAY + timedelta(days=1), date_to=DAY + timedelta(days=1)
        )
        assert total == 1
        assert items[0].area_id == venue.salao.id

    @pytest.mark.asyncio
    async def test_list_search(self, db, venue, add_reservation):
        target = await add_reservation(venue.deck, at(13), email="carla@example.com")
        await add_reservation(venue.deck, at(14), email="bruno@example.com")

        items, total = await ReservationService.list_reservations(db, search="carla")
        assert total == 1 and items[0].id == target.id

        items, total = await ReservationService.list_reservations(
            db, search=target.reservation_code.lower()
        )
        assert total == 1 and items[0].id == target.id

    @pytest.mark.asyncio
    async def test_list_clamps_page_size(self, db, venue):
        items, total = await ReservationService.list_reservations(db, skip=-5, take=10_000)
        assert items == [] and total == 0


class TestDeleteAndCalendar:
    @pytest.mark.asyncio
    async def test_delete_removes_guests(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(13))
        await GuestService.add_guests_bulk(
            db,
            reservation.id,
            [GuestCreate(name="Ana", email="ana@example.com"), GuestCreate(name="Bia", email="bia@example.com")],
        )

        await ReservationService.delete_reservation(db, reservation.id)

        with pytest.raises(NotFoundError):
            await ReservationService.get_reservation(db, reservation.id)
        remaining = await db.scalar(
            select(func.count()).select_from(Guest).where(Guest.reservation_id == reservation.id)
        )
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_calendar_link(self, db, venue, add_reservation):
        reservation = await add_reservation(venue.deck, at(20), email="host@example.com")
        await GuestService.add_guests_bulk(
            db,
            reservation.id,
            [GuestCreate(name="Host", email="HOST@example.com"), GuestCreate(name="Bia", email="bia@example.com")],
        )

        url, emails = await ReservationService.calendar_link(db, reservation.id)

        assert emails == ["host@example.com", "bia@example.com"]
        parsed = urlparse(url)
        assert parsed.netloc == "calendar.google.com"
        params = parse_qs(parsed.query)
        assert params["action"] == ["TEMPLATE"]
        assert params["dates"] == ["20300615T200000/20300615T220000"]
        assert params["add"] == ["host@example.com,bia@example.com"]
        assert params["text"] == ["Reservation for SEEDED GUEST"]
        assert reservation.reservation_code in params["details"][0]
