"""
Pytest configuration for venue reservation tests
"""
import os
import sys
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

# Settings are read at import time, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

# Ensure the package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from venue_reservations.database import Base, enable_sqlite_foreign_keys
from venue_reservations.models import Area, Reservation, ReservationStatus, Unit
from venue_reservations.services.code_service import random_code

# A fixed future day keeps QR expiry and "today" out of the way
DAY = date(2030, 6, 15)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so several sessions can run concurrently."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    enable_sqlite_foreign_keys(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def venue(session_factory):
    """
    Seeded in its own session, so the returned rows are detached and stay
    readable whatever the test session commits or rolls back.

    Unit "Centro" with:
      deck   - 10 afternoon / 10 night
      salao  - 20 afternoon / no night capacity
    plus a second unit "Praia" with one area, for cross-unit checks.
    """
    async with session_factory() as session:
        centro = Unit(name="Centro", slug="centro")
        praia = Unit(name="Praia", slug="praia")
        session.add_all([centro, praia])
        await session.flush()

        deck = Area(unit_id=centro.id, name="Deck", capacity_afternoon=10, capacity_night=10)
        salao = Area(unit_id=centro.id, name="Salao", capacity_afternoon=20, capacity_night=None)
        quiosque = Area(unit_id=praia.id, name="Quiosque", capacity_afternoon=5, capacity_night=5)
        session.add_all([deck, salao, quiosque])
        await session.commit()

    return SimpleNamespace(unit=centro, other_unit=praia, deck=deck, salao=salao, quiosque=quiosque)


@pytest.fixture
def add_reservation(session_factory):
    """Inserts a reservation directly, bypassing admission. Returns a detached row."""

    async def _add(
        area: Area,
        when: datetime,
        people: int = 2,
        kids: int = 0,
        status: ReservationStatus = ReservationStatus.AWAITING_CHECKIN,
        email: str | None = None,
        qr_expires_at: datetime | None = None,
    ) -> Reservation:
        reservation = Reservation(
            full_name="Seeded Guest",
            people=people,
            kids=kids,
            reservation_date=when,
            unit_id=area.unit_id,
            area_id=area.id,
            area_name=area.name,
            status=status,
            email=email,
            reservation_code=random_code(),
            qr_token=uuid.uuid4().hex,
            qr_expires_at=qr_expires_at or datetime.now() + timedelta(hours=48),
        )
        async with session_factory() as session:
            session.add(reservation)
            await session.commit()
        return reservation

    return _add


@pytest.fixture
def booking_data():
    """Builds an admission payload for the target area. Extra keys override the defaults."""

    def _build(target: Area, when: datetime, people: int = 2, kids: int = 0, **extra) -> dict:
        data = {
            "full_name": "Maria Souza",
            "people": people,
            "kids": kids,
            "reservation_date": when,
            "unit_id": target.unit_id,
            "area_id": target.id,
            "email": f"guest-{uuid.uuid4().hex[:8]}@example.com",
            "phone": None,
        }
        data.update(extra)
        return data

    return _build
