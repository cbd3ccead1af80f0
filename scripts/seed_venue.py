import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.append(os.getcwd())

from sqlalchemy import select

from venue_reservations.database import AsyncSessionLocal, init_db
from venue_reservations.models import Area, Unit
from venue_reservations.utils.validators import slugify

DEFAULT_AREAS = [
    # name, afternoon seats, night seats
    ("Salao", 60, 80),
    ("Deck", 30, 30),
    ("Varanda", 20, None),
]


async def seed(unit_name: str):
    await init_db()
    async with AsyncSessionLocal() as session:
        slug = slugify(unit_name)
        result = await session.execute(select(Unit).where(Unit.slug == slug))
        unit = result.scalar_one_or_none()
        if unit:
            print(f"Unit '{unit_name}' already exists - OK")
            return

        unit = Unit(name=unit_name, slug=slug)
        session.add(unit)
        await session.flush()

        for name, afternoon, night in DEFAULT_AREAS:
            session.add(
                Area(unit_id=unit.id, name=name, capacity_afternoon=afternoon, capacity_night=night)
            )
        await session.commit()
        print(f"Created unit {unit.name} ({unit.id}) with {len(DEFAULT_AREAS)} areas")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("unit_name", help="Unit display name")
    args = parser.parse_args()

    asyncio.run(seed(args.unit_name))
