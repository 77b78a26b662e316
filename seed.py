"""
Seed script -- populates the ledger with sample data for reviewers.

Run after migrations (or against an empty dev database):
    python seed.py

Creates, through the ledger services so every invariant holds:
  - 3 registered drivers
  - 6 rides spread across the lifecycle
    (REQUESTED, ACCEPTED, FUNDED, COMPLETED, FINALIZED, CANCELLED)

Prints a bearer token per identity for trying the API.
"""

import asyncio

from sqlalchemy import text

from ridescrow.api.security import create_access_token
from ridescrow.config import settings
from ridescrow.domain.entities import LedgerPolicy
from ridescrow.infrastructure.database import async_session_factory, engine, init_db
from ridescrow.services.driver_registry import DriverRegistry
from ridescrow.services.ride_ledger import RideLedger

RIDERS = [
    "0x1111111111111111111111111111111111111111",
    "0x2222222222222222222222222222222222222222",
]

DRIVERS = [
    {"identity": "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa", "name": "Budi Santoso", "plate": "B 1234 XYZ", "type": "Sedan", "rate": 2_000},
    {"identity": "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb", "name": "Siti Rahma", "plate": "D 4321 ABC", "type": "MPV", "rate": 2_500},
    {"identity": "0xcccccccccccccccccccccccccccccccccccccccc", "name": "Agus Wijaya", "plate": "L 777 QQ", "type": "Hatchback", "rate": 1_800},
]

# (rider index, driver index, pickup, destination, price, stop after)
RIDES = [
    (0, None, "Bandara Soekarno-Hatta", "Monas", 150_000, "REQUESTED"),
    (1, 0, "Stasiun Gambir", "Kota Tua", 40_000, "ACCEPTED"),
    (0, 1, "Blok M", "Senayan", 35_000, "FUNDED"),
    (1, 2, "Kemang", "Cilandak", 30_000, "COMPLETED"),
    (0, 0, "Menteng", "Kuningan", 25_000, "FINALIZED"),
    (1, None, "Ancol", "Pluit", 45_000, "CANCELLED"),
]

STEPS = ["ACCEPTED", "FUNDED", "COMPLETED", "FINALIZED"]


async def seed() -> None:
    await init_db()

    async with async_session_factory() as session:
        existing = await session.execute(text("SELECT COUNT(*) FROM rides"))
        if existing.scalar():
            print("Database already seeded -- skipping.")
            return

        registry = DriverRegistry(session)
        ledger = RideLedger(session, LedgerPolicy.from_settings(settings))

        for d in DRIVERS:
            await registry.register_driver(
                d["identity"], d["name"], d["plate"], d["type"], d["rate"]
            )
        print(f"  Registered {len(DRIVERS)} drivers")

        for rider_idx, driver_idx, pickup, dest, price, stop in RIDES:
            rider = RIDERS[rider_idx]
            ride = await ledger.request_ride(rider, pickup, dest, price)
            if stop == "CANCELLED":
                await ledger.cancel_ride(ride.id, rider)
                continue
            if stop == "REQUESTED":
                continue
            driver = DRIVERS[driver_idx]["identity"]
            for step in STEPS[: STEPS.index(stop) + 1]:
                if step == "ACCEPTED":
                    await ledger.accept_ride(ride.id, driver)
                elif step == "FUNDED":
                    await ledger.fund_ride(ride.id, rider, price)
                elif step == "COMPLETED":
                    await ledger.complete_ride(ride.id, driver)
                elif step == "FINALIZED":
                    await ledger.confirm_arrival(ride.id, rider)
        print(f"  Created {len(RIDES)} rides")

        await session.commit()

    print("\nBearer tokens:")
    for identity in RIDERS + [d["identity"] for d in DRIVERS]:
        print(f"  {identity}  {create_access_token(identity, expires_minutes=24 * 60)}")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
