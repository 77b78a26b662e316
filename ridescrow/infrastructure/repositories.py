"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
ledger-relevant queries only.  Methods named ``*_for_update`` take a row
lock (``SELECT ... FOR UPDATE``) that is held until the transaction ends.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AccountModel,
    DriverModel,
    LedgerCounterModel,
    LedgerEntryModel,
    RideEventModel,
    RideModel,
)
from ridescrow.domain.entities import Driver, Ride
from ridescrow.domain.enums import (
    ACTIVE_DRIVER_STATUSES,
    EventType,
    LedgerEntryType,
    RideStatus,
)

RIDE_COUNTER = "ride"

_INSERT_BY_DIALECT = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


async def _insert_if_absent(session: AsyncSession, model, **values) -> None:
    """INSERT ... ON CONFLICT DO NOTHING on the primary key.

    A concurrent creator of the same row blocks on the key and then skips,
    so the ``SELECT ... FOR UPDATE`` that follows always has a row to lock.
    """
    insert = _INSERT_BY_DIALECT[session.get_bind().dialect.name]
    await session.execute(insert(model).values(**values).on_conflict_do_nothing())


def ride_to_entity(row: RideModel) -> Ride:
    return Ride(
        id=row.id,
        rider=row.rider,
        driver=row.driver,
        pickup=row.pickup,
        destination=row.destination,
        price=row.price,
        status=RideStatus(row.status),
        escrowed_amount=row.escrowed_amount or 0,
    )


def driver_to_entity(row: DriverModel) -> Driver:
    return Driver(
        identity=row.identity,
        is_registered=bool(row.is_registered),
        name=row.name,
        license_plate=row.license_plate,
        vehicle_type=row.vehicle_type,
        rate_per_km=row.rate_per_km,
        payout_address=row.payout_address,
    )


class CounterRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def current(self, name: str = RIDE_COUNTER) -> int:
        result = await self.session.execute(
            select(LedgerCounterModel.value).where(LedgerCounterModel.name == name)
        )
        return result.scalar() or 0

    async def ensure(self, name: str = RIDE_COUNTER) -> None:
        await _insert_if_absent(self.session, LedgerCounterModel, name=name, value=0)

    async def next_value(self, name: str = RIDE_COUNTER) -> int:
        """Increment the counter under a row lock and return the new value."""
        await self.ensure(name)
        result = await self.session.execute(
            select(LedgerCounterModel)
            .where(LedgerCounterModel.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        counter = result.scalar_one()
        counter.value += 1
        await self.session.flush()
        return counter.value


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_up_to(self, counter: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id >= 1, RideModel.id <= counter)
            .order_by(RideModel.id)
        )
        return list(result.scalars().all())

    async def count_active_for_driver(self, driver: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideModel)
            .where(
                RideModel.driver == driver,
                RideModel.status.in_(ACTIVE_DRIVER_STATUSES),
            )
        )
        return result.scalar() or 0

    async def total_escrowed(self) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(RideModel.escrowed_amount), 0))
        )
        return int(result.scalar() or 0)


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_identity(self, identity: str) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, identity)

    async def upsert(
        self,
        *,
        identity: str,
        name: str,
        license_plate: str,
        vehicle_type: str,
        rate_per_km: int,
        payout_address: str,
    ) -> DriverModel:
        await _insert_if_absent(
            self.session,
            DriverModel,
            identity=identity,
            is_registered=True,
            name=name,
            license_plate=license_plate,
            vehicle_type=vehicle_type,
            rate_per_km=rate_per_km,
            payout_address=payout_address,
        )
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.identity == identity)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        driver = result.scalar_one()
        driver.is_registered = True
        driver.name = name
        driver.license_plate = license_plate
        driver.vehicle_type = vehicle_type
        driver.rate_per_km = rate_per_km
        driver.payout_address = payout_address
        await self.session.flush()
        return driver


class AccountRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_identity(self, identity: str) -> Optional[AccountModel]:
        return await self.session.get(AccountModel, identity)

    async def get_or_create_for_update(self, identity: str) -> AccountModel:
        await _insert_if_absent(
            self.session,
            AccountModel,
            identity=identity,
            balance=0,
            accepts_payments=True,
        )
        result = await self.session.execute(
            select(AccountModel)
            .where(AccountModel.identity == identity)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


class LedgerEntryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        *,
        ride_id: int,
        entry_type: LedgerEntryType,
        account: str,
        amount: int,
    ) -> LedgerEntryModel:
        entry = LedgerEntryModel(
            ride_id=ride_id, entry_type=entry_type, account=account, amount=amount
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def for_ride(self, ride_id: int) -> list[LedgerEntryModel]:
        result = await self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.ride_id == ride_id)
            .order_by(LedgerEntryModel.id)
        )
        return list(result.scalars().all())

    async def custodial_balance(self) -> int:
        """Deposits minus releases, recomputed from the journal."""
        result = await self.session.execute(
            select(LedgerEntryModel.entry_type, func.sum(LedgerEntryModel.amount))
            .group_by(LedgerEntryModel.entry_type)
        )
        totals = {LedgerEntryType(t): int(s or 0) for t, s in result.all()}
        return (
            totals.get(LedgerEntryType.ESCROW_DEPOSIT, 0)
            - totals.get(LedgerEntryType.PAYOUT, 0)
            - totals.get(LedgerEntryType.REFUND, 0)
        )


class RideEventRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self, event_type: EventType, payload: dict, ride_id: int | None = None
    ) -> RideEventModel:
        event = RideEventModel(
            ride_id=ride_id, event_type=event_type.value, payload=payload
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def for_ride(self, ride_id: int) -> list[RideEventModel]:
        result = await self.session.execute(
            select(RideEventModel)
            .where(RideEventModel.ride_id == ride_id)
            .order_by(RideEventModel.id)
        )
        return list(result.scalars().all())

    async def get_unpublished_for_update(self, limit: int) -> list[RideEventModel]:
        result = await self.session.execute(
            select(RideEventModel)
            .where(RideEventModel.published_at.is_(None))
            .order_by(RideEventModel.id)
            .limit(limit)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    def mark_published(events: list[RideEventModel]) -> None:
        now = datetime.now(timezone.utc)
        for event in events:
            event.published_at = now
