"""
Read-only view of committed ledger state.

``LedgerReader`` never locks and never writes, so the authenticated API and
the anonymous public mirror can share it and return identical snapshots for
the same committed state.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.domain.entities import Driver, Ride
from ridescrow.domain.errors import NotFound
from ridescrow.infrastructure.models import RideEventModel
from ridescrow.infrastructure.repositories import (
    AccountRepository,
    CounterRepository,
    LedgerEntryRepository,
    RideEventRepository,
    RideRepository,
    ride_to_entity,
)
from ridescrow.services.driver_registry import DriverRegistry


@dataclass(frozen=True)
class AccountSnapshot:
    identity: str
    balance: int = 0
    accepts_payments: bool = True


@dataclass(frozen=True)
class CustodyReport:
    total_escrowed: int
    custodial_balance: int

    @property
    def balanced(self) -> bool:
        return self.total_escrowed == self.custodial_balance


class LedgerReader:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rides = RideRepository(session)
        self.counters = CounterRepository(session)

    async def ride_counter(self) -> int:
        return await self.counters.current()

    async def get_ride(self, ride_id: int) -> Ride:
        counter = await self.ride_counter()
        if not 1 <= ride_id <= counter:
            raise NotFound(f"Ride {ride_id} does not exist (counter={counter})")
        row = await self.rides.get_by_id(ride_id)
        if row is None:
            raise NotFound(f"Ride {ride_id} does not exist")
        return ride_to_entity(row)

    async def list_rides(self) -> list[Ride]:
        """Every ride with id in 1..counter, in id order."""
        counter = await self.ride_counter()
        return [ride_to_entity(r) for r in await self.rides.list_up_to(counter)]

    async def get_driver(self, identity: str) -> Driver:
        return await DriverRegistry(self.session).get_driver(identity)

    async def get_account(self, identity: str) -> AccountSnapshot:
        row = await AccountRepository(self.session).get_by_identity(identity)
        if row is None:
            return AccountSnapshot(identity=identity)
        return AccountSnapshot(
            identity=row.identity,
            balance=row.balance or 0,
            accepts_payments=bool(row.accepts_payments),
        )

    async def ride_events(self, ride_id: int) -> list[RideEventModel]:
        await self.get_ride(ride_id)
        return await RideEventRepository(self.session).for_ride(ride_id)

    async def custody_report(self) -> CustodyReport:
        return CustodyReport(
            total_escrowed=await self.rides.total_escrowed(),
            custodial_balance=await LedgerEntryRepository(self.session).custodial_balance(),
        )
