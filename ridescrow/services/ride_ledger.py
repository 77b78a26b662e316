"""
Ride Ledger
===========

Applies ride lifecycle transitions against the database, one transaction
per call.  The caller's session is the unit of work: every method either
leaves it with a complete set of changes (ride row, journal entries,
account credits, outbox event) or raises a ``LedgerError`` before writing
anything, and the session owner rolls back.

Concurrency safety
------------------
* The ride row is read with **SELECT ... FOR UPDATE**, so two transitions on
  the same ride serialise and the second sees the first's result.
* Ride ids come from a locked counter row, so ids are gapless even when a
  request rolls back.
* When ``max_concurrent_rides_per_driver`` is set, the accepting driver's
  account row is locked before counting their active rides.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.domain.commands import (
    Accept,
    Cancel,
    Complete,
    Confirm,
    DriverCancel,
    Fund,
    RideCommand,
    command_name,
)
from ridescrow.domain.entities import LedgerPolicy, Ride
from ridescrow.domain.enums import EventType, LedgerEntryType, RideStatus
from ridescrow.domain.errors import LedgerError, NotFound, TransferFailed
from ridescrow.domain.state_machine import Transition, decide
from ridescrow.domain.validation import require_amount, require_text
from ridescrow.infrastructure.models import AccountModel, RideModel
from ridescrow.infrastructure.repositories import (
    AccountRepository,
    CounterRepository,
    LedgerEntryRepository,
    RideEventRepository,
    RideRepository,
    ride_to_entity,
)
from ridescrow.services.driver_registry import DriverRegistry

logger = logging.getLogger(__name__)


class RideLedger:
    def __init__(self, session: AsyncSession, policy: Optional[LedgerPolicy] = None):
        self.session = session
        self.policy = policy or LedgerPolicy()
        self.rides = RideRepository(session)
        self.counters = CounterRepository(session)
        self.accounts = AccountRepository(session)
        self.journal = LedgerEntryRepository(session)
        self.events = RideEventRepository(session)
        self.registry = DriverRegistry(session)

    # ── Creation ──────────────────────────────────────────────────────

    async def request_ride(
        self, caller: str, pickup: str, destination: str, price: int
    ) -> Ride:
        caller = require_text("caller", caller)
        pickup = require_text("pickup", pickup)
        destination = require_text("destination", destination)
        price = require_amount("price", price, positive=True)

        ride_id = await self.counters.next_value()
        row = await self.rides.create(
            RideModel(
                id=ride_id,
                rider=caller,
                driver=None,
                pickup=pickup,
                destination=destination,
                price=price,
                status=RideStatus.REQUESTED,
                escrowed_amount=0,
            )
        )
        await self.events.add(
            EventType.RIDE_REQUESTED,
            {"id": ride_id, "rider": caller, "price": price},
            ride_id=ride_id,
        )
        logger.info("Ride %d requested by %s (price=%d)", ride_id, caller, price)
        return ride_to_entity(row)

    # ── Transitions ───────────────────────────────────────────────────

    async def accept_ride(self, ride_id: int, caller: str) -> Ride:
        return await self.execute(ride_id, Accept(), caller)

    async def fund_ride(self, ride_id: int, caller: str, value: int) -> Ride:
        return await self.execute(ride_id, Fund(value=value), caller)

    async def complete_ride(self, ride_id: int, caller: str) -> Ride:
        return await self.execute(ride_id, Complete(), caller)

    async def confirm_arrival(self, ride_id: int, caller: str) -> Ride:
        return await self.execute(ride_id, Confirm(), caller)

    async def cancel_ride(self, ride_id: int, caller: str) -> Ride:
        return await self.execute(ride_id, Cancel(), caller)

    async def driver_cancel_ride(self, ride_id: int, caller: str) -> Ride:
        return await self.execute(ride_id, DriverCancel(), caller)

    async def execute(self, ride_id: int, command: RideCommand, caller: str) -> Ride:
        """Validate and apply *command* to ride *ride_id* on behalf of *caller*."""
        try:
            return await self._execute(ride_id, command, caller)
        except LedgerError as exc:
            logger.info(
                "Ride %s: %s by %s rejected (%s: %s)",
                ride_id,
                command_name(command),
                caller,
                exc.kind,
                exc.message,
            )
            raise

    async def _execute(self, ride_id: int, command: RideCommand, caller: str) -> Ride:
        caller = require_text("caller", caller)
        if isinstance(command, Fund):
            require_amount("value", command.value)

        row = await self.rides.get_for_update(ride_id)
        if row is None:
            raise NotFound(f"Ride {ride_id} does not exist")
        ride = ride_to_entity(row)

        driver_registered = True
        active_driver_rides = 0
        if isinstance(command, Accept):
            profile = await self.registry.get_driver(caller)
            driver_registered = profile.is_registered
            if self.policy.max_concurrent_rides_per_driver is not None:
                # serialise acceptances by the same driver
                await self.accounts.get_or_create_for_update(caller)
                active_driver_rides = await self.rides.count_active_for_driver(caller)

        transition = decide(
            ride,
            command,
            caller,
            self.policy,
            driver_registered=driver_registered,
            active_driver_rides=active_driver_rides,
        )

        # Resolve every recipient before touching any row.
        recipient: Optional[AccountModel] = None
        if transition.payout:
            payee = (await self.registry.get_driver(ride.driver)).payee
            recipient = await self._payable_account(payee, ride.id)
        elif transition.refund:
            recipient = await self._payable_account(ride.rider, ride.id)

        ride.transition_to(transition.target)
        await self._apply(row, transition, caller, recipient)
        logger.info(
            "Ride %d: %s -> %s by %s",
            ride.id,
            transition.source.value,
            transition.target.value,
            caller,
        )
        return ride_to_entity(row)

    async def _payable_account(self, identity: str, ride_id: int) -> AccountModel:
        account = await self.accounts.get_or_create_for_update(identity)
        if not account.accepts_payments:
            raise TransferFailed(
                f"Ride {ride_id}: recipient {identity} rejected the transfer; "
                "funds stay in escrow"
            )
        return account

    async def _apply(
        self,
        row: RideModel,
        transition: Transition,
        caller: str,
        recipient: Optional[AccountModel],
    ) -> None:
        row.status = transition.target
        if transition.driver is not None:
            row.driver = transition.driver

        if transition.escrow_deposit:
            row.escrowed_amount = (row.escrowed_amount or 0) + transition.escrow_deposit
            await self.journal.record(
                ride_id=row.id,
                entry_type=LedgerEntryType.ESCROW_DEPOSIT,
                account=caller,
                amount=transition.escrow_deposit,
            )

        released = transition.payout or transition.refund
        if released:
            assert recipient is not None
            row.escrowed_amount = (row.escrowed_amount or 0) - released
            recipient.balance = (recipient.balance or 0) + released
            await self.journal.record(
                ride_id=row.id,
                entry_type=(
                    LedgerEntryType.PAYOUT
                    if transition.payout
                    else LedgerEntryType.REFUND
                ),
                account=recipient.identity,
                amount=released,
            )

        await self.events.add(transition.event_type, transition.payload, ride_id=row.id)
        await self.session.flush()

    # ── Accounts ──────────────────────────────────────────────────────

    async def set_accepts_payments(self, caller: str, accepts: bool) -> AccountModel:
        """Let *caller* open or close its account to incoming transfers."""
        caller = require_text("caller", caller)
        account = await self.accounts.get_or_create_for_update(caller)
        account.accepts_payments = accepts
        await self.session.flush()
        logger.info("Account %s accepts_payments=%s", caller, accepts)
        return account
