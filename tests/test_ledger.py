"""
Ride ledger tests against the database.

Each successful call is committed like the API's unit of work would; each
rejected call is followed by a rollback, after which the committed state is
re-read to show nothing changed.
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.domain.entities import LedgerPolicy
from ridescrow.domain.enums import EventType, LedgerEntryType, RideStatus
from ridescrow.domain.errors import (
    InsufficientValue,
    InvalidArgument,
    InvalidState,
    NotFound,
    OverFunded,
    TransferFailed,
    Unauthorized,
)
from ridescrow.infrastructure.repositories import LedgerEntryRepository
from ridescrow.services.driver_registry import DriverRegistry
from ridescrow.services.reader import LedgerReader
from ridescrow.services.ride_ledger import RideLedger
from tests.conftest import DRIVER, DRIVER_2, RIDER, RIDER_2, STRANGER


async def _register_drivers(session: AsyncSession, *identities: str) -> None:
    registry = DriverRegistry(session)
    for identity in identities:
        await registry.register_driver(identity, "Budi", "B 1234 XYZ", "Sedan", 2000)
    await session.commit()


async def _ride_in(
    session: AsyncSession, ledger: RideLedger, status: RideStatus, price: int = 1000
) -> int:
    """Create a ride and drive it forward to *status*."""
    ride = await ledger.request_ride(RIDER, "A", "B", price)
    steps = [
        (RideStatus.ACCEPTED, lambda: ledger.accept_ride(ride.id, DRIVER)),
        (RideStatus.FUNDED, lambda: ledger.fund_ride(ride.id, RIDER, price)),
        (RideStatus.COMPLETED, lambda: ledger.complete_ride(ride.id, DRIVER)),
        (RideStatus.FINALIZED, lambda: ledger.confirm_arrival(ride.id, RIDER)),
    ]
    for reached, step in steps:
        if status == RideStatus.REQUESTED:
            break
        await step()
        if reached == status:
            break
    await session.commit()
    return ride.id


@pytest.fixture
def ledger(db_session) -> RideLedger:
    return RideLedger(db_session, LedgerPolicy())


# ── Full lifecycle ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_happy_path_moves_funds_to_driver(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    reader = LedgerReader(db_session)

    ride = await ledger.request_ride(RIDER, "A", "B", 1000)
    await db_session.commit()
    assert ride.id == 1
    assert ride.status == RideStatus.REQUESTED

    ride = await ledger.accept_ride(1, DRIVER)
    await db_session.commit()
    assert ride.status == RideStatus.ACCEPTED
    assert ride.driver == DRIVER

    ride = await ledger.fund_ride(1, RIDER, 1000)
    await db_session.commit()
    assert ride.status == RideStatus.FUNDED
    assert ride.escrowed_amount == 1000

    ride = await ledger.complete_ride(1, DRIVER)
    await db_session.commit()
    assert ride.status == RideStatus.COMPLETED
    assert ride.escrowed_amount == 1000

    ride = await ledger.confirm_arrival(1, RIDER)
    await db_session.commit()
    assert ride.status == RideStatus.FINALIZED
    assert ride.escrowed_amount == 0

    assert (await reader.get_account(DRIVER)).balance == 1000
    assert (await reader.get_account(RIDER)).balance == 0

    entries = await LedgerEntryRepository(db_session).for_ride(1)
    assert [(e.entry_type, e.account, e.amount) for e in entries] == [
        (LedgerEntryType.ESCROW_DEPOSIT, RIDER, 1000),
        (LedgerEntryType.PAYOUT, DRIVER, 1000),
    ]

    report = await reader.custody_report()
    assert report.total_escrowed == 0
    assert report.balanced


@pytest.mark.asyncio
async def test_events_record_each_transition(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.FINALIZED)

    events = await LedgerReader(db_session).ride_events(ride_id)
    assert [e.event_type for e in events] == [
        EventType.RIDE_REQUESTED.value,
        EventType.RIDE_ACCEPTED.value,
        EventType.RIDE_FUNDED.value,
        EventType.RIDE_COMPLETED.value,
        EventType.RIDE_FINALIZED.value,
    ]
    assert events[0].payload == {"id": ride_id, "rider": RIDER, "price": 1000}
    assert events[-1].payload == {"id": ride_id, "amount": 1000}


# ── Rejections leave state untouched ──────────────────────────────────


@pytest.mark.asyncio
async def test_second_accept_fails_and_keeps_first_driver(db_session, ledger):
    await _register_drivers(db_session, DRIVER, DRIVER_2)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    with pytest.raises(InvalidState):
        await ledger.accept_ride(ride_id, DRIVER_2)
    await db_session.rollback()

    ride = await LedgerReader(db_session).get_ride(ride_id)
    assert ride.status == RideStatus.ACCEPTED
    assert ride.driver == DRIVER


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "value, error", [(500, InsufficientValue), (0, InsufficientValue), (1500, OverFunded)]
)
async def test_fund_with_wrong_value_rejected(db_session, ledger, value, error):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    with pytest.raises(error):
        await ledger.fund_ride(ride_id, RIDER, value)
    await db_session.rollback()

    ride = await LedgerReader(db_session).get_ride(ride_id)
    assert ride.status == RideStatus.ACCEPTED
    assert ride.escrowed_amount == 0
    assert await LedgerEntryRepository(db_session).for_ride(ride_id) == []


@pytest.mark.asyncio
async def test_fund_negative_value_is_invalid_argument(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    with pytest.raises(InvalidArgument):
        await ledger.fund_ride(ride_id, RIDER, -1)


@pytest.mark.asyncio
async def test_only_rider_may_fund(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    with pytest.raises(Unauthorized):
        await ledger.fund_ride(ride_id, STRANGER, 1000)


@pytest.mark.asyncio
async def test_resubmitted_fund_is_rejected(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.FUNDED)

    with pytest.raises(InvalidState):
        await ledger.fund_ride(ride_id, RIDER, 1000)
    await db_session.rollback()

    ride = await LedgerReader(db_session).get_ride(ride_id)
    assert ride.escrowed_amount == 1000


@pytest.mark.asyncio
async def test_resubmitted_confirm_does_not_pay_twice(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.FINALIZED)

    with pytest.raises(InvalidState):
        await ledger.confirm_arrival(ride_id, RIDER)
    await db_session.rollback()

    assert (await LedgerReader(db_session).get_account(DRIVER)).balance == 1000


@pytest.mark.asyncio
async def test_no_backward_transition(db_session, ledger):
    await _register_drivers(db_session, DRIVER, DRIVER_2)
    ride_id = await _ride_in(db_session, ledger, RideStatus.FUNDED)

    with pytest.raises(InvalidState):
        await ledger.accept_ride(ride_id, DRIVER_2)
    await db_session.rollback()
    assert (await LedgerReader(db_session).get_ride(ride_id)).status == RideStatus.FUNDED


@pytest.mark.asyncio
@pytest.mark.parametrize("ride_id", [0, 2, 99])
async def test_unknown_ride_is_not_found(db_session, ledger, ride_id):
    await _register_drivers(db_session, DRIVER)
    await _ride_in(db_session, ledger, RideStatus.REQUESTED)

    with pytest.raises(NotFound):
        await ledger.accept_ride(ride_id, DRIVER)
    with pytest.raises(NotFound):
        await LedgerReader(db_session).get_ride(ride_id)


# ── Acceptance rules ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_rider_cannot_accept_own_ride(db_session, ledger):
    await _register_drivers(db_session, RIDER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.REQUESTED)

    with pytest.raises(Unauthorized):
        await ledger.accept_ride(ride_id, RIDER)


@pytest.mark.asyncio
async def test_unregistered_driver_cannot_accept(db_session, ledger):
    ride_id = await _ride_in(db_session, ledger, RideStatus.REQUESTED)

    with pytest.raises(Unauthorized):
        await ledger.accept_ride(ride_id, STRANGER)

    await db_session.rollback()
    relaxed = RideLedger(db_session, LedgerPolicy(require_registered_driver=False))
    ride = await relaxed.accept_ride(ride_id, STRANGER)
    assert ride.driver == STRANGER


@pytest.mark.asyncio
async def test_max_concurrent_rides_per_driver(db_session):
    await _register_drivers(db_session, DRIVER)
    ledger = RideLedger(db_session, LedgerPolicy(max_concurrent_rides_per_driver=1))

    first = await ledger.request_ride(RIDER, "A", "B", 1000)
    second = await ledger.request_ride(RIDER_2, "C", "D", 700)
    await ledger.accept_ride(first.id, DRIVER)
    await db_session.commit()

    with pytest.raises(Unauthorized):
        await ledger.accept_ride(second.id, DRIVER)
    await db_session.rollback()

    # FUNDED still counts; COMPLETED no longer does
    await ledger.fund_ride(first.id, RIDER, 1000)
    await db_session.commit()
    with pytest.raises(Unauthorized):
        await ledger.accept_ride(second.id, DRIVER)
    await db_session.rollback()

    await ledger.complete_ride(first.id, DRIVER)
    ride = await ledger.accept_ride(second.id, DRIVER)
    await db_session.commit()
    assert ride.status == RideStatus.ACCEPTED


@pytest.mark.asyncio
async def test_unlimited_concurrent_rides_by_default(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ids = [(await ledger.request_ride(RIDER, "A", "B", 100)).id for _ in range(3)]
    for ride_id in ids:
        await ledger.accept_ride(ride_id, DRIVER)
    await db_session.commit()

    rides = await LedgerReader(db_session).list_rides()
    assert all(r.driver == DRIVER for r in rides)


# ── Cancellation ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_requested_ride(db_session, ledger):
    ride_id = await _ride_in(db_session, ledger, RideStatus.REQUESTED)

    ride = await ledger.cancel_ride(ride_id, RIDER)
    await db_session.commit()
    assert ride.status == RideStatus.CANCELLED
    assert await LedgerEntryRepository(db_session).for_ride(ride_id) == []


@pytest.mark.asyncio
async def test_cancel_accepted_ride_by_rider(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    ride = await ledger.cancel_ride(ride_id, RIDER)
    assert ride.status == RideStatus.CANCELLED


@pytest.mark.asyncio
async def test_driver_cancel_is_distinguishable(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.ACCEPTED)

    with pytest.raises(Unauthorized):
        await ledger.cancel_ride(ride_id, DRIVER)
    await db_session.rollback()

    ride = await ledger.driver_cancel_ride(ride_id, DRIVER)
    await db_session.commit()
    assert ride.status == RideStatus.CANCELLED

    events = await LedgerReader(db_session).ride_events(ride_id)
    assert events[-1].event_type == EventType.RIDE_CANCELLED.value
    assert events[-1].payload["cancelled_by"] == "driver"


@pytest.mark.asyncio
async def test_cancel_funded_ride_rejected_by_default(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.FUNDED)

    with pytest.raises(InvalidState):
        await ledger.cancel_ride(ride_id, RIDER)
    await db_session.rollback()

    ride = await LedgerReader(db_session).get_ride(ride_id)
    assert ride.status == RideStatus.FUNDED
    assert ride.escrowed_amount == 1000


@pytest.mark.asyncio
async def test_cancel_funded_ride_refunds_rider_when_enabled(db_session):
    await _register_drivers(db_session, DRIVER)
    ledger = RideLedger(db_session, LedgerPolicy(allow_funded_cancellation=True))
    ride_id = await _ride_in(db_session, ledger, RideStatus.FUNDED)

    ride = await ledger.cancel_ride(ride_id, RIDER)
    await db_session.commit()
    assert ride.status == RideStatus.CANCELLED
    assert ride.escrowed_amount == 0

    reader = LedgerReader(db_session)
    assert (await reader.get_account(RIDER)).balance == 1000
    assert (await reader.get_account(DRIVER)).balance == 0
    assert (await reader.custody_report()).balanced

    entries = await LedgerEntryRepository(db_session).for_ride(ride_id)
    assert entries[-1].entry_type == LedgerEntryType.REFUND
    assert entries[-1].amount == 1000


# ── Transfer failures keep funds claimable ────────────────────────────


@pytest.mark.asyncio
async def test_rejected_payout_leaves_ride_completed(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.COMPLETED)
    await ledger.set_accepts_payments(DRIVER, False)
    await db_session.commit()

    with pytest.raises(TransferFailed):
        await ledger.confirm_arrival(ride_id, RIDER)
    await db_session.rollback()

    reader = LedgerReader(db_session)
    ride = await reader.get_ride(ride_id)
    assert ride.status == RideStatus.COMPLETED
    assert ride.escrowed_amount == 1000
    assert (await reader.custody_report()).custodial_balance == 1000

    # Driver re-opens the account; the rider's retry succeeds.
    await ledger.set_accepts_payments(DRIVER, True)
    await db_session.commit()
    ride = await ledger.confirm_arrival(ride_id, RIDER)
    await db_session.commit()
    assert ride.status == RideStatus.FINALIZED
    assert (await reader.get_account(DRIVER)).balance == 1000


@pytest.mark.asyncio
async def test_payout_follows_updated_payout_address(db_session, ledger):
    await _register_drivers(db_session, DRIVER)
    ride_id = await _ride_in(db_session, ledger, RideStatus.COMPLETED)
    await ledger.set_accepts_payments(DRIVER, False)
    await DriverRegistry(db_session).register_driver(
        DRIVER, "Budi", "B 1234 XYZ", "Sedan", 2000, payout_address=DRIVER_2
    )
    await db_session.commit()

    await ledger.confirm_arrival(ride_id, RIDER)
    await db_session.commit()

    reader = LedgerReader(db_session)
    assert (await reader.get_account(DRIVER_2)).balance == 1000
    assert (await reader.get_account(DRIVER)).balance == 0


@pytest.mark.asyncio
async def test_rejected_refund_keeps_ride_funded(db_session):
    await _register_drivers(db_session, DRIVER)
    ledger = RideLedger(db_session, LedgerPolicy(allow_funded_cancellation=True))
    ride_id = await _ride_in(db_session, ledger, RideStatus.FUNDED)
    await ledger.set_accepts_payments(RIDER, False)
    await db_session.commit()

    with pytest.raises(TransferFailed):
        await ledger.cancel_ride(ride_id, RIDER)
    await db_session.rollback()

    ride = await LedgerReader(db_session).get_ride(ride_id)
    assert ride.status == RideStatus.FUNDED
    assert ride.escrowed_amount == 1000


# ── Counter & enumeration ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_enumeration_has_no_gaps(db_session, ledger):
    for i in range(5):
        await ledger.request_ride(RIDER, f"P{i}", f"D{i}", 100 + i)
    await db_session.commit()

    reader = LedgerReader(db_session)
    counter = await reader.ride_counter()
    assert counter == 5
    rides = await reader.list_rides()
    assert [r.id for r in rides] == list(range(1, counter + 1))
    assert [r.price for r in rides] == [100, 101, 102, 103, 104]


@pytest.mark.asyncio
async def test_rolled_back_request_does_not_consume_an_id(db_session, ledger):
    await ledger.request_ride(RIDER, "A", "B", 100)
    await db_session.rollback()

    ride = await ledger.request_ride(RIDER, "A", "B", 100)
    await db_session.commit()
    assert ride.id == 1
    assert await LedgerReader(db_session).ride_counter() == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "pickup, dest, price",
    [("", "B", 100), ("A", "  ", 100), ("A", "B", 0), ("A", "B", -5), ("A", "B", True)],
)
async def test_invalid_request_rejected(db_session, ledger, pickup, dest, price):
    with pytest.raises(InvalidArgument):
        await ledger.request_ride(RIDER, pickup, dest, price)
    await db_session.rollback()
    assert await LedgerReader(db_session).ride_counter() == 0


@pytest.mark.asyncio
async def test_custody_balanced_across_mixed_outcomes(db_session):
    await _register_drivers(db_session, DRIVER)
    ledger = RideLedger(db_session, LedgerPolicy(allow_funded_cancellation=True))
    await _ride_in(db_session, ledger, RideStatus.FINALIZED, price=1000)
    await _ride_in(db_session, ledger, RideStatus.COMPLETED, price=300)
    await _ride_in(db_session, ledger, RideStatus.FUNDED, price=200)
    refunded = await _ride_in(db_session, ledger, RideStatus.FUNDED, price=50)
    await ledger.cancel_ride(refunded, RIDER)
    await db_session.commit()

    report = await LedgerReader(db_session).custody_report()
    assert report.total_escrowed == 500
    assert report.custodial_balance == 500
    assert report.balanced
