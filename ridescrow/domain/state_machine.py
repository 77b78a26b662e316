"""
Ride Lifecycle State Machine
============================

``decide`` is a pure function: given a ride snapshot, a command, the caller
and the ledger policy it either raises a ``LedgerError`` or returns the
``Transition`` to apply.  It never mutates the ride; the ledger service
applies the returned effects inside one transaction.

Check order per command
-----------------------
1. Status admits the command (``InvalidState``; terminal rides always fail here).
2. Caller is the party entitled to it (``Unauthorized``).
3. Attached value matches the price (``InsufficientValue`` / ``OverFunded``).

Fund movements
--------------
* ``Fund``    -- value -> ride escrow  (the only credit)
* ``Confirm`` -- escrow -> driver payee
* ``Cancel``  -- escrow -> rider, only when the ride was FUNDED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .commands import (
    Accept,
    Cancel,
    Complete,
    Confirm,
    DriverCancel,
    Fund,
    RideCommand,
)
from .entities import LedgerPolicy, Ride
from .enums import EventType, RideStatus
from .errors import InsufficientValue, InvalidState, OverFunded, Unauthorized


@dataclass(frozen=True)
class Transition:
    ride_id: int
    source: RideStatus
    target: RideStatus
    event_type: EventType
    payload: dict = field(default_factory=dict)
    driver: Optional[str] = None  # set only by Accept
    escrow_deposit: int = 0
    payout: int = 0
    refund: int = 0


def _require_status(ride: Ride, action: str, *allowed: RideStatus) -> None:
    if ride.status not in allowed:
        expected = " or ".join(s.value for s in allowed)
        raise InvalidState(
            f"Ride {ride.id} is {ride.status.value}; {action} requires {expected}"
        )


def _require_rider(ride: Ride, caller: str, action: str) -> None:
    if caller != ride.rider:
        raise Unauthorized(f"Only the rider of ride {ride.id} may {action} it")


def _require_driver(ride: Ride, caller: str, action: str) -> None:
    if ride.driver is None or caller != ride.driver:
        raise Unauthorized(
            f"Only the accepted driver of ride {ride.id} may {action} it"
        )


def decide(
    ride: Ride,
    command: RideCommand,
    caller: str,
    policy: LedgerPolicy,
    *,
    driver_registered: bool = True,
    active_driver_rides: int = 0,
) -> Transition:
    """Validate *command* against *ride* and return the resulting transition.

    ``driver_registered`` and ``active_driver_rides`` describe the caller and
    are only consulted for ``Accept``.
    """
    match command:
        case Accept():
            _require_status(ride, "accept", RideStatus.REQUESTED)
            if caller == ride.rider:
                raise Unauthorized(f"Rider cannot accept their own ride {ride.id}")
            if policy.require_registered_driver and not driver_registered:
                raise Unauthorized(f"{caller} is not a registered driver")
            limit = policy.max_concurrent_rides_per_driver
            if limit is not None and active_driver_rides >= limit:
                raise Unauthorized(
                    f"Driver {caller} already has {active_driver_rides} active "
                    f"ride(s); limit is {limit}"
                )
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.ACCEPTED,
                event_type=EventType.RIDE_ACCEPTED,
                payload={"id": ride.id, "driver": caller},
                driver=caller,
            )

        case Fund(value=value):
            _require_status(ride, "fund", RideStatus.ACCEPTED)
            _require_rider(ride, caller, "fund")
            if value < ride.price:
                raise InsufficientValue(
                    f"Ride {ride.id} costs {ride.price}; attached {value}"
                )
            if value > ride.price:
                raise OverFunded(
                    f"Ride {ride.id} costs {ride.price}; attached {value}"
                )
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.FUNDED,
                event_type=EventType.RIDE_FUNDED,
                payload={"id": ride.id, "amount": value},
                escrow_deposit=value,
            )

        case Complete():
            _require_status(ride, "complete", RideStatus.FUNDED)
            _require_driver(ride, caller, "complete")
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.COMPLETED,
                event_type=EventType.RIDE_COMPLETED,
                payload={"id": ride.id},
            )

        case Confirm():
            _require_status(ride, "confirm arrival", RideStatus.COMPLETED)
            _require_rider(ride, caller, "confirm")
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.FINALIZED,
                event_type=EventType.RIDE_FINALIZED,
                payload={"id": ride.id, "amount": ride.escrowed_amount},
                payout=ride.escrowed_amount,
            )

        case Cancel():
            if ride.status == RideStatus.FUNDED and not policy.allow_funded_cancellation:
                raise InvalidState(
                    f"Ride {ride.id} is FUNDED; cancellation after funding is disabled"
                )
            _require_status(
                ride,
                "cancel",
                RideStatus.REQUESTED,
                RideStatus.ACCEPTED,
                RideStatus.FUNDED,
            )
            _require_rider(ride, caller, "cancel")
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.CANCELLED,
                event_type=EventType.RIDE_CANCELLED,
                payload={
                    "id": ride.id,
                    "cancelled_by": "rider",
                    "refunded": ride.escrowed_amount,
                },
                refund=ride.escrowed_amount,
            )

        case DriverCancel():
            _require_status(ride, "driver cancel", RideStatus.ACCEPTED)
            if not policy.allow_driver_cancellation:
                raise InvalidState("Driver cancellation is disabled")
            _require_driver(ride, caller, "cancel")
            return Transition(
                ride_id=ride.id,
                source=ride.status,
                target=RideStatus.CANCELLED,
                event_type=EventType.RIDE_CANCELLED,
                payload={"id": ride.id, "cancelled_by": "driver", "refunded": 0},
            )

    raise TypeError(f"Not a ride command: {command!r}")
