"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (REQUESTED -> ACCEPTED -> FUNDED -> COMPLETED -> FINALIZED | CANCELLED).
- ``Driver.unregistered`` is the zero value returned for unknown identities.
- ``LedgerPolicy`` groups the configurable rules the ledger is run with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import RIDE_TRANSITIONS, TERMINAL_STATUSES, RideStatus
from .errors import InvalidState


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: int
    rider: str
    pickup: str
    destination: str
    price: int
    driver: Optional[str] = None
    status: RideStatus = RideStatus.REQUESTED
    escrowed_amount: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidState(
                f"Ride {self.id}: cannot transition from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status


@dataclass
class Driver:
    identity: str
    is_registered: bool = False
    name: str = ""
    license_plate: str = ""
    vehicle_type: str = ""
    rate_per_km: int = 0
    payout_address: Optional[str] = None

    @classmethod
    def unregistered(cls, identity: str) -> "Driver":
        return cls(identity=identity)

    @property
    def payee(self) -> str:
        """Where payouts for this driver are sent."""
        return self.payout_address or self.identity


# ── Policy ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LedgerPolicy:
    max_concurrent_rides_per_driver: Optional[int] = None
    allow_funded_cancellation: bool = False
    allow_driver_cancellation: bool = True
    require_registered_driver: bool = True

    @classmethod
    def from_settings(cls, settings) -> "LedgerPolicy":
        return cls(
            max_concurrent_rides_per_driver=settings.max_concurrent_rides_per_driver,
            allow_funded_cancellation=settings.allow_funded_cancellation,
            allow_driver_cancellation=settings.allow_driver_cancellation,
            require_registered_driver=settings.require_registered_driver,
        )
