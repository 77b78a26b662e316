"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    ACCEPTED = "ACCEPTED"
    FUNDED = "FUNDED"
    COMPLETED = "COMPLETED"
    FINALIZED = "FINALIZED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of statuses reachable by *some*
# transition.  Who may trigger each edge is decided in ``state_machine``.
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.FUNDED, RideStatus.CANCELLED},
    RideStatus.FUNDED: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: {RideStatus.FINALIZED},
    RideStatus.FINALIZED: set(),
    RideStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in RIDE_TRANSITIONS.items() if not targets
)

# Rides that count against a driver's concurrent-ride allowance.
ACTIVE_DRIVER_STATUSES = (RideStatus.ACCEPTED, RideStatus.FUNDED)


class LedgerEntryType(str, enum.Enum):
    ESCROW_DEPOSIT = "ESCROW_DEPOSIT"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"


class EventType(str, enum.Enum):
    RIDE_REQUESTED = "ride_requested"
    RIDE_ACCEPTED = "ride_accepted"
    RIDE_FUNDED = "ride_funded"
    RIDE_COMPLETED = "ride_completed"
    RIDE_FINALIZED = "ride_finalized"
    RIDE_CANCELLED = "ride_cancelled"
    DRIVER_REGISTERED = "driver_registered"
