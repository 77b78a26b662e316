"""
Ride transition commands.

A closed set of variants; ``state_machine.decide`` dispatches on them with a
``match`` statement.  ``parse_action`` is the only place an action *name*
is turned into a command.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import InvalidArgument


@dataclass(frozen=True)
class Accept:
    pass


@dataclass(frozen=True)
class Fund:
    value: int


@dataclass(frozen=True)
class Complete:
    pass


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class DriverCancel:
    pass


RideCommand = Union[Accept, Fund, Complete, Confirm, Cancel, DriverCancel]


def parse_action(action: str, value: int | None = None) -> RideCommand:
    """Build a command from its wire name (``"fund"`` etc.)."""
    match action:
        case "accept":
            return Accept()
        case "fund":
            if value is None:
                raise InvalidArgument("fund requires an attached value")
            return Fund(value=value)
        case "complete":
            return Complete()
        case "confirm":
            return Confirm()
        case "cancel":
            return Cancel()
        case "driver_cancel":
            return DriverCancel()
        case _:
            raise InvalidArgument(f"Unknown ride action: {action!r}")


def command_name(command: RideCommand) -> str:
    match command:
        case Accept():
            return "accept"
        case Fund():
            return "fund"
        case Complete():
            return "complete"
        case Confirm():
            return "confirm"
        case Cancel():
            return "cancel"
        case DriverCancel():
            return "driver_cancel"
    raise TypeError(f"Not a ride command: {command!r}")
