"""Argument checks shared by the registry and the ride ledger."""

from __future__ import annotations

from .errors import InvalidArgument


def require_text(field_name: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field_name} must be a non-empty string")
    return value.strip()


def require_amount(field_name: str, value: int, *, positive: bool = False) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{field_name} must be an integer")
    if positive and value <= 0:
        raise InvalidArgument(f"{field_name} must be strictly positive")
    if value < 0:
        raise InvalidArgument(f"{field_name} must not be negative")
    return value
