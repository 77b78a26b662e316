"""
Ledger error kinds.

Every error aborts the whole operation: the surrounding transaction is
rolled back and the caller receives ``kind`` plus a readable message.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every rejection raised by the ledger."""

    kind: str = "LedgerError"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class NotFound(LedgerError):
    kind = "NotFound"
    status_code = 404


class Unauthorized(LedgerError):
    kind = "Unauthorized"
    status_code = 403


class InvalidState(LedgerError):
    kind = "InvalidState"
    status_code = 409


class InsufficientValue(LedgerError):
    kind = "InsufficientValue"
    status_code = 422


class OverFunded(LedgerError):
    kind = "OverFunded"
    status_code = 422


class TransferFailed(LedgerError):
    kind = "TransferFailed"
    status_code = 424


class InvalidArgument(LedgerError):
    kind = "InvalidArgument"
    status_code = 400
