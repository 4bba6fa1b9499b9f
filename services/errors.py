"""Domain errors raised by the batch ledger."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_TRANSITION = "InvalidTransition"
    INVALID_STATE = "InvalidState"


class LedgerError(ValueError):
    """
    Raised when a ledger operation is rejected.

    The operation had no effect: nothing was written, appended or emitted.
    """

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "reason": self.reason}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason!r})"


class Unauthorized(LedgerError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(LedgerError):
    kind = ErrorKind.ALREADY_EXISTS


class InvalidArgument(LedgerError):
    kind = ErrorKind.INVALID_ARGUMENT


class InvalidTransition(LedgerError):
    kind = ErrorKind.INVALID_TRANSITION


class InvalidState(LedgerError):
    kind = ErrorKind.INVALID_STATE
