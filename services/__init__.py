"""Service layer helpers for the SupplyChain ledger backend."""

from .errors import (
    AlreadyExists,
    ErrorKind,
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    LedgerError,
    NotFound,
    Unauthorized,
)
from .identity import IdentityResolver
from .lifecycle import STATUS_LABELS, TRANSITIONS, next_statuses, status_label
from .roles import RoleRegistry
from .store import LedgerState, LedgerStore

__all__ = [
    "AlreadyExists",
    "ErrorKind",
    "InvalidArgument",
    "InvalidState",
    "InvalidTransition",
    "LedgerError",
    "NotFound",
    "Unauthorized",
    "IdentityResolver",
    "STATUS_LABELS",
    "TRANSITIONS",
    "next_statuses",
    "status_label",
    "RoleRegistry",
    "LedgerState",
    "LedgerStore",
]
