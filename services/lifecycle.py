"""
Batch lifecycle: status labels and the role-gated transition table.

    CREATED -> DISPATCHED_BY_MANUFACTURER -> DELIVERED_TO_DISTRIBUTOR
            -> DISPATCHED_BY_DISTRIBUTOR -> DELIVERED_TO_RETAILER
            -> DELIVERED_TO_CONSUMER

Each edge is gated by exactly one role. "Delivered" edges hand the batch
to the role that signs for it. DELIVERED_TO_CONSUMER has no outgoing edge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from schemas import BatchStatus, UserRole

from .errors import InvalidArgument, InvalidState, InvalidTransition


STATUS_LABELS: Dict[BatchStatus, str] = {
    BatchStatus.CREATED: "manufactured",
    BatchStatus.DISPATCHED_BY_MANUFACTURER: "dispatched by manufacturer",
    BatchStatus.DELIVERED_TO_DISTRIBUTOR: "delivered to distributor",
    BatchStatus.DISPATCHED_BY_DISTRIBUTOR: "dispatched by distributor",
    BatchStatus.DELIVERED_TO_RETAILER: "delivered to retailer",
    BatchStatus.DELIVERED_TO_CONSUMER: "delivered to consumer",
}

INITIAL_STATUS = BatchStatus.CREATED
FINAL_STATUS = BatchStatus.DELIVERED_TO_CONSUMER


@dataclass(frozen=True)
class Transition:
    source: BatchStatus
    target: BatchStatus
    required_role: UserRole
    receiver: Optional[UserRole] = None  # role that becomes holder, if any


TRANSITIONS: Dict[Tuple[BatchStatus, BatchStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition(BatchStatus.CREATED, BatchStatus.DISPATCHED_BY_MANUFACTURER, UserRole.MANUFACTURER),
        Transition(
            BatchStatus.DISPATCHED_BY_MANUFACTURER,
            BatchStatus.DELIVERED_TO_DISTRIBUTOR,
            UserRole.DISTRIBUTOR,
            receiver=UserRole.DISTRIBUTOR,
        ),
        Transition(BatchStatus.DELIVERED_TO_DISTRIBUTOR, BatchStatus.DISPATCHED_BY_DISTRIBUTOR, UserRole.DISTRIBUTOR),
        Transition(
            BatchStatus.DISPATCHED_BY_DISTRIBUTOR,
            BatchStatus.DELIVERED_TO_RETAILER,
            UserRole.RETAILER,
            receiver=UserRole.RETAILER,
        ),
        Transition(BatchStatus.DELIVERED_TO_RETAILER, BatchStatus.DELIVERED_TO_CONSUMER, UserRole.RETAILER),
    )
}

# Label table and enum must stay in lockstep
_unlabelled = set(BatchStatus) - set(STATUS_LABELS)
if _unlabelled:
    raise InvalidState(f"Statuses without a label: {sorted(s.value for s in _unlabelled)}")


def status_label(status: BatchStatus) -> str:
    """Human-readable label for a status. Unknown values fail loudly."""
    try:
        return STATUS_LABELS[status]
    except (KeyError, TypeError):
        raise InvalidState(f"No label for status {status!r}") from None


def parse_status(value: Union[BatchStatus, str]) -> BatchStatus:
    """Accept an enum member, its value ("DeliveredToRetailer") or its label ("delivered to retailer")."""
    if isinstance(value, BatchStatus):
        return value
    if isinstance(value, str):
        text = value.strip()
        for status, label in STATUS_LABELS.items():
            if text == status.value or text == status.name or text.lower() == label:
                return status
    raise InvalidArgument(f"Unknown status {value!r}")


def find_transition(current: BatchStatus, target: BatchStatus) -> Transition:
    transition = TRANSITIONS.get((current, target))
    if transition is None:
        raise InvalidTransition(
            f"Cannot move from '{status_label(current)}' to '{status_label(target)}'"
        )
    return transition


def next_statuses(current: BatchStatus) -> List[BatchStatus]:
    return [target for (source, target) in TRANSITIONS if source == current]


def is_final(status: BatchStatus) -> bool:
    return not next_statuses(status)
