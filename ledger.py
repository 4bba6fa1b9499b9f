import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from schemas import (
    Batch,
    BatchCreated,
    BatchStatus,
    BatchStatusUpdated,
    BatchTransferred,
    LedgerEvent,
    RoleAssignments,
    UserRole,
)
from services.errors import (
    AlreadyExists,
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    LedgerError,
    NotFound,
    Unauthorized,
)
from services.lifecycle import INITIAL_STATUS, find_transition, parse_status, status_label
from services.roles import RoleRegistry, check_address
from services.store import LedgerState, LedgerStore
from utils import format_address_display, same_address

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value, name: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgument(f"{name} must be a string")
    return value


class BatchLedger:
    """
    Append-only batch lifecycle ledger.

    Every mutating call runs under one lock and checks all of its
    preconditions before touching state, so a rejected call leaves no
    history entry, no event and no write behind.
    """

    def __init__(
        self,
        roles: RoleRegistry,
        store: Optional[LedgerStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        allow_transfer: bool = True,
    ):
        self._roles = roles
        self._store = store
        self._clock = clock or _utc_now
        self.allow_transfer = allow_transfer
        self._lock = asyncio.Lock()
        self._batches: Dict[str, Batch] = {}  # insertion order is creation order
        self._all_ids: List[str] = []
        self._ids_by_owner: Dict[str, List[str]] = {}
        self._events: List[LedgerEvent] = []
        self._load_state()

    @property
    def roles(self) -> RoleRegistry:
        return self._roles

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load_state(self) -> None:
        if self._store is None:
            return

        state = self._store.load()
        if state is None:
            self._store.save(self._state())
            return

        if not same_address(state.roles.manufacturer, self._roles.manufacturer):
            raise InvalidState(
                f"Stored ledger belongs to manufacturer {state.roles.manufacturer}, "
                f"not {self._roles.manufacturer}"
            )

        # Role changes made after deployment survive restarts
        self._roles = RoleRegistry.from_snapshot(state.roles)
        for batch in state.batches:
            self._batches[batch.batchId] = batch
            self._index(batch)
        self._events = list(state.events)
        logger.info(f"Restored {len(self._batches)} batches and {len(self._events)} events from {self._store.state_path}")

    def _state(
        self,
        pending: Optional[Batch] = None,
        event: Optional[LedgerEvent] = None,
        roles: Optional[RoleAssignments] = None,
    ) -> LedgerState:
        batches = dict(self._batches)
        if pending is not None:
            batches[pending.batchId] = pending
        events = self._events + [event] if event is not None else list(self._events)
        return LedgerState(
            roles=roles or self._roles.snapshot(),
            batches=list(batches.values()),
            events=events,
        )

    def _index(self, batch: Batch) -> None:
        self._all_ids.append(batch.batchId)
        self._ids_by_owner.setdefault(batch.ownerRef, []).append(batch.batchId)

    def _commit(self, batch: Batch, event: LedgerEvent, created: bool = False) -> None:
        # Write first: a failed write must leave memory untouched
        if self._store is not None:
            self._store.save(self._state(pending=batch, event=event))

        self._batches[batch.batchId] = batch
        if created:
            self._index(batch)
        self._events.append(event)

    def _next_sequence(self) -> int:
        return len(self._events) + 1

    def _require(self, batch_id: str) -> Batch:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise NotFound(f"Batch {batch_id} not found")
        return batch

    # ------------------------------------------------------------------
    # Batch lifecycle
    # ------------------------------------------------------------------
    async def create_batch(
        self,
        caller: str,
        batch_id: str,
        quantity: int,
        owner_ref: str,
        label: str,
        initial_location: str,
    ) -> Batch:
        """Register a new batch. Manufacturer only; ids are never reused."""
        try:
            async with self._lock:
                self._roles.require_manufacturer(caller)

                if not isinstance(batch_id, str) or not batch_id.strip():
                    raise InvalidArgument("Batch id must be a non-empty string")
                if batch_id in self._batches:
                    raise AlreadyExists(f"Batch {batch_id} already exists")
                if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                    raise InvalidArgument("Quantity must be a positive integer")
                _require_text(owner_ref, "Owner reference")
                _require_text(label, "Label")
                _require_text(initial_location, "Location")

                now = self._clock()
                batch = Batch(
                    batchId=batch_id,
                    quantity=quantity,
                    ownerRef=owner_ref,
                    label=label,
                    createdAt=now,
                    status=INITIAL_STATUS,
                    location=initial_location,
                    holder=self._roles.manufacturer,
                    history=[f"created by manufacturer at {initial_location}"],
                )
                event = BatchCreated(
                    sequence=self._next_sequence(),
                    timestamp=now,
                    batchId=batch_id,
                    label=label,
                    quantity=quantity,
                    ownerRef=owner_ref,
                )
                self._commit(batch, event, created=True)
        except LedgerError as e:
            logger.warning(f"Rejected creation of batch {batch_id!r}: {e}")
            raise

        logger.info(f"Batch {batch_id} created: {quantity} units for {owner_ref} at {initial_location}")
        return batch.model_copy(deep=True)

    async def update_status(
        self,
        caller: str,
        batch_id: str,
        target_status: Union[BatchStatus, str],
        new_location: str,
    ) -> Batch:
        """Advance a batch one step along the lifecycle table."""
        try:
            async with self._lock:
                batch = self._require(batch_id)
                target = parse_status(target_status)
                _require_text(new_location, "Location")

                transition = find_transition(batch.status, target)
                if not self._roles.has_role(caller, transition.required_role):
                    raise Unauthorized(
                        f"Only the {transition.required_role.value} can mark a batch as "
                        f"'{status_label(target)}'"
                    )

                label = status_label(target)
                updated = batch.model_copy(deep=True)
                updated.status = target
                updated.location = new_location
                if transition.receiver is not None:
                    updated.holder = self._roles.address_of(transition.receiver)
                updated.history.append(f"{label} at {new_location}")

                event = BatchStatusUpdated(
                    sequence=self._next_sequence(),
                    timestamp=self._clock(),
                    batchId=batch_id,
                    newStatusLabel=label,
                    caller=self._roles.address_of(transition.required_role),
                    newLocation=new_location,
                )
                self._commit(updated, event)
        except LedgerError as e:
            logger.warning(f"Rejected status update of batch {batch_id!r}: {e}")
            raise

        logger.info(f"Batch {batch_id} {label} at {new_location} by {format_address_display(event.caller)}")
        return updated.model_copy(deep=True)

    async def transfer_ownership(
        self,
        caller: str,
        batch_id: str,
        new_holder: str,
        new_location: str,
    ) -> Batch:
        """
        Hand physical possession to another address without moving the
        lifecycle status. Only the current holder may do this.
        """
        try:
            async with self._lock:
                if not self.allow_transfer:
                    raise InvalidTransition("Ownership transfer is disabled on this ledger")

                batch = self._require(batch_id)
                if not same_address(caller, batch.holder):
                    raise Unauthorized("Only the current holder can transfer this batch")

                receiver = check_address(new_holder, "holder")
                if same_address(receiver, batch.holder):
                    raise InvalidArgument("New holder must differ from the current holder")
                _require_text(new_location, "Location")

                previous = batch.holder
                updated = batch.model_copy(deep=True)
                updated.holder = receiver
                updated.location = new_location
                updated.history.append(f"ownership transferred from {previous} to {receiver} at {new_location}")

                event = BatchTransferred(
                    sequence=self._next_sequence(),
                    timestamp=self._clock(),
                    batchId=batch_id,
                    fromHolder=previous,
                    toHolder=receiver,
                    newLocation=new_location,
                )
                self._commit(updated, event)
        except LedgerError as e:
            logger.warning(f"Rejected transfer of batch {batch_id!r}: {e}")
            raise

        logger.info(
            f"Batch {batch_id} transferred {format_address_display(previous)} -> "
            f"{format_address_display(receiver)} at {new_location}"
        )
        return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Role administration
    # ------------------------------------------------------------------
    async def set_distributor(self, caller: str, address: str) -> str:
        return await self._set_role(caller, UserRole.DISTRIBUTOR, address)

    async def set_retailer(self, caller: str, address: str) -> str:
        return await self._set_role(caller, UserRole.RETAILER, address)

    async def _set_role(self, caller: str, role: UserRole, address: str) -> str:
        try:
            async with self._lock:
                self._roles.require_manufacturer(caller)
                normalized = check_address(address, role.value)

                if self._store is not None:
                    roles = self._roles.snapshot().model_copy(update={role.value: normalized})
                    self._store.save(self._state(roles=roles))

                if role == UserRole.DISTRIBUTOR:
                    return self._roles.set_distributor(caller, normalized)
                return self._roles.set_retailer(caller, normalized)
        except LedgerError as e:
            logger.warning(f"Rejected {role.value} change to {address!r}: {e}")
            raise

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------
    async def exists(self, batch_id: str) -> bool:
        return batch_id in self._batches

    async def get(self, batch_id: str) -> Batch:
        return self._require(batch_id).model_copy(deep=True)

    async def history(self, batch_id: str) -> List[str]:
        return list(self._require(batch_id).history)

    async def all_ids(self) -> List[str]:
        return list(self._all_ids)

    async def ids_by_owner(self, owner_ref: str) -> List[str]:
        return list(self._ids_by_owner.get(owner_ref, []))

    async def count(self) -> int:
        return len(self._all_ids)

    async def events(self, since: int = 0, batch_id: Optional[str] = None) -> List[LedgerEvent]:
        """Event log in commit order, after sequence number `since`."""
        return [
            event.model_copy()
            for event in self._events
            if event.sequence > since and (batch_id is None or event.batchId == batch_id)
        ]
