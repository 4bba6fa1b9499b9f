"""File-backed persistence for ledger state."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from schemas import AnyLedgerEvent, Batch, RoleAssignments

from .errors import InvalidState

logger = logging.getLogger(__name__)


class LedgerState(BaseModel):
    roles: RoleAssignments
    batches: List[Batch] = Field(default_factory=list)  # creation order
    events: List[AnyLedgerEvent] = Field(default_factory=list)


class LedgerStore:
    """Whole-state JSON snapshot, rewritten atomically on every commit."""

    def __init__(self, state_path: str):
        self.state_path = Path(state_path)
        self.state_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def load(self) -> Optional[LedgerState]:
        if not self.state_path.exists():
            return None
        try:
            raw = json.loads(self.state_path.read_text(encoding="utf-8"))
            return LedgerState.model_validate(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            # Refuse to start from a damaged audit trail
            raise InvalidState(f"Corrupted ledger state at {self.state_path}: {exc}") from exc

    def save(self, state: LedgerState) -> None:
        tmp_path = self.state_path.with_suffix(".tmp")
        try:
            tmp_path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(self.state_path)
        except OSError as e:
            logger.error(f"Failed to write ledger state to {self.state_path}: {e}")
            raise
