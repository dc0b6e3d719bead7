"""
HistoryRecorder -- append-only contract audit timeline.

Responsibility:
    Appends one ContractHistory event per committed transition.  Details
    are stored as canonical JSON so the same payload always produces the
    same text.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction; never commits.

Invariants enforced:
    - Append-only: events are never edited or deleted (ORM listeners on
      ContractHistory raise ImmutabilityViolationError).
    - sequence = max(sequence) + 1 per contract, read while the contract
      row is locked, so concurrent writers cannot allocate the same value.

Failure modes:
    - ContractNotFoundError if the contract does not exist.
    - SQLAlchemy errors propagate; the caller's transaction aborts and no
      partial history is written.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_kernel.domain.approval import HistoryAction, HistoryEntry
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import ContractNotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.contract import Contract
from approval_kernel.models.contract_history import ContractHistory
from approval_kernel.services.base import BaseService
from approval_kernel.utils.hashing import canonicalize_json

logger = get_logger("services.history")


class HistoryRecorder(BaseService[ContractHistory]):
    """Appends immutable history events."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        contract_id: UUID,
        action: HistoryAction,
        details: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> HistoryEntry:
        """Append one event to the contract's timeline.

        Locks the contract row (a no-op if the caller already holds it)
        before allocating the next sequence number.

        Raises:
            ContractNotFoundError: No such contract.
        """
        locked = self.session.execute(
            select(Contract.id).where(Contract.id == contract_id).with_for_update()
        ).scalar_one_or_none()
        if locked is None:
            raise ContractNotFoundError(str(contract_id))

        next_sequence = self.session.execute(
            select(func.coalesce(func.max(ContractHistory.sequence), 0) + 1).where(
                ContractHistory.contract_id == contract_id
            )
        ).scalar_one()

        entry = ContractHistory(
            contract_id=contract_id,
            sequence=next_sequence,
            action=action.value,
            details=canonicalize_json(details),
            actor_id=actor_id,
            created_at=self._clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "history_recorded",
            extra={
                "contract_id": str(contract_id),
                "action": action.value,
                "sequence": next_sequence,
            },
        )
        return entry.to_dto()
