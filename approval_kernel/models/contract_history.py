"""
Module: approval_kernel.models.contract_history
Responsibility: ORM persistence for the append-only contract audit timeline.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - History events are append-only; no UPDATE or DELETE (ORM listeners).
    - sequence is unique per contract and allocated by HistoryRecorder
      while the contract row is locked, so (created_at, sequence) is a
      total order even when two events share a timestamp.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError on a duplicate (contract_id, sequence).
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.db.types import UTCDateTime
from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from approval_kernel.domain.approval import HistoryEntry
    from approval_kernel.models.contract import Contract

logger = get_logger("models.contract_history")


class ContractHistory(Base):
    """One immutable audit event for a contract."""

    __tablename__ = "contract_history"

    __table_args__ = (
        UniqueConstraint("contract_id", "sequence", name="uq_contract_history_seq"),
        Index("idx_contract_history_timeline", "contract_id", "created_at", "sequence"),
        Index("idx_contract_history_action", "action"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    # Canonical JSON text
    details: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="history")

    def __repr__(self) -> str:
        return f"<ContractHistory {self.contract_id}#{self.sequence} {self.action}>"

    def to_dto(self) -> HistoryEntry:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import HistoryAction, HistoryEntry

        return HistoryEntry(
            id=self.id,
            contract_id=self.contract_id,
            sequence=self.sequence,
            action=HistoryAction(self.action),
            details=json.loads(self.details),
            actor_id=self.actor_id,
            created_at=self.created_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ContractHistory, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to contract history events."""
    logger.error(
        "immutability_violation",
        extra={
            "entity_type": "ContractHistory",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ContractHistory",
        entity_id=str(target.id),
        reason="History events are immutable -- cannot modify",
    )


@event.listens_for(ContractHistory, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of contract history events."""
    logger.error(
        "immutability_violation",
        extra={
            "entity_type": "ContractHistory",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ContractHistory",
        entity_id=str(target.id),
        reason="History events are immutable -- cannot delete",
    )
