"""
Module: approval_kernel.models.approval
Responsibility: ORM persistence for approval rows, one per
    (contract, workflow_step, approver).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(contract_id, workflow_step, approver_id).
    - workflow_step >= 1 and status in (PENDING, APPROVED, REJECTED)
      (DB check constraints).
    - A REJECTED row carries a comment (DB check constraint).
    - Rows leave PENDING through a conditional UPDATE only (see
      ApprovalWorkflowService.decide); terminal rows are never rewritten.

Failure modes:
    - IntegrityError on a duplicate (contract, step, approver) row.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import TimestampedBase, UUIDString
from approval_kernel.db.types import UTCDateTime

if TYPE_CHECKING:
    from approval_kernel.domain.approval import ApprovalRecord
    from approval_kernel.models.contract import Contract


class Approval(TimestampedBase):
    """Persistent approval row."""

    __tablename__ = "approvals"

    __table_args__ = (
        UniqueConstraint(
            "contract_id", "workflow_step", "approver_id",
            name="uq_approvals_contract_step_approver",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_approvals_valid_status",
        ),
        CheckConstraint("workflow_step >= 1", name="ck_approvals_step_positive"),
        CheckConstraint(
            "status != 'REJECTED' OR comment IS NOT NULL",
            name="ck_approvals_reject_comment",
        ),
        # Scanner: pending rows by due date
        Index("idx_approvals_status_due", "status", "due_date"),
        Index("idx_approvals_approver_status", "approver_id", "status"),
        Index("idx_approvals_contract_step", "contract_id", "workflow_step"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    workflow_step: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="approvals")

    def __repr__(self) -> str:
        return (
            f"<Approval contract={self.contract_id} step={self.workflow_step} "
            f"approver={self.approver_id} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import ApprovalRecord, ApprovalStatus

        return ApprovalRecord(
            id=self.id,
            contract_id=self.contract_id,
            approver_id=self.approver_id,
            workflow_step=self.workflow_step,
            status=ApprovalStatus(self.status),
            comment=self.comment,
            due_date=self.due_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            decided_at=self.decided_at,
        )
