"""
Module: approval_kernel.models.contract
Responsibility: ORM persistence for contracts under approval.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is one of the ContractStatus values (DB check constraint).
    - Once approval begins, status is written only by the approval
      workflow service, under a SELECT ... FOR UPDATE on this row.
    - The contract row is the serialization point for every decision and
      for history sequence allocation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import TimestampedBase, UUIDString
from approval_kernel.db.types import UTCDateTime

if TYPE_CHECKING:
    from approval_kernel.domain.approval import ContractMetadata, ContractView
    from approval_kernel.models.approval import Approval
    from approval_kernel.models.contract_history import ContractHistory


class Contract(TimestampedBase):
    """
    A contract that moves through the approval workflow.

    Guarantees:
        - number is unique.
        - approvals are loaded in (workflow_step, created_at) order.
        - history is loaded in sequence order.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'IN_APPROVAL', 'APPROVED', 'REJECTED', "
            "'SIGNED', 'ARCHIVED')",
            name="ck_contracts_valid_status",
        ),
        Index("idx_contracts_status", "status"),
        Index("idx_contracts_initiator", "initiator_id"),
    )

    number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    counterparty: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")

    initiator_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    workflow_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_templates.id"), nullable=True,
    )

    approvals: Mapped[list["Approval"]] = relationship(
        "Approval",
        back_populates="contract",
        order_by="[Approval.workflow_step, Approval.created_at]",
        lazy="selectin",
    )

    history: Mapped[list["ContractHistory"]] = relationship(
        "ContractHistory",
        back_populates="contract",
        order_by="ContractHistory.sequence",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Contract {self.number} status={self.status}>"

    def to_metadata(self, step_due_days=None) -> ContractMetadata:
        from approval_kernel.domain.approval import ContractMetadata

        return ContractMetadata(
            contract_id=self.id,
            number=self.number,
            counterparty=self.counterparty,
            initiator_id=self.initiator_id,
            amount=self.amount,
            step_due_days=dict(step_due_days or {}),
        )

    def to_dto(self, include_history: bool = True) -> ContractView:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import ContractStatus, ContractView

        return ContractView(
            id=self.id,
            number=self.number,
            counterparty=self.counterparty,
            status=ContractStatus(self.status),
            initiator_id=self.initiator_id,
            amount=self.amount,
            start_date=self.start_date,
            end_date=self.end_date,
            shipping_address=self.shipping_address,
            shipping_method=self.shipping_method,
            tracking_number=self.tracking_number,
            shipped_at=self.shipped_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            approvals=tuple(a.to_dto() for a in self.approvals),
            history=tuple(h.to_dto() for h in self.history) if include_history else (),
        )
