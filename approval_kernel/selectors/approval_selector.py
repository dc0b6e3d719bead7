"""
Module: approval_kernel.selectors.approval_selector
Responsibility: Read access to contracts and approval rows.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from approval_kernel.domain.approval import ApprovalRecord, ApprovalStatus, ContractView
from approval_kernel.exceptions import ContractNotFoundError
from approval_kernel.models.approval import Approval
from approval_kernel.models.contract import Contract
from approval_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ApprovalFilter:
    """Every field is optional; set fields are ANDed.

    ``due_before`` is exclusive and ``due_after`` inclusive, so adjacent
    windows never double count a row.  Rows without a due date never
    match a due-date bound.
    """

    approver_id: UUID | None = None
    status: ApprovalStatus | None = None
    due_before: datetime | None = None
    due_after: datetime | None = None
    contract_id: UUID | None = None
    limit: int | None = None


class ApprovalSelector(BaseSelector[Approval]):
    def get_contract(self, contract_id: UUID, include_history: bool = True) -> ContractView:
        """
        Raises:
            ContractNotFoundError: No such contract.
        """
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract.to_dto(include_history=include_history)

    def list_approvals(self, filter: ApprovalFilter | None = None) -> list[ApprovalRecord]:
        """Rows newest first, then by step within a contract."""
        f = filter or ApprovalFilter()
        query = select(Approval)
        if f.approver_id is not None:
            query = query.where(Approval.approver_id == f.approver_id)
        if f.status is not None:
            query = query.where(Approval.status == ApprovalStatus(f.status).value)
        if f.due_before is not None:
            query = query.where(Approval.due_date < f.due_before)
        if f.due_after is not None:
            query = query.where(Approval.due_date >= f.due_after)
        if f.contract_id is not None:
            query = query.where(Approval.contract_id == f.contract_id)
        query = query.order_by(
            Approval.created_at.desc(),
            Approval.contract_id,
            Approval.workflow_step,
            Approval.approver_id,
        )
        if f.limit is not None:
            query = query.limit(f.limit)
        return [row.to_dto() for row in self.session.execute(query).scalars()]
