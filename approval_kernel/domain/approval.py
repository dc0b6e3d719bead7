"""
Approval domain types (``approval_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the contract approval workflow: contract and
approval status enumerations with their transition tables, the history
action vocabulary, frozen DTOs for approvals, history entries and
contracts, and the derived per-contract workflow state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` -- an approval row leaves PENDING exactly
  once, to APPROVED or REJECTED, and is never reopened.
* ``CONTRACT_TRANSITIONS`` -- the only legal contract status changes.
  The engine itself sets IN_APPROVAL, APPROVED and REJECTED.
* ``is_contiguous_from_one`` -- a contract's workflow steps are 1..N.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID


# =========================================================================
# Status enumerations and transition tables
# =========================================================================


class ContractStatus(str, Enum):
    """Contract lifecycle states."""

    DRAFT = "DRAFT"
    IN_APPROVAL = "IN_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SIGNED = "SIGNED"
    ARCHIVED = "ARCHIVED"


CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.IN_APPROVAL}),
    ContractStatus.IN_APPROVAL: frozenset({
        ContractStatus.APPROVED,
        ContractStatus.REJECTED,
    }),
    ContractStatus.APPROVED: frozenset({ContractStatus.SIGNED}),
    ContractStatus.REJECTED: frozenset({ContractStatus.ARCHIVED}),
    ContractStatus.SIGNED: frozenset({ContractStatus.ARCHIVED}),
    ContractStatus.ARCHIVED: frozenset(),
}


class ApprovalStatus(str, Enum):
    """Approval row lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}


class ApprovalDecision(str, Enum):
    """Decision types that an approver can make."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def resulting_status(self) -> ApprovalStatus:
        if self is ApprovalDecision.APPROVE:
            return ApprovalStatus.APPROVED
        return ApprovalStatus.REJECTED


class HistoryAction(str, Enum):
    """Contract history event tags.

    Every state transition the engine commits appends exactly one event
    with one of these tags.
    """

    APPROVAL_PROCESS_STARTED = "APPROVAL_PROCESS_STARTED"
    APPROVAL_DECIDED = "APPROVAL_DECIDED"
    CONTRACT_UPDATED = "CONTRACT_UPDATED"
    SHIPPING_UPDATED = "SHIPPING_UPDATED"


# =========================================================================
# Derived workflow state
# =========================================================================


class WorkflowPhase(str, Enum):
    """Per-contract workflow phase, derived and never stored."""

    NOT_STARTED = "not_started"
    IN_APPROVAL = "in_approval"
    COMPLETED_APPROVED = "completed_approved"
    COMPLETED_REJECTED = "completed_rejected"


@dataclass(frozen=True)
class WorkflowState:
    """Derived workflow state; ``current_step`` is set only while in approval."""

    phase: WorkflowPhase
    current_step: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (
            WorkflowPhase.COMPLETED_APPROVED,
            WorkflowPhase.COMPLETED_REJECTED,
        )


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalRecord:
    """Immutable snapshot of one approval row."""

    id: UUID
    contract_id: UUID
    approver_id: UUID
    workflow_step: int
    status: ApprovalStatus
    comment: str | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    decided_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot of one contract history event."""

    id: UUID
    contract_id: UUID
    sequence: int
    action: HistoryAction
    details: dict[str, Any]
    actor_id: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class ContractMetadata:
    """The slice of a contract that deadlines and notifications need.

    ``step_due_days`` carries per-step SLAs from the workflow template the
    contract was started from; they take precedence over configuration.
    """

    contract_id: UUID
    number: str
    counterparty: str
    initiator_id: UUID
    amount: Decimal | None = None
    step_due_days: Mapping[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ContractView:
    """Contract with its approvals (step order) and history (timeline order)."""

    id: UUID
    number: str
    counterparty: str
    status: ContractStatus
    initiator_id: UUID
    amount: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    shipping_address: str | None = None
    shipping_method: str | None = None
    tracking_number: str | None = None
    shipped_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    approvals: tuple[ApprovalRecord, ...] = ()
    history: tuple[HistoryEntry, ...] = ()

    @property
    def workflow_state(self) -> WorkflowState:
        return derive_workflow_state(self.status, self.approvals)

    @property
    def metadata(self) -> ContractMetadata:
        return ContractMetadata(
            contract_id=self.id,
            number=self.number,
            counterparty=self.counterparty,
            initiator_id=self.initiator_id,
            amount=self.amount,
        )


@dataclass(frozen=True)
class StepAssignment:
    """Approvers assigned to one workflow step of an approval set."""

    step_number: int
    approver_ids: tuple[UUID, ...]
    role: str | None = None


# =========================================================================
# Pure helpers
# =========================================================================


def is_contiguous_from_one(step_numbers: Iterable[int]) -> bool:
    """True iff the distinct step numbers are exactly 1..N (N >= 1)."""
    distinct = set(step_numbers)
    return bool(distinct) and distinct == set(range(1, len(distinct) + 1))


def derive_workflow_state(
    contract_status: ContractStatus,
    approvals: Iterable[ApprovalRecord],
) -> WorkflowState:
    """Derive the workflow phase from the contract status and its rows.

    A rejection anywhere is terminal.  Otherwise the current step is the
    lowest step that still has a pending row.
    """
    rows = list(approvals)
    if contract_status == ContractStatus.REJECTED or any(
        a.status == ApprovalStatus.REJECTED for a in rows
    ):
        return WorkflowState(WorkflowPhase.COMPLETED_REJECTED)
    if not rows:
        return WorkflowState(WorkflowPhase.NOT_STARTED)
    pending_steps = [a.workflow_step for a in rows if a.is_pending]
    if not pending_steps:
        return WorkflowState(WorkflowPhase.COMPLETED_APPROVED)
    return WorkflowState(WorkflowPhase.IN_APPROVAL, current_step=min(pending_steps))
