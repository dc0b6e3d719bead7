"""
Transition planner (``approval_kernel.domain.transition``).

Responsibility
--------------
Given the persisted state of one contract and a requested change, decide
whether the change is legal and describe every consequence: the new
approval status, the contract status change (if any), the history event
to append and the notification intents to dispatch after commit.

The planner performs no I/O.  The workflow service loads state, calls
the planner, applies the plan inside one transaction, and hands the
intents to the dispatcher only after the commit succeeds.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Check order for a decision
--------------------------
1. step number is a positive integer         -> InvalidStepNumberError
2. a row exists for (contract, step, approver) -> ApprovalNotFoundError
3. APPROVAL_TRANSITIONS allows the new status -> AlreadyDecidedError
4. the contract is IN_APPROVAL                -> ContractNotInApprovalError
5. a REJECT carries a non-blank comment       -> InvalidCommentError
6. the gating policy allows the step          -> OutOfSequenceError
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from approval_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    CONTRACT_TRANSITIONS,
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    ContractMetadata,
    ContractStatus,
    StepAssignment,
    is_contiguous_from_one,
)
from approval_kernel.domain.deadline import DeadlinePolicy
from approval_kernel.domain.gating import GatingPolicy
from approval_kernel.domain.notification import (
    NotificationIntent,
    NotificationType,
    contract_url,
    dedupe_intents,
)
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    ApprovalAlreadyStartedError,
    ApprovalNotFoundError,
    ContractNotInApprovalError,
    DuplicateApproverError,
    EmptyApprovalSetError,
    InvalidCommentError,
    InvalidContractTransitionError,
    InvalidStepNumberError,
    NonContiguousStepsError,
    OutOfSequenceError,
)


@dataclass(frozen=True)
class DecisionRequest:
    contract_id: UUID
    approver_id: UUID
    step_number: int
    decision: ApprovalDecision
    comment: str | None = None


@dataclass(frozen=True)
class DecisionPlan:
    """Everything a legal decision changes."""

    approval_id: UUID
    new_status: ApprovalStatus
    comment: str | None
    contract_status_before: ContractStatus
    contract_status_after: ContractStatus
    step_completed: bool
    history_details: dict[str, Any]
    intents: tuple[NotificationIntent, ...] = ()

    @property
    def contract_status_changed(self) -> bool:
        return self.contract_status_before != self.contract_status_after


@dataclass(frozen=True)
class PlannedApproval:
    step_number: int
    approver_id: UUID
    due_date: datetime | None


@dataclass(frozen=True)
class ApprovalSetPlan:
    """Rows to create and the consequences of entering approval."""

    rows: tuple[PlannedApproval, ...]
    contract_status_after: ContractStatus
    history_details: dict[str, Any]
    intents: tuple[NotificationIntent, ...] = field(default_factory=tuple)


def validate_step_number(step_number: object) -> int:
    if isinstance(step_number, bool) or not isinstance(step_number, int) or step_number < 1:
        raise InvalidStepNumberError(step_number)
    return step_number


def require_contract_transition(
    contract_id: UUID, from_status: ContractStatus, to_status: ContractStatus,
) -> None:
    if to_status not in CONTRACT_TRANSITIONS[from_status]:
        raise InvalidContractTransitionError(
            str(contract_id), from_status.value, to_status.value,
        )


def require_approval_transition(
    approval_id: UUID, from_status: ApprovalStatus, to_status: ApprovalStatus,
) -> None:
    # Decided rows have no outgoing transitions.
    if to_status not in APPROVAL_TRANSITIONS[from_status]:
        raise AlreadyDecidedError(str(approval_id), from_status.value)


# =========================================================================
# Decisions
# =========================================================================


def plan_decision(
    contract: ContractMetadata,
    contract_status: ContractStatus,
    approvals: Sequence[ApprovalRecord],
    request: DecisionRequest,
    gating: GatingPolicy,
) -> DecisionPlan:
    """Validate a decision against persisted state and plan its effects.

    ``approvals`` must be every approval row of the contract, read under
    the contract lock.

    Raises:
        InvalidStepNumberError, ApprovalNotFoundError, AlreadyDecidedError,
        ContractNotInApprovalError, InvalidCommentError, OutOfSequenceError.
    """
    step_number = validate_step_number(request.step_number)

    target = next(
        (
            a for a in approvals
            if a.workflow_step == step_number and a.approver_id == request.approver_id
        ),
        None,
    )
    if target is None:
        raise ApprovalNotFoundError(
            str(contract.contract_id), step_number, str(request.approver_id),
        )
    new_status = request.decision.resulting_status
    require_approval_transition(target.id, target.status, new_status)
    if contract_status != ContractStatus.IN_APPROVAL:
        raise ContractNotInApprovalError(
            str(contract.contract_id), contract_status.value,
        )

    comment = request.comment.strip() if request.comment else None
    if request.decision == ApprovalDecision.REJECT and not comment:
        raise InvalidCommentError(str(target.id))

    blocking = gating.blocking_step(step_number, approvals)
    if blocking is not None:
        raise OutOfSequenceError(str(contract.contract_id), step_number, blocking)

    after = [
        replace(a, status=new_status, comment=comment) if a.id == target.id else a
        for a in approvals
    ]
    step_completed = all(
        a.status == ApprovalStatus.APPROVED
        for a in after
        if a.workflow_step == step_number
    )

    if new_status == ApprovalStatus.REJECTED:
        contract_after = ContractStatus.REJECTED
        intents = _rejection_intents(contract, target, comment, after)
    elif all(a.status == ApprovalStatus.APPROVED for a in after):
        contract_after = ContractStatus.APPROVED
        intents = _approval_complete_intents(contract)
    else:
        contract_after = ContractStatus.IN_APPROVAL
        newly_active = gating.active_steps(after) - gating.active_steps(approvals)
        intents = _approval_requested_intents(contract, after, newly_active)

    if contract_after != contract_status:
        require_contract_transition(contract.contract_id, contract_status, contract_after)

    next_step = None
    if contract_after == ContractStatus.IN_APPROVAL:
        next_step = min(a.workflow_step for a in after if a.is_pending)
    details = {
        "approval_id": str(target.id),
        "approver_id": str(target.approver_id),
        "workflow_step": step_number,
        "decision": request.decision.value,
        "outcome": new_status.value,
        "comment": comment,
        "step_completed": step_completed,
        "next_step": next_step,
        "contract_status_before": contract_status.value,
        "contract_status_after": contract_after.value,
    }

    return DecisionPlan(
        approval_id=target.id,
        new_status=new_status,
        comment=comment,
        contract_status_before=contract_status,
        contract_status_after=contract_after,
        step_completed=step_completed,
        history_details=details,
        intents=dedupe_intents(intents),
    )


def _rejection_intents(
    contract: ContractMetadata,
    target: ApprovalRecord,
    comment: str | None,
    after: Sequence[ApprovalRecord],
) -> list[NotificationIntent]:
    url = contract_url(contract.contract_id)
    intents = [
        NotificationIntent(
            user_id=contract.initiator_id,
            type=NotificationType.REJECTED,
            title="Contract rejected",
            message=(
                f"Contract {contract.number} with {contract.counterparty} was "
                f"rejected at step {target.workflow_step}: {comment}"
            ),
            contract_id=contract.contract_id,
            action_url=url,
        )
    ]
    for approval in after:
        if not approval.is_pending:
            continue
        intents.append(
            NotificationIntent(
                user_id=approval.approver_id,
                type=NotificationType.WORKFLOW_HALTED,
                title="Approval no longer required",
                message=(
                    f"Contract {contract.number} with {contract.counterparty} was "
                    f"rejected at step {target.workflow_step}; your approval at "
                    f"step {approval.workflow_step} is no longer needed"
                ),
                contract_id=contract.contract_id,
                action_url=url,
            )
        )
    return intents


def _approval_complete_intents(contract: ContractMetadata) -> list[NotificationIntent]:
    return [
        NotificationIntent(
            user_id=contract.initiator_id,
            type=NotificationType.APPROVED,
            title="Contract approved",
            message=(
                f"Contract {contract.number} with {contract.counterparty} "
                f"passed every approval step"
            ),
            contract_id=contract.contract_id,
            action_url=contract_url(contract.contract_id),
        )
    ]


def _approval_requested_intents(
    contract: ContractMetadata,
    approvals: Sequence[ApprovalRecord],
    steps: frozenset[int],
) -> list[NotificationIntent]:
    intents = []
    for approval in sorted(approvals, key=lambda a: (a.workflow_step, str(a.approver_id))):
        if approval.workflow_step not in steps or not approval.is_pending:
            continue
        intents.append(
            NotificationIntent(
                user_id=approval.approver_id,
                type=NotificationType.APPROVAL_REQUESTED,
                title="Approval required",
                message=(
                    f"Contract {contract.number} with {contract.counterparty} is "
                    f"waiting for your approval (step {approval.workflow_step})"
                ),
                contract_id=contract.contract_id,
                action_url=contract_url(contract.contract_id),
            )
        )
    return intents


# =========================================================================
# Approval sets
# =========================================================================


def plan_approval_set(
    contract: ContractMetadata,
    contract_status: ContractStatus,
    has_approvals: bool,
    steps: Sequence[StepAssignment],
    deadlines: DeadlinePolicy,
    gating: GatingPolicy,
    activated_at: datetime,
) -> ApprovalSetPlan:
    """Validate an approval set and plan the rows it creates.

    Raises:
        EmptyApprovalSetError, InvalidStepNumberError, NonContiguousStepsError,
        DuplicateApproverError, ApprovalAlreadyStartedError,
        InvalidContractTransitionError.
    """
    if not steps:
        raise EmptyApprovalSetError(str(contract.contract_id))

    seen_steps: set[int] = set()
    for step in steps:
        validate_step_number(step.step_number)
        if step.step_number in seen_steps:
            raise NonContiguousStepsError([s.step_number for s in steps])
        seen_steps.add(step.step_number)
        if not step.approver_ids:
            raise EmptyApprovalSetError(str(contract.contract_id), step.step_number)
        approvers: set[UUID] = set()
        for approver_id in step.approver_ids:
            if approver_id in approvers:
                raise DuplicateApproverError(step.step_number, str(approver_id))
            approvers.add(approver_id)
    if not is_contiguous_from_one(seen_steps):
        raise NonContiguousStepsError(sorted(seen_steps))

    if has_approvals or contract_status == ContractStatus.IN_APPROVAL:
        raise ApprovalAlreadyStartedError(str(contract.contract_id))
    require_contract_transition(
        contract.contract_id, contract_status, ContractStatus.IN_APPROVAL,
    )

    due_dates = deadlines.schedule(steps, contract, activated_at)
    ordered = sorted(steps, key=lambda s: s.step_number)
    rows = tuple(
        PlannedApproval(step.step_number, approver_id, due_dates[step.step_number])
        for step in ordered
        for approver_id in step.approver_ids
    )

    notify_steps = gating.initial_steps(seen_steps)
    url = contract_url(contract.contract_id)
    intents: list[NotificationIntent] = [
        NotificationIntent(
            user_id=row.approver_id,
            type=NotificationType.APPROVAL_REQUESTED,
            title="Approval required",
            message=(
                f"Contract {contract.number} with {contract.counterparty} is "
                f"waiting for your approval (step {row.step_number})"
            ),
            contract_id=contract.contract_id,
            action_url=url,
        )
        for row in rows
        if row.step_number in notify_steps
    ]
    intents.append(
        NotificationIntent(
            user_id=contract.initiator_id,
            type=NotificationType.CONTRACT_UPDATED,
            title="Approval started",
            message=(
                f"Contract {contract.number} with {contract.counterparty} was "
                f"sent for approval ({len(ordered)} step(s))"
            ),
            contract_id=contract.contract_id,
            action_url=url,
        )
    )

    details = {
        "gating": gating.name,
        "steps": [
            {
                "step_number": step.step_number,
                "approver_ids": [str(a) for a in step.approver_ids],
                "due_date": (
                    due_dates[step.step_number].isoformat()
                    if due_dates[step.step_number] is not None
                    else None
                ),
            }
            for step in ordered
        ],
        "contract_status_before": contract_status.value,
        "contract_status_after": ContractStatus.IN_APPROVAL.value,
    }

    return ApprovalSetPlan(
        rows=rows,
        contract_status_after=ContractStatus.IN_APPROVAL,
        history_details=details,
        intents=dedupe_intents(intents),
    )
