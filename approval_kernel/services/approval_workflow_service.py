"""
ApprovalWorkflowService -- the workflow state machine's imperative shell.

Responsibility:
    Loads the persisted state of one contract under a row lock, asks the
    pure planner (``domain.transition``) whether a change is legal, and
    applies the plan: approval rows, contract status and one history
    event, all in the caller's transaction.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Flushes only; the WorkflowEngine facade commits or rolls back.

Invariants enforced:
    - Every decision locks the contract row (SELECT ... FOR UPDATE)
      before reading approvals, so reads and writes of one contract are
      serialized.
    - An approval leaves PENDING through a conditional UPDATE
      (``WHERE status = 'PENDING'``).  A row count other than 1 means
      another transaction decided first -> AlreadyDecidedError.
    - Approval update + contract status + history append are flushed in
      one transaction; any failure aborts all three.
    - Notification intents are returned, never emitted here.

Failure modes:
    - ContractNotFoundError, ApprovalNotFoundError,
      WorkflowTemplateNotFoundError.
    - AlreadyDecidedError, ContractNotInApprovalError, OutOfSequenceError,
      ApprovalAlreadyStartedError, InvalidContractTransitionError.
    - InvalidInputError subclasses from validation.
    - SQLAlchemy errors propagate to the facade (STORE_FAILURE).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from approval_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    ContractStatus,
    ContractView,
    HistoryAction,
    StepAssignment,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.deadline import DeadlinePolicy
from approval_kernel.domain.gating import GatingPolicy, SerialGating
from approval_kernel.domain.transition import (
    ApprovalSetPlan,
    DecisionPlan,
    DecisionRequest,
    plan_approval_set,
    plan_decision,
)
from approval_kernel.domain.workflow import ResolvedWorkflow, resolve_template
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    ContractNotFoundError,
    UnknownApproverError,
    WorkflowTemplateNotFoundError,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval import Approval
from approval_kernel.models.contract import Contract
from approval_kernel.models.user import User
from approval_kernel.models.workflow import WorkflowTemplate
from approval_kernel.services.base import BaseService
from approval_kernel.services.history_recorder import HistoryRecorder

logger = get_logger("services.approval_workflow")


@dataclass(frozen=True)
class DecisionOutcome:
    plan: DecisionPlan
    contract: ContractView


@dataclass(frozen=True)
class ApprovalSetOutcome:
    plan: ApprovalSetPlan
    contract: ContractView
    skipped_steps: tuple[str, ...] = ()


class ApprovalWorkflowService(BaseService[Approval]):
    """Applies approval-set creation and decisions to the store."""

    def __init__(
        self,
        session: Session,
        deadlines: DeadlinePolicy,
        gating: GatingPolicy | None = None,
        clock: Clock | None = None,
        history: HistoryRecorder | None = None,
    ):
        super().__init__(session)
        self._deadlines = deadlines
        self._gating = gating or SerialGating()
        self._clock = clock or SystemClock()
        self._history = history or HistoryRecorder(session, self._clock)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _lock_contract(self, contract_id: UUID) -> Contract:
        contract = self.session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _load_approvals(self, contract_id: UUID) -> list[ApprovalRecord]:
        rows = self.session.execute(
            select(Approval)
            .where(Approval.contract_id == contract_id)
            .order_by(Approval.workflow_step, Approval.created_at)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _contract_view(self, contract: Contract) -> ContractView:
        # Core UPDATEs bypass the identity map; reload before building DTOs.
        self.session.expire_all()
        return contract.to_dto()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        contract_id: UUID,
        approver_id: UUID,
        step_number: int,
        decision: ApprovalDecision,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Record one approver's decision on one step.

        Returns:
            DecisionOutcome with the applied plan (including notification
            intents for after commit) and the updated contract.
        """
        contract = self._lock_contract(contract_id)
        approvals = self._load_approvals(contract_id)

        plan = plan_decision(
            contract=contract.to_metadata(),
            contract_status=ContractStatus(contract.status),
            approvals=approvals,
            request=DecisionRequest(
                contract_id=contract_id,
                approver_id=approver_id,
                step_number=step_number,
                decision=decision,
                comment=comment,
            ),
            gating=self._gating,
        )

        now = self._clock.now()
        result = self.session.execute(
            update(Approval)
            .where(
                Approval.id == plan.approval_id,
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=plan.new_status.value,
                comment=plan.comment,
                decided_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.session.execute(
                select(Approval.status).where(Approval.id == plan.approval_id)
            ).scalar_one()
            logger.warning(
                "approval_cas_lost",
                extra={"approval_id": str(plan.approval_id), "current_status": current},
            )
            raise AlreadyDecidedError(str(plan.approval_id), current)

        if plan.contract_status_changed:
            contract.status = plan.contract_status_after.value
        contract.updated_at = now
        self.session.flush()

        self._history.record(
            contract_id,
            HistoryAction.APPROVAL_DECIDED,
            plan.history_details,
            actor_id=approver_id,
        )

        logger.info(
            "approval_decided",
            extra={
                "contract_id": str(contract_id),
                "approval_id": str(plan.approval_id),
                "step": step_number,
                "outcome": plan.new_status.value,
                "contract_status": plan.contract_status_after.value,
                "intent_count": len(plan.intents),
            },
        )

        return DecisionOutcome(plan=plan, contract=self._contract_view(contract))

    # ------------------------------------------------------------------
    # Approval sets
    # ------------------------------------------------------------------

    def create_approval_set(
        self,
        contract_id: UUID,
        steps: Sequence[StepAssignment],
        actor_id: UUID | None = None,
        step_due_days: Mapping[int, int] | None = None,
        workflow_id: UUID | None = None,
        skipped_steps: tuple[str, ...] = (),
    ) -> ApprovalSetOutcome:
        """Create every approval row of a contract and enter approval.

        Raises:
            ContractNotFoundError, UnknownApproverError and the planner's
            validation and state errors.
        """
        contract = self._lock_contract(contract_id)
        has_approvals = self.session.execute(
            select(Approval.id).where(Approval.contract_id == contract_id).limit(1)
        ).first() is not None

        now = self._clock.now()
        plan = plan_approval_set(
            contract=contract.to_metadata(step_due_days),
            contract_status=ContractStatus(contract.status),
            has_approvals=has_approvals,
            steps=steps,
            deadlines=self._deadlines,
            gating=self._gating,
            activated_at=now,
        )
        self._require_active_users({row.approver_id for row in plan.rows})

        for row in plan.rows:
            self.session.add(
                Approval(
                    contract_id=contract_id,
                    approver_id=row.approver_id,
                    workflow_step=row.step_number,
                    status=ApprovalStatus.PENDING.value,
                    due_date=row.due_date,
                    created_at=now,
                    updated_at=now,
                )
            )
        contract.status = plan.contract_status_after.value
        contract.updated_at = now
        if workflow_id is not None:
            contract.workflow_id = workflow_id
        self.session.flush()

        details = dict(plan.history_details)
        if workflow_id is not None:
            details["workflow_id"] = str(workflow_id)
        if skipped_steps:
            details["skipped_steps"] = list(skipped_steps)
        self._history.record(
            contract_id,
            HistoryAction.APPROVAL_PROCESS_STARTED,
            details,
            actor_id=actor_id,
        )

        logger.info(
            "approval_set_created",
            extra={
                "contract_id": str(contract_id),
                "step_count": len(steps),
                "row_count": len(plan.rows),
                "gating": self._gating.name,
            },
        )

        return ApprovalSetOutcome(
            plan=plan,
            contract=self._contract_view(contract),
            skipped_steps=skipped_steps,
        )

    def start_approval(
        self,
        contract_id: UUID,
        workflow_id: UUID,
        actor_id: UUID | None = None,
    ) -> ApprovalSetOutcome:
        """Resolve a workflow template and create the contract's approval set."""
        resolved = self.resolve_workflow(workflow_id)
        return self.create_approval_set(
            contract_id,
            resolved.steps,
            actor_id=actor_id,
            step_due_days=resolved.step_due_days,
            workflow_id=workflow_id,
            skipped_steps=resolved.skipped,
        )

    def resolve_workflow(self, workflow_id: UUID) -> ResolvedWorkflow:
        template = self.session.get(WorkflowTemplate, workflow_id)
        if template is None or not template.is_active:
            raise WorkflowTemplateNotFoundError(str(workflow_id))
        view = template.to_dto()

        roles = {s.role for s in view.steps if s.role is not None and s.user_id is None}
        users_by_role: dict[str, list[UUID]] = {}
        if roles:
            users = self.session.execute(
                select(User.id, User.role)
                .where(User.role.in_(roles), User.is_active.is_(True))
                .order_by(User.name, User.id)
            ).all()
            for user_id, role in users:
                users_by_role.setdefault(role, []).append(user_id)

        return resolve_template(view, users_by_role)

    def _require_active_users(self, user_ids: set[UUID]) -> None:
        found = set(
            self.session.execute(
                select(User.id).where(User.id.in_(user_ids), User.is_active.is_(True))
            ).scalars()
        )
        missing = sorted(user_ids - found, key=str)
        if missing:
            raise UnknownApproverError(str(missing[0]))
