"""
WorkflowEngine -- the public entry point of the approval kernel.

Responsibility:
    Owns transaction boundaries for every workflow operation.  Each call
    opens its own session from the injected factory, delegates to the
    flush-only services and selectors, then commits or rolls back.
    Decisions and approval-set creation return a discriminated result
    instead of raising for expected business outcomes.

Architecture position:
    Kernel > Services -- imperative shell, top of the call graph.

Flow (decide):
    1. Lock contract, plan, compare-and-swap the approval row,
       update contract status, append history (ApprovalWorkflowService)
    2. Commit, or roll back and map the exception to a DecisionStatus
    3. After commit only: dispatch the plan's notification intents

Invariants enforced:
    - Nothing is partially committed: the approval update, the contract
      status change and the history event share one transaction.
    - Notifications are dispatched only after a successful commit, and
      never for a rolled-back call.
    - Every read runs in one transaction (REPEATABLE READ on PostgreSQL,
      a deferred BEGIN on SQLite), so a single call observes a single
      snapshot without taking the write lock.

Failure modes:
    - Expected business outcomes come back as result statuses.
    - Emitter failures after commit are reported on the result as
      ``delivery_failures``; the committed outcome is never turned into
      an exception.
    - Reads raise NotFoundError subclasses directly.

Audit relevance:
    Every call is logged with a fresh correlation_id and timing.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Generator, Mapping, Sequence, TypeVar
from uuid import UUID
from uuid import uuid4 as _uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from approval_kernel.db.engine import READ_ONLY_OPTION
from approval_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    ContractView,
    HistoryAction,
    HistoryEntry,
    StepAssignment,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.deadline import DeadlinePolicy
from approval_kernel.domain.gating import GatingPolicy, SerialGating
from approval_kernel.domain.notification import (
    NotificationEmitter,
    NotificationIntent,
    NotificationRecord,
    dedupe_intents,
)
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    ApprovalAlreadyStartedError,
    ApprovalKernelError,
    ContractNotInApprovalError,
    InvalidContractTransitionError,
    InvalidInputError,
    NotFoundError,
    OutOfSequenceError,
    StoreFailureError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.selectors.approval_selector import ApprovalFilter, ApprovalSelector
from approval_kernel.selectors.approval_stats_selector import (
    ApprovalStats,
    ApprovalStatsSelector,
    TimelineReport,
)
from approval_kernel.selectors.deadline_scanner import (
    DEFAULT_DUE_SOON_HORIZON,
    DeadlineItem,
    DeadlineScanner,
)
from approval_kernel.services.approval_workflow_service import ApprovalWorkflowService
from approval_kernel.services.history_recorder import HistoryRecorder
from approval_kernel.services.notification_service import (
    DispatchReport,
    NotificationDispatcher,
    NotificationService,
    StoreNotificationEmitter,
)

logger = get_logger("services.workflow_engine")

T = TypeVar("T")
R = TypeVar("R", "DecisionResult", "ApprovalSetResult")

# History actions collaborators may append; the engine owns the rest.
COLLABORATOR_ACTIONS: frozenset[HistoryAction] = frozenset({
    HistoryAction.CONTRACT_UPDATED,
    HistoryAction.SHIPPING_UPDATED,
})


class DecisionStatus(str, Enum):
    """Outcome of a decide() call."""

    DECIDED = "decided"
    NOT_FOUND = "not_found"
    ALREADY_DECIDED = "already_decided"
    CONTRACT_NOT_IN_APPROVAL = "contract_not_in_approval"
    OUT_OF_SEQUENCE = "out_of_sequence"
    INVALID_INPUT = "invalid_input"
    STORE_FAILURE = "store_failure"


class ApprovalSetStatus(str, Enum):
    """Outcome of create_approval_set() and start_approval()."""

    STARTED = "started"
    NOT_FOUND = "not_found"
    ALREADY_STARTED = "already_started"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_INPUT = "invalid_input"
    STORE_FAILURE = "store_failure"


@dataclass(frozen=True)
class DecisionResult:
    status: DecisionStatus
    contract: ContractView | None = None
    error_code: str | None = None
    message: str | None = None
    intents: tuple[NotificationIntent, ...] = ()
    delivery_failures: tuple[tuple[NotificationIntent, Exception], ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status == DecisionStatus.DECIDED


@dataclass(frozen=True)
class ApprovalSetResult:
    status: ApprovalSetStatus
    contract: ContractView | None = None
    error_code: str | None = None
    message: str | None = None
    intents: tuple[NotificationIntent, ...] = ()
    skipped_steps: tuple[str, ...] = ()
    delivery_failures: tuple[tuple[NotificationIntent, Exception], ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status == ApprovalSetStatus.STARTED


_DECISION_ERRORS: tuple[tuple[type[Exception], DecisionStatus], ...] = (
    (NotFoundError, DecisionStatus.NOT_FOUND),
    (AlreadyDecidedError, DecisionStatus.ALREADY_DECIDED),
    (ContractNotInApprovalError, DecisionStatus.CONTRACT_NOT_IN_APPROVAL),
    (OutOfSequenceError, DecisionStatus.OUT_OF_SEQUENCE),
    (InvalidInputError, DecisionStatus.INVALID_INPUT),
    (StoreFailureError, DecisionStatus.STORE_FAILURE),
    (SQLAlchemyError, DecisionStatus.STORE_FAILURE),
)

_APPROVAL_SET_ERRORS: tuple[tuple[type[Exception], ApprovalSetStatus], ...] = (
    (NotFoundError, ApprovalSetStatus.NOT_FOUND),
    (ApprovalAlreadyStartedError, ApprovalSetStatus.ALREADY_STARTED),
    (InvalidContractTransitionError, ApprovalSetStatus.INVALID_TRANSITION),
    (InvalidInputError, ApprovalSetStatus.INVALID_INPUT),
    (StoreFailureError, ApprovalSetStatus.STORE_FAILURE),
    (SQLAlchemyError, ApprovalSetStatus.STORE_FAILURE),
)


def _classify(exc: Exception, table: Sequence[tuple[type[Exception], Enum]]) -> Enum | None:
    for exc_type, status in table:
        if isinstance(exc, exc_type):
            return status
    return None


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ApprovalKernelError):
        return exc.code
    return StoreFailureError.code


def _parse_decision(decision: ApprovalDecision | str) -> ApprovalDecision:
    if isinstance(decision, ApprovalDecision):
        return decision
    return ApprovalDecision(str(decision).strip().upper())


class WorkflowEngine:
    """
    Transactional facade over the approval workflow.

    Contract:
        One call, one transaction.  Writes return DecisionResult or
        ApprovalSetResult; reads return DTOs.

    Usage:
        engine = WorkflowEngine(get_session_factory(), deadlines=DeadlinePolicy())
        result = engine.decide(contract_id, approver_id, 1, "APPROVE")
        if result.status == DecisionStatus.OUT_OF_SEQUENCE:
            ...
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        deadlines: DeadlinePolicy | None = None,
        gating: GatingPolicy | None = None,
        clock: Clock | None = None,
        emitters: Sequence[NotificationEmitter] | None = None,
        due_soon_horizon: timedelta = DEFAULT_DUE_SOON_HORIZON,
    ):
        self._session_factory = session_factory
        self._deadlines = deadlines or DeadlinePolicy()
        self._gating = gating or SerialGating()
        self._clock = clock or SystemClock()
        self._due_soon_horizon = due_soon_horizon
        if emitters is None:
            emitters = (StoreNotificationEmitter(session_factory, self._clock),)
        self._dispatcher = NotificationDispatcher(emitters)

    @property
    def gating(self) -> GatingPolicy:
        return self._gating

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _transaction(self, operation: str, work: Callable[[Session], T]) -> T:
        session = self._session_factory()
        logger.info(f"{operation}_started")
        t0 = time.monotonic()
        try:
            value = work(session)
            session.commit()
        except ApprovalKernelError as exc:
            session.rollback()
            logger.warning(
                f"{operation}_rejected",
                extra={
                    "error_code": exc.code,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            raise
        except Exception:
            session.rollback()
            logger.error(
                f"{operation}_failed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                exc_info=True,
            )
            raise
        finally:
            session.close()

        logger.info(
            f"{operation}_completed",
            extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
        )
        return value

    @contextmanager
    def _read_session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            options: dict[str, Any] = {READ_ONLY_OPTION: True}
            if session.get_bind().dialect.name == "postgresql":
                options["isolation_level"] = "REPEATABLE READ"
            session.connection(execution_options=options)
            yield session
        finally:
            session.close()

    def _workflow_service(self, session: Session) -> ApprovalWorkflowService:
        return ApprovalWorkflowService(
            session,
            deadlines=self._deadlines,
            gating=self._gating,
            clock=self._clock,
        )

    def _scanner(self, session: Session) -> DeadlineScanner:
        return DeadlineScanner(session, self._due_soon_horizon)

    def _deliver(self, result: R) -> R:
        report = self._dispatcher.dispatch(result.intents)
        if report.ok:
            return result
        return replace(result, delivery_failures=tuple(report.failed))

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        contract_id: UUID,
        approver_id: UUID,
        step_number: int,
        decision: ApprovalDecision | str,
        comment: str | None = None,
    ) -> DecisionResult:
        """
        Record an approver's APPROVE or REJECT on one workflow step.

        Returns:
            DecisionResult.  On DECIDED, ``contract`` is the updated
            contract and ``intents`` the notifications dispatched;
            ``delivery_failures`` lists intents an emitter rejected.
            The decision itself stays committed either way.
        """
        with LogContext.bind(
            correlation_id=str(_uuid4()),
            contract_id=str(contract_id),
            actor_id=str(approver_id),
        ):
            try:
                parsed = _parse_decision(decision)
            except ValueError:
                logger.warning("decision_invalid", extra={"decision": str(decision)})
                return DecisionResult(
                    status=DecisionStatus.INVALID_INPUT,
                    error_code="INVALID_DECISION",
                    message=f"Unknown decision {decision!r}, expected APPROVE or REJECT",
                )

            try:
                outcome = self._transaction(
                    "decide",
                    lambda session: self._workflow_service(session).decide(
                        contract_id, approver_id, step_number, parsed, comment,
                    ),
                )
            except Exception as exc:
                status = _classify(exc, _DECISION_ERRORS)
                if status is None:
                    raise
                return DecisionResult(
                    status=status,
                    error_code=_error_code(exc),
                    message=str(exc),
                )

            result = DecisionResult(
                status=DecisionStatus.DECIDED,
                contract=outcome.contract,
                intents=dedupe_intents(outcome.plan.intents),
            )
            return self._deliver(result)

    # ------------------------------------------------------------------
    # Approval sets
    # ------------------------------------------------------------------

    def create_approval_set(
        self,
        contract_id: UUID,
        steps: Sequence[StepAssignment],
        actor_id: UUID | None = None,
        step_due_days: Mapping[int, int] | None = None,
    ) -> ApprovalSetResult:
        """Create every approval row for a DRAFT contract and start approval."""
        with LogContext.bind(
            correlation_id=str(_uuid4()),
            contract_id=str(contract_id),
            actor_id=str(actor_id) if actor_id else None,
        ):
            return self._start(
                "create_approval_set",
                lambda session: self._workflow_service(session).create_approval_set(
                    contract_id, steps, actor_id=actor_id, step_due_days=step_due_days,
                ),
            )

    def start_approval(
        self,
        contract_id: UUID,
        workflow_id: UUID,
        actor_id: UUID | None = None,
    ) -> ApprovalSetResult:
        """Resolve a workflow template into approvers and start approval."""
        with LogContext.bind(
            correlation_id=str(_uuid4()),
            contract_id=str(contract_id),
            actor_id=str(actor_id) if actor_id else None,
        ):
            return self._start(
                "start_approval",
                lambda session: self._workflow_service(session).start_approval(
                    contract_id, workflow_id, actor_id=actor_id,
                ),
            )

    def _start(self, operation: str, work: Callable[[Session], Any]) -> ApprovalSetResult:
        try:
            outcome = self._transaction(operation, work)
        except Exception as exc:
            status = _classify(exc, _APPROVAL_SET_ERRORS)
            if status is None:
                raise
            return ApprovalSetResult(
                status=status,
                error_code=_error_code(exc),
                message=str(exc),
            )

        result = ApprovalSetResult(
            status=ApprovalSetStatus.STARTED,
            contract=outcome.contract,
            intents=dedupe_intents(outcome.plan.intents),
            skipped_steps=outcome.skipped_steps,
        )
        return self._deliver(result)

    # ------------------------------------------------------------------
    # Collaborator history events
    # ------------------------------------------------------------------

    def record_event(
        self,
        contract_id: UUID,
        action: HistoryAction | str,
        details: Mapping[str, Any],
        actor_id: UUID | None = None,
    ) -> HistoryEntry:
        """
        Append a contract edit or shipping update to the contract history.

        Raises:
            ValueError: ``action`` is not a collaborator action.
            ContractNotFoundError: No such contract.
        """
        action = HistoryAction(action)
        if action not in COLLABORATOR_ACTIONS:
            raise ValueError(
                f"{action.value} is recorded by the workflow engine itself"
            )
        with LogContext.bind(
            correlation_id=str(_uuid4()),
            contract_id=str(contract_id),
            actor_id=str(actor_id) if actor_id else None,
        ):
            return self._transaction(
                "record_event",
                lambda session: HistoryRecorder(session, self._clock).record(
                    contract_id, action, details, actor_id=actor_id,
                ),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: UUID, include_history: bool = True) -> ContractView:
        with self._read_session() as session:
            return ApprovalSelector(session).get_contract(contract_id, include_history)

    def list_approvals(
        self,
        filter: ApprovalFilter | None = None,
        *,
        approver_id: UUID | None = None,
        status: ApprovalStatus | None = None,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        contract_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[ApprovalRecord]:
        if filter is None:
            filter = ApprovalFilter(
                approver_id=approver_id,
                status=status,
                due_before=due_before,
                due_after=due_after,
                contract_id=contract_id,
                limit=limit,
            )
        with self._read_session() as session:
            return ApprovalSelector(session).list_approvals(filter)

    def overdue(
        self,
        now: datetime | None = None,
        approver_id: UUID | None = None,
    ) -> list[DeadlineItem]:
        with self._read_session() as session:
            return self._scanner(session).overdue(now or self._clock.now(), approver_id)

    def due_soon(
        self,
        now: datetime | None = None,
        horizon: timedelta | None = None,
        approver_id: UUID | None = None,
    ) -> list[DeadlineItem]:
        with self._read_session() as session:
            return self._scanner(session).due_soon(
                now or self._clock.now(), horizon, approver_id,
            )

    def sweep(
        self,
        now: datetime | None = None,
        horizon: timedelta | None = None,
    ) -> tuple[NotificationIntent, ...]:
        """DEADLINE_APPROACHING intents for a scheduler to deliver."""
        with self._read_session() as session:
            return self._scanner(session).sweep(now or self._clock.now(), horizon)

    def notify(self, intents: Sequence[NotificationIntent]) -> DispatchReport:
        """Deliver intents produced outside a transition, e.g. by ``sweep``."""
        with LogContext.bind(correlation_id=str(_uuid4())):
            return self._dispatcher.dispatch(intents)

    def stats(
        self,
        approver_id: UUID | None = None,
        now: datetime | None = None,
        horizon: timedelta | None = None,
    ) -> ApprovalStats:
        with self._read_session() as session:
            return ApprovalStatsSelector(session, self._scanner(session)).stats(
                now or self._clock.now(), approver_id, horizon,
            )

    def timelines(
        self,
        since: datetime | None = None,
        now: datetime | None = None,
    ) -> TimelineReport:
        with self._read_session() as session:
            return ApprovalStatsSelector(session, self._scanner(session)).timelines(
                now or self._clock.now(), since,
            )

    # ------------------------------------------------------------------
    # Notification inbox
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        with self._read_session() as session:
            return NotificationService(session, self._clock).list_for_user(
                user_id, unread_only, limit,
            )

    def unread_count(self, user_id: UUID) -> int:
        with self._read_session() as session:
            return NotificationService(session, self._clock).unread_count(user_id)

    def mark_notification_read(
        self,
        notification_id: UUID,
        read: bool = True,
    ) -> NotificationRecord:
        with LogContext.bind(correlation_id=str(_uuid4())):
            return self._transaction(
                "mark_notification_read",
                lambda session: NotificationService(session, self._clock).mark_read(
                    notification_id, read,
                ),
            )

    def mark_all_notifications_read(self, user_id: UUID) -> int:
        with LogContext.bind(correlation_id=str(_uuid4()), actor_id=str(user_id)):
            return self._transaction(
                "mark_all_notifications_read",
                lambda session: NotificationService(session, self._clock).mark_all_read(user_id),
            )
