"""
Module: approval_kernel.selectors.approval_stats_selector
Responsibility: Derived approval statistics and approval-time reports.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Every figure is recomputed from Approval and Contract rows on each
      call; there are no stored counters to drift out of sync.
    - Overdue and due-soon counts come from DeadlineScanner so the
      dashboard and the scanner can never disagree.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_kernel.domain.approval import ApprovalStatus, ContractStatus
from approval_kernel.models.approval import Approval
from approval_kernel.models.contract import Contract
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.selectors.deadline_scanner import DeadlineScanner

RECENT_ACTIVITY_WINDOW = timedelta(days=7)
RECENT_ACTIVITY_LIMIT = 10

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class RecentActivity:
    approval_id: UUID
    contract_id: UUID
    contract_number: str
    counterparty: str
    approver_id: UUID
    workflow_step: int
    status: ApprovalStatus
    updated_at: datetime


@dataclass(frozen=True)
class ApprovalStats:
    total: int
    pending: int
    approved: int
    rejected: int
    overdue: int
    due_soon: int
    recent_activity: tuple[RecentActivity, ...] = ()

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "overdue": self.overdue,
            "due_soon": self.due_soon,
        }


@dataclass(frozen=True)
class StepBottleneck:
    workflow_step: int
    approvals: int
    avg_delay_days: float
    max_delay_days: float

    @property
    def severity(self) -> str:
        if self.avg_delay_days > 2:
            return "high"
        if self.avg_delay_days > 1:
            return "medium"
        return "low"


@dataclass(frozen=True)
class MonthlyTimeline:
    month: str
    contracts: int
    approved_contracts: int
    avg_days: float
    overdue: int


@dataclass(frozen=True)
class TimelineReport:
    total_contracts: int
    approved_contracts: int
    avg_approval_days: float
    min_approval_days: float
    max_approval_days: float
    overdue_contracts: int
    bottlenecks: tuple[StepBottleneck, ...]
    by_month: tuple[MonthlyTimeline, ...]


def _days(delta: timedelta) -> float:
    return delta.total_seconds() / _SECONDS_PER_DAY


class ApprovalStatsSelector(BaseSelector[Approval]):
    def __init__(self, session: Session, scanner: DeadlineScanner | None = None):
        super().__init__(session)
        self._scanner = scanner or DeadlineScanner(session)

    def stats(
        self,
        now: datetime,
        approver_id: UUID | None = None,
        horizon: timedelta | None = None,
    ) -> ApprovalStats:
        query = select(Approval.status, func.count()).group_by(Approval.status)
        if approver_id is not None:
            query = query.where(Approval.approver_id == approver_id)
        counts = {status: count for status, count in self.session.execute(query).all()}

        return ApprovalStats(
            total=sum(counts.values()),
            pending=counts.get(ApprovalStatus.PENDING.value, 0),
            approved=counts.get(ApprovalStatus.APPROVED.value, 0),
            rejected=counts.get(ApprovalStatus.REJECTED.value, 0),
            overdue=self._scanner.count_overdue(now, approver_id),
            due_soon=self._scanner.count_due_soon(now, horizon, approver_id),
            recent_activity=self.recent_activity(now, approver_id),
        )

    def recent_activity(
        self,
        now: datetime,
        approver_id: UUID | None = None,
    ) -> tuple[RecentActivity, ...]:
        """Rows touched in the last 7 days, newest first, at most 10."""
        query = (
            select(Approval, Contract.number, Contract.counterparty)
            .join(Contract, Contract.id == Approval.contract_id)
            .where(
                Approval.updated_at >= now - RECENT_ACTIVITY_WINDOW,
                Approval.updated_at <= now,
            )
        )
        if approver_id is not None:
            query = query.where(Approval.approver_id == approver_id)
        query = query.order_by(Approval.updated_at.desc(), Approval.id).limit(
            RECENT_ACTIVITY_LIMIT
        )
        return tuple(
            RecentActivity(
                approval_id=approval.id,
                contract_id=approval.contract_id,
                contract_number=number,
                counterparty=counterparty,
                approver_id=approval.approver_id,
                workflow_step=approval.workflow_step,
                status=ApprovalStatus(approval.status),
                updated_at=approval.updated_at,
            )
            for approval, number, counterparty in self.session.execute(query).all()
        )

    def timelines(self, now: datetime, since: datetime | None = None) -> TimelineReport:
        """Approval-time summary of contracts created since ``since``.

        A contract's approval time is the mean of (decided_at - created_at)
        over its APPROVED rows, in days rounded to 0.1.  Bottleneck delay
        is how far past due an approved row was decided (never negative).
        """
        contract_query = select(Contract).order_by(Contract.created_at)
        if since is not None:
            contract_query = contract_query.where(Contract.created_at >= since)
        contracts = list(self.session.execute(contract_query).scalars())

        approval_times: list[float] = []
        overdue_contracts = 0
        delays: dict[int, list[float]] = defaultdict(list)
        step_counts: dict[int, int] = defaultdict(int)
        months: dict[str, dict] = {}

        for contract in contracts:
            month = contract.created_at.strftime("%Y-%m")
            bucket = months.setdefault(
                month, {"contracts": 0, "times": [], "overdue": 0},
            )
            bucket["contracts"] += 1

            approved_rows = [
                a for a in contract.approvals
                if a.status == ApprovalStatus.APPROVED.value and a.decided_at is not None
            ]
            if contract.status == ContractStatus.APPROVED.value and approved_rows:
                elapsed = sum(_days(a.decided_at - a.created_at) for a in approved_rows)
                approval_time = round(elapsed / len(approved_rows), 1)
                approval_times.append(approval_time)
                bucket["times"].append(approval_time)

            if contract.status == ContractStatus.IN_APPROVAL.value and any(
                a.status == ApprovalStatus.PENDING.value
                and a.due_date is not None
                and a.due_date < now
                for a in contract.approvals
            ):
                overdue_contracts += 1
                bucket["overdue"] += 1

            for approval in contract.approvals:
                step_counts[approval.workflow_step] += 1
                if (
                    approval.status == ApprovalStatus.APPROVED.value
                    and approval.due_date is not None
                    and approval.decided_at is not None
                ):
                    delays[approval.workflow_step].append(
                        max(0.0, _days(approval.decided_at - approval.due_date))
                    )

        bottlenecks = tuple(
            StepBottleneck(
                workflow_step=step,
                approvals=step_counts[step],
                avg_delay_days=round(sum(delays[step]) / step_counts[step], 1),
                max_delay_days=round(max(delays[step], default=0.0), 1),
            )
            for step in sorted(step_counts)
        )

        positive = [t for t in approval_times if t > 0]
        return TimelineReport(
            total_contracts=len(contracts),
            approved_contracts=len(approval_times),
            avg_approval_days=(
                round(sum(approval_times) / len(approval_times), 1) if approval_times else 0.0
            ),
            min_approval_days=min(positive) if positive else 0.0,
            max_approval_days=max(approval_times, default=0.0),
            overdue_contracts=overdue_contracts,
            bottlenecks=bottlenecks,
            by_month=tuple(
                MonthlyTimeline(
                    month=month,
                    contracts=data["contracts"],
                    approved_contracts=len(data["times"]),
                    avg_days=(
                        round(sum(data["times"]) / len(data["times"]), 1)
                        if data["times"] else 0.0
                    ),
                    overdue=data["overdue"],
                )
                for month, data in sorted(months.items())
            ),
        )
