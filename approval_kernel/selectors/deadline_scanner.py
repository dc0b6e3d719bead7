"""
Module: approval_kernel.selectors.deadline_scanner
Responsibility: Read-time classification of pending approvals against
    their due dates.
Architecture position: Kernel > Selectors.  Read-only.

Definitions:
    overdue(now)            PENDING and due_date <  now
    due_soon(now, horizon)  PENDING and now <= due_date <= now + horizon

Only rows of contracts still IN_APPROVAL are classified: pending rows
left behind by a rejection can never be decided and are not at risk.
The horizon defaults to the configured value passed at construction;
nothing in the scan itself hard-codes a window.

Invariants enforced:
    - Scanning never mutates Approval, Contract or History state.
    - Results are ordered by due_date ascending, then approver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_kernel.domain.approval import ApprovalRecord, ApprovalStatus, ContractStatus
from approval_kernel.domain.notification import (
    NotificationIntent,
    NotificationType,
    contract_url,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval import Approval
from approval_kernel.models.contract import Contract
from approval_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.deadline_scanner")

DEFAULT_DUE_SOON_HORIZON = timedelta(days=3)


@dataclass(frozen=True)
class DeadlineItem:
    """One pending approval with its position relative to ``now``."""

    approval: ApprovalRecord
    contract_number: str
    counterparty: str
    now: datetime

    @property
    def due_date(self) -> datetime:
        return self.approval.due_date

    @property
    def is_overdue(self) -> bool:
        return self.approval.due_date < self.now

    @property
    def time_remaining(self) -> timedelta:
        """Negative once overdue."""
        return self.approval.due_date - self.now

    @property
    def days_remaining(self) -> int:
        """Whole days left, floored; negative once overdue."""
        return self.time_remaining.days

    @property
    def overdue_by(self) -> timedelta:
        return max(self.now - self.approval.due_date, timedelta(0))


class DeadlineScanner(BaseSelector[Approval]):
    """Overdue and due-soon queries over pending approvals."""

    def __init__(self, session: Session, default_horizon: timedelta = DEFAULT_DUE_SOON_HORIZON):
        super().__init__(session)
        if default_horizon <= timedelta(0):
            raise ValueError("due-soon horizon must be positive")
        self.default_horizon = default_horizon

    def _pending(self, approver_id: UUID | None):
        query = (
            select(Approval, Contract.number, Contract.counterparty)
            .join(Contract, Contract.id == Approval.contract_id)
            .where(
                Approval.status == ApprovalStatus.PENDING.value,
                Approval.due_date.is_not(None),
                Contract.status == ContractStatus.IN_APPROVAL.value,
            )
        )
        if approver_id is not None:
            query = query.where(Approval.approver_id == approver_id)
        return query

    def _items(self, query, now: datetime) -> list[DeadlineItem]:
        query = query.order_by(Approval.due_date, Approval.approver_id, Approval.workflow_step)
        return [
            DeadlineItem(
                approval=approval.to_dto(),
                contract_number=number,
                counterparty=counterparty,
                now=now,
            )
            for approval, number, counterparty in self.session.execute(query).all()
        ]

    def overdue(self, now: datetime, approver_id: UUID | None = None) -> list[DeadlineItem]:
        query = self._pending(approver_id).where(Approval.due_date < now)
        return self._items(query, now)

    def due_soon(
        self,
        now: datetime,
        horizon: timedelta | None = None,
        approver_id: UUID | None = None,
    ) -> list[DeadlineItem]:
        window = self._window(horizon)
        query = self._pending(approver_id).where(
            Approval.due_date >= now,
            Approval.due_date <= now + window,
        )
        return self._items(query, now)

    def count_overdue(self, now: datetime, approver_id: UUID | None = None) -> int:
        query = self._pending(approver_id).where(Approval.due_date < now)
        return self._count(query)

    def count_due_soon(
        self,
        now: datetime,
        horizon: timedelta | None = None,
        approver_id: UUID | None = None,
    ) -> int:
        window = self._window(horizon)
        query = self._pending(approver_id).where(
            Approval.due_date >= now,
            Approval.due_date <= now + window,
        )
        return self._count(query)

    def sweep(self, now: datetime, horizon: timedelta | None = None) -> tuple[NotificationIntent, ...]:
        """DEADLINE_APPROACHING intents for every due-soon row.

        One intent per row; a scheduler owned by the caller decides how
        often to sweep and where to send the intents.
        """
        intents = []
        for item in self.due_soon(now, horizon):
            hours = int(item.time_remaining.total_seconds() // 3600)
            intents.append(
                NotificationIntent(
                    user_id=item.approval.approver_id,
                    type=NotificationType.DEADLINE_APPROACHING,
                    title="Approval deadline approaching",
                    message=(
                        f"Contract {item.contract_number} with {item.counterparty} "
                        f"(step {item.approval.workflow_step}) is due in {hours} hour(s)"
                    ),
                    contract_id=item.approval.contract_id,
                    action_url=contract_url(item.approval.contract_id),
                )
            )
        logger.info("deadline_sweep", extra={"due_soon": len(intents)})
        return tuple(intents)

    def _window(self, horizon: timedelta | None) -> timedelta:
        window = self.default_horizon if horizon is None else horizon
        if window < timedelta(0):
            raise ValueError("due-soon horizon must not be negative")
        return window

    def _count(self, query) -> int:
        return self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
