"""
Deadline policy (``approval_kernel.domain.deadline``).

Responsibility
--------------
Computes the due date of a workflow step from the SLA configuration.
Deterministic and side-effect free: the same policy, step, metadata and
activation time always give the same due date.

SLA resolution order for a step:

1. ``ContractMetadata.step_due_days`` (from the contract's workflow template)
2. ``DeadlinePolicy.step_sla_days``
3. ``DeadlinePolicy.role_sla_days`` (keyed by the step approver's role)
4. ``DeadlinePolicy.default_sla_days``

No SLA at any level means no due date.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Mapping, Sequence

from approval_kernel.domain.approval import ContractMetadata, StepAssignment


class SlaUnit(str, Enum):
    CALENDAR_DAYS = "calendar_days"
    BUSINESS_DAYS = "business_days"


@dataclass(frozen=True)
class DeadlinePolicy:
    """SLA table plus the arithmetic to turn it into due dates.

    With ``cumulative`` set, step K's clock starts where step K-1's SLA
    ended rather than at activation.  Rows are created up front, so this
    estimates when step K becomes active under serial gating.
    """

    step_sla_days: Mapping[int, int] = field(default_factory=dict)
    role_sla_days: Mapping[str, int] = field(default_factory=dict)
    default_sla_days: int | None = 3
    unit: SlaUnit = SlaUnit.CALENDAR_DAYS
    holidays: frozenset[date] = frozenset()
    cumulative: bool = False

    def __post_init__(self) -> None:
        for label, days in self._all_slas():
            if days < 0:
                raise ValueError(f"SLA for {label} must be non-negative, got {days}")

    def _all_slas(self):
        for step, days in self.step_sla_days.items():
            yield f"step {step}", days
        for role, days in self.role_sla_days.items():
            yield f"role {role}", days
        if self.default_sla_days is not None:
            yield "default", self.default_sla_days

    def sla_days_for(
        self,
        step_number: int,
        contract: ContractMetadata | None = None,
        role: str | None = None,
    ) -> int | None:
        """Resolve the SLA in days for one step, or None when unconfigured."""
        if contract is not None and step_number in contract.step_due_days:
            return contract.step_due_days[step_number]
        if step_number in self.step_sla_days:
            return self.step_sla_days[step_number]
        if role is not None and role in self.role_sla_days:
            return self.role_sla_days[role]
        return self.default_sla_days

    def add_days(self, start: datetime, days: int) -> datetime:
        """Advance ``start`` by ``days`` in the configured unit."""
        if self.unit == SlaUnit.CALENDAR_DAYS:
            return start + timedelta(days=days)
        current = start
        remaining = days
        while remaining > 0:
            current += timedelta(days=1)
            if self.is_business_day(current.date()):
                remaining -= 1
        return current

    def is_business_day(self, day: date) -> bool:
        return day.weekday() < 5 and day not in self.holidays

    def compute_due_date(
        self,
        step_number: int,
        contract: ContractMetadata,
        activated_at: datetime,
        role: str | None = None,
    ) -> datetime | None:
        """Due date of one step measured from ``activated_at``.

        Ignores ``cumulative``; use ``schedule`` for a whole approval set.
        """
        days = self.sla_days_for(step_number, contract, role)
        if days is None:
            return None
        return self.add_days(activated_at, days)

    def schedule(
        self,
        steps: Sequence[StepAssignment],
        contract: ContractMetadata,
        activated_at: datetime,
    ) -> dict[int, datetime | None]:
        """Due date for every step of an approval set, keyed by step number."""
        due_dates: dict[int, datetime | None] = {}
        anchor = activated_at
        for step in sorted(steps, key=lambda s: s.step_number):
            due = self.compute_due_date(step.step_number, contract, anchor, step.role)
            due_dates[step.step_number] = due
            if self.cumulative and due is not None:
                anchor = due
        return due_dates
