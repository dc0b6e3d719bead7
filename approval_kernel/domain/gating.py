"""
Step gating policies (``approval_kernel.domain.gating``).

Responsibility
--------------
Decides whether a decision on step K is legal given the other rows of
the contract, and which steps are currently actionable (so the planner
knows whom to notify when a step completes).  The transition planner
talks to the ``GatingPolicy`` protocol only, so serial and parallel
routing are interchangeable without touching transition or commit code.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Policies
--------
* ``SerialGating`` (default) -- step K is decidable only once every row
  of every step below K is APPROVED.  The source application never
  enforced an order; serial gating is a deliberate reconstruction.
* ``ParallelGating`` -- every pending row is decidable at any time.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from approval_kernel.domain.approval import ApprovalRecord, ApprovalStatus


class GatingPolicy(Protocol):
    """Pluggable step-ordering rule."""

    name: str

    def blocking_step(
        self, step_number: int, approvals: Iterable[ApprovalRecord],
    ) -> int | None:
        """Return the lowest step that blocks ``step_number``, or None."""
        ...

    def active_steps(self, approvals: Iterable[ApprovalRecord]) -> frozenset[int]:
        """Return the steps whose pending approvers may act right now."""
        ...

    def initial_steps(self, step_numbers: Iterable[int]) -> frozenset[int]:
        """Return the steps to notify when an approval set is created."""
        ...


class SerialGating:
    """Steps complete strictly in ascending order."""

    name = "serial"

    def blocking_step(
        self, step_number: int, approvals: Iterable[ApprovalRecord],
    ) -> int | None:
        blocking = [
            a.workflow_step
            for a in approvals
            if a.workflow_step < step_number and a.status != ApprovalStatus.APPROVED
        ]
        return min(blocking) if blocking else None

    def active_steps(self, approvals: Iterable[ApprovalRecord]) -> frozenset[int]:
        rows = list(approvals)
        if any(a.status == ApprovalStatus.REJECTED for a in rows):
            return frozenset()
        pending = [a.workflow_step for a in rows if a.is_pending]
        return frozenset({min(pending)}) if pending else frozenset()

    def initial_steps(self, step_numbers: Iterable[int]) -> frozenset[int]:
        steps = set(step_numbers)
        return frozenset({min(steps)}) if steps else frozenset()


class ParallelGating:
    """No ordering between steps; a rejection still halts everything."""

    name = "parallel"

    def blocking_step(
        self, step_number: int, approvals: Iterable[ApprovalRecord],
    ) -> int | None:
        return None

    def active_steps(self, approvals: Iterable[ApprovalRecord]) -> frozenset[int]:
        rows = list(approvals)
        if any(a.status == ApprovalStatus.REJECTED for a in rows):
            return frozenset()
        return frozenset(a.workflow_step for a in rows if a.is_pending)

    def initial_steps(self, step_numbers: Iterable[int]) -> frozenset[int]:
        return frozenset(step_numbers)


_POLICIES: dict[str, type] = {
    SerialGating.name: SerialGating,
    ParallelGating.name: ParallelGating,
}


def gating_policy_for(mode: str) -> GatingPolicy:
    """Build the gating policy named by configuration.

    Raises:
        ValueError: unknown mode.
    """
    try:
        return _POLICIES[mode]()
    except KeyError:
        raise ValueError(
            f"Unknown gating mode '{mode}', expected one of {sorted(_POLICIES)}"
        ) from None
