"""
Workflow templates (``approval_kernel.domain.workflow``).

Responsibility
--------------
Value objects for named approval routes and the pure resolution of a
template into the step assignments of one approval set.

Resolution rules:

* APPROVAL and REVIEW steps become approval steps; NOTIFICATION and
  CONDITION steps produce no approval rows and are skipped.
* A step assigned to a user resolves to that user.  A step assigned to
  a role resolves to every active user holding the role.
* A step that resolves to nobody is skipped when optional and raises
  ``UnresolvableStepError`` when required.
* Kept steps are renumbered contiguously from 1 in template order.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence
from uuid import UUID

from approval_kernel.domain.approval import StepAssignment
from approval_kernel.exceptions import UnresolvableStepError


class WorkflowStepType(str, Enum):
    APPROVAL = "APPROVAL"
    REVIEW = "REVIEW"
    NOTIFICATION = "NOTIFICATION"
    CONDITION = "CONDITION"


APPROVAL_STEP_TYPES: frozenset[WorkflowStepType] = frozenset({
    WorkflowStepType.APPROVAL,
    WorkflowStepType.REVIEW,
})


@dataclass(frozen=True)
class TemplateStep:
    order: int
    name: str
    type: WorkflowStepType
    role: str | None = None
    user_id: UUID | None = None
    due_days: int | None = None
    is_required: bool = True


@dataclass(frozen=True)
class WorkflowTemplateView:
    id: UUID
    name: str
    version: int
    is_active: bool
    steps: tuple[TemplateStep, ...]
    description: str | None = None


@dataclass(frozen=True)
class ResolvedWorkflow:
    """Step assignments ready for an approval set.

    ``step_due_days`` maps the renumbered steps to template SLAs.
    """

    workflow_id: UUID
    steps: tuple[StepAssignment, ...]
    step_due_days: Mapping[int, int]
    skipped: tuple[str, ...] = ()


def resolve_template(
    template: WorkflowTemplateView,
    users_by_role: Mapping[str, Sequence[UUID]],
) -> ResolvedWorkflow:
    """Turn a template into contiguous step assignments.

    Raises:
        UnresolvableStepError: a required step has no approver.
    """
    assignments: list[StepAssignment] = []
    due_days: dict[int, int] = {}
    skipped: list[str] = []

    for step in sorted(template.steps, key=lambda s: s.order):
        if step.type not in APPROVAL_STEP_TYPES:
            skipped.append(step.name)
            continue

        if step.user_id is not None:
            approvers = (step.user_id,)
        elif step.role is not None:
            approvers = tuple(dict.fromkeys(users_by_role.get(step.role, ())))
        else:
            approvers = ()

        if not approvers:
            if step.is_required:
                raise UnresolvableStepError(str(template.id), step.name)
            skipped.append(step.name)
            continue

        step_number = len(assignments) + 1
        assignments.append(
            StepAssignment(step_number=step_number, approver_ids=approvers, role=step.role)
        )
        if step.due_days is not None:
            due_days[step_number] = step.due_days

    return ResolvedWorkflow(
        workflow_id=template.id,
        steps=tuple(assignments),
        step_due_days=due_days,
        skipped=tuple(skipped),
    )
