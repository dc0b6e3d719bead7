"""
Tests for resolving workflow templates into approval steps.
"""

from uuid import uuid4

import pytest

from approval_kernel.domain.workflow import (
    TemplateStep,
    WorkflowStepType,
    WorkflowTemplateView,
    resolve_template,
)
from approval_kernel.exceptions import UnresolvableStepError

MANAGER, LEGAL_1, LEGAL_2, DIRECTOR = uuid4(), uuid4(), uuid4(), uuid4()


def template(*steps: TemplateStep) -> WorkflowTemplateView:
    return WorkflowTemplateView(
        id=uuid4(), name="Standard", version=1, is_active=True, steps=steps,
    )


class TestResolveTemplate:
    def test_roles_and_users_resolved_in_order(self):
        resolved = resolve_template(
            template(
                TemplateStep(2, "Legal", WorkflowStepType.APPROVAL, role="LEGAL", due_days=5),
                TemplateStep(1, "Manager", WorkflowStepType.APPROVAL, user_id=MANAGER),
            ),
            {"LEGAL": [LEGAL_1, LEGAL_2]},
        )
        assert [(s.step_number, s.approver_ids) for s in resolved.steps] == [
            (1, (MANAGER,)),
            (2, (LEGAL_1, LEGAL_2)),
        ]
        assert resolved.step_due_days == {2: 5}
        assert resolved.skipped == ()

    def test_non_approval_steps_skipped_and_renumbered(self):
        resolved = resolve_template(
            template(
                TemplateStep(1, "Notify sales", WorkflowStepType.NOTIFICATION, role="SALES"),
                TemplateStep(2, "Review", WorkflowStepType.REVIEW, user_id=MANAGER),
                TemplateStep(3, "Director", WorkflowStepType.APPROVAL, user_id=DIRECTOR),
            ),
            {},
        )
        assert [s.step_number for s in resolved.steps] == [1, 2]
        assert resolved.steps[1].approver_ids == (DIRECTOR,)
        assert resolved.skipped == ("Notify sales",)

    def test_optional_unresolvable_step_skipped(self):
        resolved = resolve_template(
            template(
                TemplateStep(1, "Board", WorkflowStepType.APPROVAL, role="BOARD", is_required=False),
                TemplateStep(2, "Manager", WorkflowStepType.APPROVAL, user_id=MANAGER),
            ),
            {},
        )
        assert [(s.step_number, s.approver_ids) for s in resolved.steps] == [(1, (MANAGER,))]
        assert resolved.skipped == ("Board",)

    def test_required_unresolvable_step_raises(self):
        with pytest.raises(UnresolvableStepError) as exc_info:
            resolve_template(
                template(TemplateStep(1, "Legal", WorkflowStepType.APPROVAL, role="LEGAL")),
                {"FINANCE": [uuid4()]},
            )
        assert exc_info.value.step_name == "Legal"

    def test_duplicate_role_members_collapsed(self):
        resolved = resolve_template(
            template(TemplateStep(1, "Legal", WorkflowStepType.APPROVAL, role="LEGAL")),
            {"LEGAL": [LEGAL_1, LEGAL_1]},
        )
        assert resolved.steps[0].approver_ids == (LEGAL_1,)
