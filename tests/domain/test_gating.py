"""
Tests for step gating policies.
"""

from uuid import uuid4

import pytest

from approval_kernel.domain.approval import ApprovalRecord, ApprovalStatus
from approval_kernel.domain.gating import (
    ParallelGating,
    SerialGating,
    gating_policy_for,
)

CONTRACT_ID = uuid4()


def row(step: int, status: ApprovalStatus = ApprovalStatus.PENDING) -> ApprovalRecord:
    return ApprovalRecord(
        id=uuid4(),
        contract_id=CONTRACT_ID,
        approver_id=uuid4(),
        workflow_step=step,
        status=status,
    )


class TestSerialGating:
    gating = SerialGating()

    def test_first_step_never_blocked(self):
        assert self.gating.blocking_step(1, [row(1), row(2)]) is None

    def test_pending_earlier_step_blocks(self):
        assert self.gating.blocking_step(3, [row(1), row(2), row(3)]) == 1

    def test_approved_earlier_steps_unblock(self):
        rows = [row(1, ApprovalStatus.APPROVED), row(2, ApprovalStatus.APPROVED), row(3)]
        assert self.gating.blocking_step(3, rows) is None

    def test_step_with_one_pending_approver_still_blocks(self):
        rows = [row(1, ApprovalStatus.APPROVED), row(1), row(2)]
        assert self.gating.blocking_step(2, rows) == 1

    def test_active_step_is_lowest_pending(self):
        rows = [row(1, ApprovalStatus.APPROVED), row(2), row(3)]
        assert self.gating.active_steps(rows) == frozenset({2})

    def test_nothing_active_after_rejection(self):
        rows = [row(1, ApprovalStatus.REJECTED), row(2)]
        assert self.gating.active_steps(rows) == frozenset()

    def test_initial_steps(self):
        assert self.gating.initial_steps([3, 1, 2]) == frozenset({1})


class TestParallelGating:
    gating = ParallelGating()

    def test_never_blocks(self):
        assert self.gating.blocking_step(3, [row(1), row(2), row(3)]) is None

    def test_all_pending_steps_active(self):
        rows = [row(1, ApprovalStatus.APPROVED), row(2), row(3)]
        assert self.gating.active_steps(rows) == frozenset({2, 3})

    def test_initial_steps(self):
        assert self.gating.initial_steps([1, 2, 3]) == frozenset({1, 2, 3})


class TestGatingFactory:
    @pytest.mark.parametrize("mode, cls", [("serial", SerialGating), ("parallel", ParallelGating)])
    def test_known_modes(self, mode, cls):
        policy = gating_policy_for(mode)
        assert isinstance(policy, cls)
        assert policy.name == mode

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown gating mode"):
            gating_policy_for("quorum")
