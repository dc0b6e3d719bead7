"""
Property-based tests for the pure workflow core.

Random approval sets are driven through random decision sequences and
the planner's verdicts are compared against a direct statement of the
workflow rules.  No database is involved.
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from approval_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    ContractMetadata,
    ContractStatus,
    StepAssignment,
    WorkflowPhase,
    derive_workflow_state,
    is_contiguous_from_one,
)
from approval_kernel.domain.deadline import DeadlinePolicy, SlaUnit
from approval_kernel.domain.gating import ParallelGating, SerialGating
from approval_kernel.domain.transition import (
    DecisionRequest,
    plan_approval_set,
    plan_decision,
)
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    ContractNotInApprovalError,
    NonContiguousStepsError,
    OutOfSequenceError,
)

ACTIVATED = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

# approvers per step, 1..5 steps
step_shapes = st.lists(st.integers(min_value=1, max_value=3), min_size=1, max_size=5)


def metadata() -> ContractMetadata:
    return ContractMetadata(
        contract_id=uuid4(), number="CTR-FUZZ", counterparty="Fuzz Ltd", initiator_id=uuid4(),
    )


def build_rows(contract: ContractMetadata, shape: list[int]) -> list[ApprovalRecord]:
    return [
        ApprovalRecord(
            id=uuid4(),
            contract_id=contract.contract_id,
            approver_id=uuid4(),
            workflow_step=step,
            status=ApprovalStatus.PENDING,
        )
        for step, count in enumerate(shape, start=1)
        for _ in range(count)
    ]


def expected_error(row, rows, contract_status, serial):
    if row.status != ApprovalStatus.PENDING:
        return AlreadyDecidedError
    if contract_status != ContractStatus.IN_APPROVAL:
        return ContractNotInApprovalError
    if serial and any(
        a.workflow_step < row.workflow_step and a.status != ApprovalStatus.APPROVED
        for a in rows
    ):
        return OutOfSequenceError
    return None


class TestContiguity:
    @given(n=st.integers(min_value=1, max_value=30), data=st.data())
    def test_any_ordering_of_one_to_n(self, n, data):
        steps = data.draw(st.permutations(list(range(1, n + 1))))
        assert is_contiguous_from_one(steps)
        assert is_contiguous_from_one(steps + steps[:1])

    @given(steps=st.sets(st.integers(min_value=-3, max_value=30), min_size=1))
    def test_gaps_detected(self, steps):
        assert is_contiguous_from_one(steps) == (steps == set(range(1, len(steps) + 1)))

    @given(shape=step_shapes, gap=st.integers(min_value=1, max_value=3))
    def test_planner_rejects_gaps(self, shape, gap):
        steps = [
            StepAssignment(i if i == 1 else i + gap, (uuid4(),))
            for i in range(1, len(shape) + 2)
        ]
        with pytest.raises(NonContiguousStepsError):
            plan_approval_set(
                metadata(), ContractStatus.DRAFT, False, steps,
                DeadlinePolicy(), SerialGating(), ACTIVATED,
            )


class TestApprovalSetPlan:
    @given(shape=step_shapes, sla=st.integers(min_value=0, max_value=30))
    def test_one_row_per_approver_with_due_date(self, shape, sla):
        steps = [
            StepAssignment(step, tuple(uuid4() for _ in range(count)))
            for step, count in enumerate(shape, start=1)
        ]
        plan = plan_approval_set(
            metadata(), ContractStatus.DRAFT, False, steps,
            DeadlinePolicy(default_sla_days=sla), SerialGating(), ACTIVATED,
        )
        assert len(plan.rows) == sum(shape)
        assert all(r.due_date == ACTIVATED + timedelta(days=sla) for r in plan.rows)
        assert plan.contract_status_after == ContractStatus.IN_APPROVAL
        requested = [i for i in plan.intents if i.user_id in steps[0].approver_ids]
        assert len(requested) == shape[0]


class TestDecisionSequences:
    @given(
        shape=step_shapes,
        serial=st.booleans(),
        data=st.data(),
    )
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_planner_agrees_with_rules(self, shape, serial, data):
        contract = metadata()
        rows = build_rows(contract, shape)
        gating = SerialGating() if serial else ParallelGating()
        contract_status = ContractStatus.IN_APPROVAL

        moves = data.draw(st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=len(rows) - 1),
                st.sampled_from(list(ApprovalDecision)),
            ),
            min_size=1,
            max_size=3 * len(rows),
        ))
        for index, decision in moves:
            row = rows[index]
            expected = expected_error(row, rows, contract_status, serial)
            request = DecisionRequest(
                contract.contract_id, row.approver_id, row.workflow_step, decision, "reason",
            )
            try:
                plan = plan_decision(contract, contract_status, rows, request, gating)
            except (AlreadyDecidedError, ContractNotInApprovalError, OutOfSequenceError) as exc:
                assert type(exc) is expected
                continue

            assert expected is None
            rows[index] = replace(row, status=plan.new_status, comment="reason")
            assert plan.contract_status_before == contract_status
            contract_status = plan.contract_status_after

            if decision == ApprovalDecision.REJECT:
                assert contract_status == ContractStatus.REJECTED
            elif all(a.status == ApprovalStatus.APPROVED for a in rows):
                assert contract_status == ContractStatus.APPROVED
            else:
                assert contract_status == ContractStatus.IN_APPROVAL

        state = derive_workflow_state(contract_status, rows)
        if contract_status == ContractStatus.REJECTED:
            assert state.phase == WorkflowPhase.COMPLETED_REJECTED
        elif contract_status == ContractStatus.APPROVED:
            assert state.phase == WorkflowPhase.COMPLETED_APPROVED
        else:
            assert not state.is_terminal
            assert state.current_step == min(a.workflow_step for a in rows if a.is_pending)
        assert state.is_terminal == (contract_status != ContractStatus.IN_APPROVAL)


class TestDeadlineProperties:
    @given(
        start_day=st.dates(min_value=date(2024, 1, 1), max_value=date(2026, 12, 31)),
        days=st.integers(min_value=1, max_value=40),
        holidays=st.sets(
            st.dates(min_value=date(2024, 1, 1), max_value=date(2027, 3, 31)), max_size=10,
        ),
    )
    def test_business_day_due_dates(self, start_day, days, holidays):
        policy = DeadlinePolicy(
            default_sla_days=days, unit=SlaUnit.BUSINESS_DAYS, holidays=frozenset(holidays),
        )
        start = datetime.combine(start_day, datetime.min.time(), tzinfo=timezone.utc)
        due = policy.compute_due_date(1, metadata(), start)

        assert due > start
        assert policy.is_business_day(due.date())
        counted = sum(
            policy.is_business_day(start_day + timedelta(days=i))
            for i in range(1, (due.date() - start_day).days + 1)
        )
        assert counted == days

    @given(shape=step_shapes, sla=st.integers(min_value=0, max_value=10))
    def test_cumulative_schedule_is_monotonic(self, shape, sla):
        policy = DeadlinePolicy(default_sla_days=sla, cumulative=True)
        steps = [StepAssignment(i, (uuid4(),)) for i in range(1, len(shape) + 1)]
        due = policy.schedule(steps, metadata(), ACTIVATED)
        assert [due[i] for i in sorted(due)] == [
            ACTIVATED + timedelta(days=sla * i) for i in range(1, len(shape) + 1)
        ]
