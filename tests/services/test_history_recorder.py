"""
Tests for HistoryRecorder: per-contract sequencing and canonical details.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from approval_kernel.domain.approval import HistoryAction
from approval_kernel.exceptions import ContractNotFoundError
from approval_kernel.models.contract_history import ContractHistory
from approval_kernel.services.history_recorder import HistoryRecorder


@pytest.fixture
def recorder(session, clock) -> HistoryRecorder:
    return HistoryRecorder(session, clock)


class TestHistoryRecorder:
    def test_sequence_starts_at_one_per_contract(self, recorder, make_contract):
        first, second = make_contract(), make_contract()

        a1 = recorder.record(first, HistoryAction.CONTRACT_UPDATED, {"field": "amount"})
        a2 = recorder.record(first, HistoryAction.SHIPPING_UPDATED, {"carrier": "DHL"})
        b1 = recorder.record(second, HistoryAction.CONTRACT_UPDATED, {})

        assert (a1.sequence, a2.sequence, b1.sequence) == (1, 2, 1)

    def test_timestamp_and_actor(self, recorder, contract_id, team, clock):
        entry = recorder.record(
            contract_id, HistoryAction.CONTRACT_UPDATED, {}, actor_id=team.initiator,
        )
        assert entry.created_at == clock.now()
        assert entry.actor_id == team.initiator

    def test_details_stored_as_canonical_json(self, recorder, contract_id, session):
        recorder.record(
            contract_id,
            HistoryAction.CONTRACT_UPDATED,
            {"z": 1, "amount": Decimal("10.00"), "a": "x"},
        )
        stored = session.execute(
            select(ContractHistory.details).where(ContractHistory.contract_id == contract_id)
        ).scalar_one()
        assert stored == '{"a":"x","amount":"10","z":1}'

    def test_unknown_contract(self, recorder):
        with pytest.raises(ContractNotFoundError):
            recorder.record(uuid4(), HistoryAction.CONTRACT_UPDATED, {})

    def test_logs_event(self, recorder, contract_id, captured_logs):
        recorder.record(contract_id, HistoryAction.SHIPPING_UPDATED, {"tracking": "1Z"})
        logs = [r for r in captured_logs() if r["message"] == "history_recorded"]
        assert len(logs) == 1
        assert logs[0]["action"] == "SHIPPING_UPDATED"
        assert logs[0]["sequence"] == 1
