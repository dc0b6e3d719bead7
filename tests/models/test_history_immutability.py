"""
Contract history is append-only: ORM updates and deletes are refused.
"""

import pytest

from approval_kernel.domain.approval import HistoryAction
from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.models.contract_history import ContractHistory
from approval_kernel.services.history_recorder import HistoryRecorder


@pytest.fixture
def history_row(session, clock, contract_id) -> ContractHistory:
    entry = HistoryRecorder(session, clock).record(
        contract_id, HistoryAction.CONTRACT_UPDATED, {"field": "counterparty"},
    )
    return session.get(ContractHistory, entry.id)


class TestHistoryImmutability:
    def test_update_refused(self, session, history_row):
        history_row.details = '{"field":"tampered"}'
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ContractHistory"

    def test_delete_refused(self, session, history_row):
        session.delete(history_row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, session, history_row, captured_logs):
        session.delete(history_row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        violations = [r for r in captured_logs() if r["message"] == "immutability_violation"]
        assert violations and violations[0]["operation"] == "DELETE"
