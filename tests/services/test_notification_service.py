"""
Tests for notification dispatch, the store-backed emitter and the inbox.
"""

from uuid import uuid4

import pytest

from approval_kernel.domain.notification import (
    CollectingEmitter,
    NotificationIntent,
    NotificationType,
    dedupe_intents,
)
from approval_kernel.exceptions import NotificationNotFoundError
from approval_kernel.services.notification_service import (
    NotificationDispatcher,
    NotificationService,
    StoreNotificationEmitter,
)


def intent(user_id, type=NotificationType.APPROVAL_REQUESTED, contract_id=None):
    return NotificationIntent(
        user_id=user_id,
        type=type,
        title="Approval required",
        message="Contract CTR-1 is waiting for your approval",
        contract_id=contract_id,
        action_url=f"/contracts/{contract_id}" if contract_id else None,
    )


class FailingEmitter:
    def __init__(self, fail_for):
        self.fail_for = fail_for

    def emit(self, intent):
        if intent.user_id == self.fail_for:
            raise ConnectionError("mail relay down")


class TestDedupe:
    def test_same_recipient_type_and_contract_collapsed(self):
        user, contract = uuid4(), uuid4()
        unique = dedupe_intents([intent(user, contract_id=contract), intent(user, contract_id=contract)])
        assert len(unique) == 1

    def test_different_contracts_kept(self):
        user = uuid4()
        unique = dedupe_intents([intent(user, contract_id=uuid4()), intent(user, contract_id=uuid4())])
        assert len(unique) == 2

    def test_order_preserved(self):
        a, b = uuid4(), uuid4()
        unique = dedupe_intents([intent(b), intent(a), intent(b)])
        assert [i.user_id for i in unique] == [b, a]


class TestNotificationDispatcher:
    def test_every_emitter_receives_every_intent(self):
        first, second = CollectingEmitter(), CollectingEmitter()
        users = [uuid4(), uuid4()]
        report = NotificationDispatcher([first, second]).dispatch([intent(u) for u in users])

        assert report.ok
        assert [i.user_id for i in first.intents] == users
        assert [i.user_id for i in second.intents] == users
        assert len(first.for_user(users[1])) == 1

        first.clear()
        assert first.intents == []

    def test_failure_does_not_stop_remaining_recipients(self, captured_logs):
        broken, healthy = uuid4(), uuid4()
        collecting = CollectingEmitter()
        dispatcher = NotificationDispatcher([FailingEmitter(broken), collecting])

        report = dispatcher.dispatch([intent(broken), intent(healthy)])

        assert not report.ok
        assert [i.user_id for i, _ in report.failed] == [broken]
        assert isinstance(report.failed[0][1], ConnectionError)
        assert [i.user_id for i in report.delivered] == [healthy]
        assert {i.user_id for i in collecting.intents} == {broken, healthy}
        assert any(r["message"] == "notification_emit_failed" for r in captured_logs())


class TestStoreEmitterAndInbox:
    def test_emitted_intent_lands_in_inbox(self, session_factory, clock, team, contract_id):
        emitter = StoreNotificationEmitter(session_factory, clock)
        emitter.emit(intent(team.manager, contract_id=contract_id))

        with session_factory() as s:
            inbox = NotificationService(s, clock).list_for_user(team.manager)
        assert len(inbox) == 1
        record = inbox[0]
        assert record.type == NotificationType.APPROVAL_REQUESTED
        assert record.contract_id == contract_id
        assert record.action_url == f"/contracts/{contract_id}"
        assert not record.read
        assert record.created_at == clock.now()

    def test_newest_first_and_unread_filter(self, session_factory, clock, team):
        emitter = StoreNotificationEmitter(session_factory, clock)
        emitter.emit(intent(team.legal, NotificationType.APPROVAL_REQUESTED))
        clock.advance(60)
        emitter.emit(intent(team.legal, NotificationType.WORKFLOW_HALTED))

        with session_factory() as s:
            service = NotificationService(s, clock)
            inbox = service.list_for_user(team.legal)
            assert [n.type for n in inbox] == [
                NotificationType.WORKFLOW_HALTED,
                NotificationType.APPROVAL_REQUESTED,
            ]

            service.mark_read(inbox[0].id)
            s.commit()

            unread = service.list_for_user(team.legal, unread_only=True)
            assert [n.type for n in unread] == [NotificationType.APPROVAL_REQUESTED]
            assert service.unread_count(team.legal) == 1

    def test_mark_read_and_unread(self, session_factory, clock, team):
        StoreNotificationEmitter(session_factory, clock).emit(intent(team.finance))
        with session_factory() as s:
            service = NotificationService(s, clock)
            notification_id = service.list_for_user(team.finance)[0].id

            read = service.mark_read(notification_id)
            assert read.read and read.read_at == clock.now()

            unread = service.mark_read(notification_id, read=False)
            assert not unread.read and unread.read_at is None

    def test_mark_all_read(self, session_factory, clock, team, make_contract):
        emitter = StoreNotificationEmitter(session_factory, clock)
        for _ in range(3):
            emitter.emit(intent(team.finance, contract_id=make_contract()))
        with session_factory() as s:
            service = NotificationService(s, clock)
            assert service.mark_all_read(team.finance) == 3
            s.commit()
            assert service.unread_count(team.finance) == 0

    def test_mark_read_unknown(self, session):
        with pytest.raises(NotificationNotFoundError):
            NotificationService(session).mark_read(uuid4())
