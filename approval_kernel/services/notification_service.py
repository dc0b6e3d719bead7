"""
Notification delivery and inbox.

Responsibility:
    - ``NotificationDispatcher`` hands committed notification intents to
      every configured emitter, one intent at a time, and reports the
      ones that failed.  No retries.
    - ``StoreNotificationEmitter`` is the default sink: it writes one
      Notification row per intent in its own short transaction.
    - ``NotificationService`` is the recipient-side inbox: list and mark
      read.

Architecture position:
    Kernel > Services.  The dispatcher runs only after the workflow
    transaction has committed; it never sees uncommitted state.

Failure modes:
    - A failing emitter does not stop delivery of the remaining intents.
      The dispatcher collects (intent, exception) pairs; the facade puts
      them on the committed result as ``delivery_failures``.
    - NotificationNotFoundError from mark_read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.notification import (
    NotificationEmitter,
    NotificationIntent,
    NotificationRecord,
    dedupe_intents,
)
from approval_kernel.exceptions import NotificationNotFoundError, StoreFailureError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.notification import Notification
from approval_kernel.services.base import BaseService

logger = get_logger("services.notification")


class StoreNotificationEmitter:
    """Persists each intent as a Notification row."""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def emit(self, intent: NotificationIntent) -> None:
        session = self._session_factory()
        try:
            session.add(
                Notification(
                    user_id=intent.user_id,
                    contract_id=intent.contract_id,
                    type=intent.type.value,
                    title=intent.title,
                    message=intent.message,
                    action_url=intent.action_url,
                    read=False,
                    created_at=self._clock.now(),
                )
            )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreFailureError("emit_notification", str(exc)) from exc
        finally:
            session.close()


@dataclass
class DispatchReport:
    delivered: list[NotificationIntent] = field(default_factory=list)
    failed: list[tuple[NotificationIntent, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class NotificationDispatcher:
    """Delivers intents synchronously to every emitter."""

    def __init__(self, emitters: Sequence[NotificationEmitter]):
        self._emitters = tuple(emitters)

    def dispatch(self, intents: Iterable[NotificationIntent]) -> DispatchReport:
        report = DispatchReport()
        for intent in dedupe_intents(intents):
            delivered = True
            for emitter in self._emitters:
                try:
                    emitter.emit(intent)
                except Exception as exc:
                    delivered = False
                    report.failed.append((intent, exc))
                    logger.error(
                        "notification_emit_failed",
                        extra={
                            "user_id": str(intent.user_id),
                            "notification_type": intent.type.value,
                            "emitter": type(emitter).__name__,
                        },
                        exc_info=True,
                    )
            if delivered:
                report.delivered.append(intent)

        logger.info(
            "notifications_dispatched",
            extra={
                "delivered": len(report.delivered),
                "failed": len(report.failed),
            },
        )
        return report


class NotificationService(BaseService[Notification]):
    """A recipient's notification inbox."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        return [n.to_dto() for n in self.session.execute(query).scalars()]

    def unread_count(self, user_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
        ).scalar_one()

    def mark_read(self, notification_id: UUID, read: bool = True) -> NotificationRecord:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            raise NotificationNotFoundError(str(notification_id))
        notification.read = read
        notification.read_at = self._clock.now() if read else None
        self.session.flush()
        return notification.to_dto()

    def mark_all_read(self, user_id: UUID) -> int:
        result = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=self._clock.now())
            .execution_options(synchronize_session=False)
        )
        self.session.flush()
        return result.rowcount
