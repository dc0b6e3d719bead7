"""
Module: approval_kernel.models.notification
Responsibility: ORM persistence for delivered notifications (the inbox
    written by StoreNotificationEmitter).
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.db.types import UTCDateTime

if TYPE_CHECKING:
    from approval_kernel.domain.notification import NotificationRecord


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=True,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type} user={self.user_id} read={self.read}>"

    def to_dto(self) -> NotificationRecord:
        from approval_kernel.domain.notification import (
            NotificationRecord,
            NotificationType,
        )

        return NotificationRecord(
            id=self.id,
            user_id=self.user_id,
            contract_id=self.contract_id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message,
            action_url=self.action_url,
            read=self.read,
            read_at=self.read_at,
            created_at=self.created_at,
        )
