"""
Module: approval_kernel.models.user
Responsibility: ORM persistence for resolved actors (initiators, approvers,
    notification recipients).
Architecture position: Kernel > Models.  May import from db/base.py only.

Authentication is external; a User row is only the resolved identity and
the role string used by role-assigned workflow steps and role SLAs.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import TimestampedBase


class User(TimestampedBase):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("idx_users_role", "role", "is_active"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="USER")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
