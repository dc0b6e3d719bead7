"""
Module: approval_kernel.models.workflow
Responsibility: ORM persistence for named, versioned approval routes.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(workflow_id, step_order).
    - step type in (APPROVAL, REVIEW, NOTIFICATION, CONDITION).
    - due_days, when set, is non-negative.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, TimestampedBase, UUIDString

if TYPE_CHECKING:
    from approval_kernel.domain.workflow import TemplateStep, WorkflowTemplateView


class WorkflowTemplate(TimestampedBase):
    __tablename__ = "workflow_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    steps: Mapped[list["WorkflowTemplateStep"]] = relationship(
        "WorkflowTemplateStep",
        back_populates="workflow",
        order_by="WorkflowTemplateStep.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowTemplate {self.name} v{self.version}>"

    def to_dto(self) -> WorkflowTemplateView:
        from approval_kernel.domain.workflow import WorkflowTemplateView

        return WorkflowTemplateView(
            id=self.id,
            name=self.name,
            version=self.version,
            is_active=self.is_active,
            description=self.description,
            steps=tuple(s.to_dto() for s in self.steps),
        )


class WorkflowTemplateStep(Base):
    __tablename__ = "workflow_template_steps"

    __table_args__ = (
        UniqueConstraint("workflow_id", "step_order", name="uq_workflow_step_order"),
        CheckConstraint(
            "step_type IN ('APPROVAL', 'REVIEW', 'NOTIFICATION', 'CONDITION')",
            name="ck_workflow_step_type",
        ),
        CheckConstraint(
            "due_days IS NULL OR due_days >= 0",
            name="ck_workflow_step_due_days",
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_templates.id"), nullable=False,
    )
    step_order: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    step_type: Mapped[str] = mapped_column(String(20), nullable=False, default="APPROVAL")
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    due_days: Mapped[int | None] = mapped_column(nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    workflow: Mapped["WorkflowTemplate"] = relationship(
        "WorkflowTemplate", back_populates="steps",
    )

    def to_dto(self) -> TemplateStep:
        from approval_kernel.domain.workflow import TemplateStep, WorkflowStepType

        return TemplateStep(
            order=self.step_order,
            name=self.name,
            type=WorkflowStepType(self.step_type),
            role=self.role,
            user_id=self.user_id,
            due_days=self.due_days,
            is_required=self.is_required,
        )
