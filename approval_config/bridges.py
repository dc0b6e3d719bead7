"""
Bridges from configuration dataclasses to kernel policy objects.

The kernel never imports approval_config; these functions are the only
place where configuration values become runtime policy.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

from sqlalchemy.orm import Session, sessionmaker

from approval_config.schema import ApprovalEngineConfig
from approval_kernel.domain.clock import Clock
from approval_kernel.domain.deadline import DeadlinePolicy, SlaUnit
from approval_kernel.domain.gating import GatingPolicy, gating_policy_for
from approval_kernel.domain.notification import NotificationEmitter
from approval_kernel.services.workflow_engine import WorkflowEngine


def build_deadline_policy(config: ApprovalEngineConfig) -> DeadlinePolicy:
    deadlines = config.deadlines
    return DeadlinePolicy(
        step_sla_days=dict(deadlines.step_sla_days),
        role_sla_days=dict(deadlines.role_sla_days),
        default_sla_days=deadlines.default_sla_days,
        unit=SlaUnit(deadlines.unit),
        holidays=frozenset(deadlines.holidays),
        cumulative=deadlines.cumulative,
    )


def build_gating_policy(config: ApprovalEngineConfig) -> GatingPolicy:
    return gating_policy_for(config.workflow.gating)


def due_soon_horizon(config: ApprovalEngineConfig) -> timedelta:
    return timedelta(days=config.scanner.due_soon_horizon_days)


def build_workflow_engine(
    config: ApprovalEngineConfig,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
    emitters: Sequence[NotificationEmitter] | None = None,
) -> WorkflowEngine:
    """WorkflowEngine wired with the policies of ``config``."""
    return WorkflowEngine(
        session_factory,
        deadlines=build_deadline_policy(config),
        gating=build_gating_policy(config),
        clock=clock,
        emitters=emitters,
        due_soon_horizon=due_soon_horizon(config),
    )
