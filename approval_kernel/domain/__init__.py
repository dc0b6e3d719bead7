"""
Pure domain layer.

Value objects, transition tables, policies and the transition planner,
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time
- I/O

All domain objects are immutable and deterministic.
"""

from approval_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    CONTRACT_TRANSITIONS,
    ApprovalDecision,
    ApprovalRecord,
    ApprovalStatus,
    ContractMetadata,
    ContractStatus,
    ContractView,
    HistoryAction,
    HistoryEntry,
    StepAssignment,
    WorkflowPhase,
    WorkflowState,
    derive_workflow_state,
    is_contiguous_from_one,
)
from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.deadline import DeadlinePolicy, SlaUnit
from approval_kernel.domain.gating import (
    GatingPolicy,
    ParallelGating,
    SerialGating,
    gating_policy_for,
)
from approval_kernel.domain.notification import (
    CollectingEmitter,
    NotificationEmitter,
    NotificationIntent,
    NotificationRecord,
    NotificationType,
)
from approval_kernel.domain.transition import (
    ApprovalSetPlan,
    DecisionPlan,
    DecisionRequest,
    plan_approval_set,
    plan_decision,
)
from approval_kernel.domain.workflow import (
    TemplateStep,
    WorkflowStepType,
    WorkflowTemplateView,
    resolve_template,
)

__all__ = [
    # Statuses and transitions
    "ContractStatus",
    "ApprovalStatus",
    "ApprovalDecision",
    "HistoryAction",
    "CONTRACT_TRANSITIONS",
    "APPROVAL_TRANSITIONS",
    # Records
    "ApprovalRecord",
    "ContractMetadata",
    "ContractView",
    "HistoryEntry",
    "StepAssignment",
    "WorkflowPhase",
    "WorkflowState",
    "derive_workflow_state",
    "is_contiguous_from_one",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Policies
    "DeadlinePolicy",
    "SlaUnit",
    "GatingPolicy",
    "SerialGating",
    "ParallelGating",
    "gating_policy_for",
    # Notifications
    "NotificationType",
    "NotificationIntent",
    "NotificationRecord",
    "NotificationEmitter",
    "CollectingEmitter",
    # Planner
    "DecisionRequest",
    "DecisionPlan",
    "ApprovalSetPlan",
    "plan_decision",
    "plan_approval_set",
    # Workflow templates
    "TemplateStep",
    "WorkflowStepType",
    "WorkflowTemplateView",
    "resolve_template",
]
