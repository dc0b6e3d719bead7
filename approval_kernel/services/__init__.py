"""
Kernel services -- the imperative shell.

Services persist through flush(); only WorkflowEngine commits.
"""

from approval_kernel.services.approval_workflow_service import (
    ApprovalSetOutcome,
    ApprovalWorkflowService,
    DecisionOutcome,
)
from approval_kernel.services.base import BaseService
from approval_kernel.services.history_recorder import HistoryRecorder
from approval_kernel.services.notification_service import (
    DispatchReport,
    NotificationDispatcher,
    NotificationService,
    StoreNotificationEmitter,
)
from approval_kernel.services.workflow_engine import (
    COLLABORATOR_ACTIONS,
    ApprovalSetResult,
    ApprovalSetStatus,
    DecisionResult,
    DecisionStatus,
    WorkflowEngine,
)

__all__ = [
    "BaseService",
    "ApprovalWorkflowService",
    "DecisionOutcome",
    "ApprovalSetOutcome",
    "HistoryRecorder",
    "NotificationDispatcher",
    "NotificationService",
    "StoreNotificationEmitter",
    "DispatchReport",
    "WorkflowEngine",
    "DecisionResult",
    "DecisionStatus",
    "ApprovalSetResult",
    "ApprovalSetStatus",
    "COLLABORATOR_ACTIONS",
]
