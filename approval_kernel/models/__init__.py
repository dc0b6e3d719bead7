"""ORM models for the approval kernel."""

from approval_kernel.models.approval import Approval
from approval_kernel.models.contract import Contract
from approval_kernel.models.contract_history import ContractHistory
from approval_kernel.models.notification import Notification
from approval_kernel.models.user import User
from approval_kernel.models.workflow import WorkflowTemplate, WorkflowTemplateStep

__all__ = [
    "Approval",
    "Contract",
    "ContractHistory",
    "Notification",
    "User",
    "WorkflowTemplate",
    "WorkflowTemplateStep",
]
