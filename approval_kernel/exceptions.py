"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The workflow engine returns a discriminated result for every decision.
The facade can only do that reliably if every failure is a distinct type:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.decide(...)
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        service.decide(...)
    except AlreadyDecidedError as e:
        api_response(code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ApprovalKernelError:

    ApprovalKernelError (base)
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- ApprovalNotFoundError
    |   +-- WorkflowTemplateNotFoundError
    |   +-- NotificationNotFoundError
    |
    +-- WorkflowStateError
    |   +-- AlreadyDecidedError
    |   +-- ContractNotInApprovalError
    |   +-- OutOfSequenceError
    |   +-- ApprovalAlreadyStartedError
    |   +-- InvalidContractTransitionError
    |
    +-- InvalidInputError
    |   +-- InvalidCommentError
    |   +-- InvalidStepNumberError
    |   +-- NonContiguousStepsError
    |   +-- EmptyApprovalSetError
    |   +-- DuplicateApproverError
    |   +-- UnresolvableStepError
    |   +-- UnknownApproverError
    |
    +-- StoreFailureError
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | CONTRACT_NOT_FOUND          | Contract id doesn't exist
                | APPROVAL_NOT_FOUND          | No row for (contract, step, approver)
                | WORKFLOW_TEMPLATE_NOT_FOUND | Template id doesn't exist
                | NOTIFICATION_NOT_FOUND      | Notification id doesn't exist
----------------|-----------------------------|-----------------------------------------
State           | ALREADY_DECIDED             | Row is no longer PENDING
                | CONTRACT_NOT_IN_APPROVAL    | Contract is not IN_APPROVAL
                | OUT_OF_SEQUENCE             | Earlier step not fully approved
                | APPROVAL_ALREADY_STARTED    | Contract already has approval rows
                | INVALID_CONTRACT_TRANSITION | Status change not in transition table
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_COMMENT             | REJECT without a comment
                | INVALID_STEP_NUMBER         | Step number < 1
                | NON_CONTIGUOUS_STEPS        | Steps are not 1..N without gaps
                | EMPTY_APPROVAL_SET          | No steps, or a step without approvers
                | DUPLICATE_APPROVER          | Same approver twice within a step
                | UNRESOLVABLE_STEP           | Required template step has no approver
----------------|-----------------------------|-----------------------------------------
Store           | STORE_FAILURE               | Persistence error, transaction rolled back
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a history event

===============================================================================
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(ApprovalKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class ApprovalNotFoundError(NotFoundError):
    """No approval row for the (contract, step, approver) triple."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, contract_id: str, step_number: int, approver_id: str):
        self.contract_id = contract_id
        self.step_number = step_number
        self.approver_id = approver_id
        super().__init__(
            f"No approval for contract {contract_id} step {step_number} "
            f"approver {approver_id}"
        )


class WorkflowTemplateNotFoundError(NotFoundError):
    """Workflow template with given ID was not found."""

    code: str = "WORKFLOW_TEMPLATE_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow template not found: {workflow_id}")


class NotificationNotFoundError(NotFoundError):
    """Notification with given ID was not found."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


# Workflow state exceptions


class WorkflowStateError(ApprovalKernelError):
    """Base exception for illegal workflow transitions."""

    code: str = "WORKFLOW_STATE_ERROR"


class AlreadyDecidedError(WorkflowStateError):
    """Approval row is not PENDING; decisions are final."""

    code: str = "ALREADY_DECIDED"

    def __init__(self, approval_id: str, current_status: str):
        self.approval_id = approval_id
        self.current_status = current_status
        super().__init__(
            f"Approval {approval_id} already decided: {current_status}"
        )


class ContractNotInApprovalError(WorkflowStateError):
    """Decision attempted on a contract that is not IN_APPROVAL."""

    code: str = "CONTRACT_NOT_IN_APPROVAL"

    def __init__(self, contract_id: str, current_status: str):
        self.contract_id = contract_id
        self.current_status = current_status
        super().__init__(
            f"Contract {contract_id} is not in approval: {current_status}"
        )


class OutOfSequenceError(WorkflowStateError):
    """Decision on a step whose predecessors are not fully approved."""

    code: str = "OUT_OF_SEQUENCE"

    def __init__(self, contract_id: str, step_number: int, blocking_step: int):
        self.contract_id = contract_id
        self.step_number = step_number
        self.blocking_step = blocking_step
        super().__init__(
            f"Step {step_number} of contract {contract_id} is gated by "
            f"unresolved step {blocking_step}"
        )


class ApprovalAlreadyStartedError(WorkflowStateError):
    """Approval rows already exist for the contract."""

    code: str = "APPROVAL_ALREADY_STARTED"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Approval already started for contract {contract_id}")


class InvalidContractTransitionError(WorkflowStateError):
    """Contract status change is not in the transition table."""

    code: str = "INVALID_CONTRACT_TRANSITION"

    def __init__(self, contract_id: str, from_status: str, to_status: str):
        self.contract_id = contract_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Contract {contract_id} cannot move from {from_status} to {to_status}"
        )


# Input validation exceptions


class InvalidInputError(ApprovalKernelError):
    """Base exception for malformed requests."""

    code: str = "INVALID_INPUT"


class InvalidCommentError(InvalidInputError):
    """A rejection must carry a non-blank comment."""

    code: str = "INVALID_COMMENT"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Rejection of approval {approval_id} requires a comment")


class InvalidStepNumberError(InvalidInputError):
    """Step numbers are positive integers."""

    code: str = "INVALID_STEP_NUMBER"

    def __init__(self, step_number: object):
        self.step_number = step_number
        super().__init__(f"Invalid step number: {step_number!r}")


class NonContiguousStepsError(InvalidInputError):
    """Step numbers must form 1..N without gaps or duplicates."""

    code: str = "NON_CONTIGUOUS_STEPS"

    def __init__(self, step_numbers: list[int]):
        self.step_numbers = step_numbers
        super().__init__(
            f"Steps must be contiguous from 1, got {sorted(step_numbers)}"
        )


class EmptyApprovalSetError(InvalidInputError):
    """No steps supplied, or a step has no approvers."""

    code: str = "EMPTY_APPROVAL_SET"

    def __init__(self, contract_id: str, step_number: int | None = None):
        self.contract_id = contract_id
        self.step_number = step_number
        if step_number is None:
            msg = f"Approval set for contract {contract_id} has no steps"
        else:
            msg = f"Step {step_number} of contract {contract_id} has no approvers"
        super().__init__(msg)


class DuplicateApproverError(InvalidInputError):
    """Same approver listed twice within one step."""

    code: str = "DUPLICATE_APPROVER"

    def __init__(self, step_number: int, approver_id: str):
        self.step_number = step_number
        self.approver_id = approver_id
        super().__init__(
            f"Approver {approver_id} listed more than once in step {step_number}"
        )


class UnresolvableStepError(InvalidInputError):
    """A required template step resolved to no approvers."""

    code: str = "UNRESOLVABLE_STEP"

    def __init__(self, workflow_id: str, step_name: str):
        self.workflow_id = workflow_id
        self.step_name = step_name
        super().__init__(
            f"Required step '{step_name}' of workflow {workflow_id} has no approvers"
        )


class UnknownApproverError(InvalidInputError):
    """An approver id does not name an active user."""

    code: str = "UNKNOWN_APPROVER"

    def __init__(self, approver_id: str):
        self.approver_id = approver_id
        super().__init__(f"Approver {approver_id} is not an active user")


# Persistence


class StoreFailureError(ApprovalKernelError):
    """
    Underlying persistence error.

    Raised after the transaction has been rolled back; Approval, Contract
    and History are unchanged.
    """

    code: str = "STORE_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store failure during {operation}: {reason}")


class ImmutabilityViolationError(ApprovalKernelError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")

