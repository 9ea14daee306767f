"""
Domain layer for the training workflow kernel.

Pure value objects, the authorization strategy, visibility rules, dashboard
summaries, collaborator protocols and the JSON codec.  Nothing here performs
I/O.
"""

from training_kernel.domain.analytics import WorkflowSummary, summarize_requests
from training_kernel.domain.authorization import (
    LINE_MANAGER_STEPS,
    ROLE_STEP,
    STEP_AUTHORITY,
    authorize_cancel,
    authorize_decision,
    may_resolve,
)
from training_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from training_kernel.domain.events import WorkflowEvent, WorkflowEventType
from training_kernel.domain.ports import (
    Directory,
    NotificationRouter,
    RequestRepository,
)
from training_kernel.domain.training import (
    CANCELLABLE_STATUSES,
    PENDING_STEPS,
    ApprovalAction,
    ApprovalStep,
    Decision,
    Employee,
    InvariantReport,
    LocationMode,
    ProgramType,
    RequestStatus,
    Role,
    SupportingDocument,
    TrainingDraft,
    TrainingRequest,
    check_request_invariants,
)
from training_kernel.domain.visibility import (
    SortOrder,
    is_awaiting,
    is_visible_to,
    sort_requests,
)

__all__ = [
    "ApprovalAction",
    "ApprovalStep",
    "CANCELLABLE_STATUSES",
    "Clock",
    "Decision",
    "DeterministicClock",
    "Directory",
    "Employee",
    "InvariantReport",
    "LINE_MANAGER_STEPS",
    "LocationMode",
    "NotificationRouter",
    "PENDING_STEPS",
    "ProgramType",
    "ROLE_STEP",
    "RequestRepository",
    "RequestStatus",
    "Role",
    "STEP_AUTHORITY",
    "SortOrder",
    "SupportingDocument",
    "SystemClock",
    "TrainingDraft",
    "TrainingRequest",
    "WorkflowEvent",
    "WorkflowEventType",
    "WorkflowSummary",
    "authorize_cancel",
    "authorize_decision",
    "check_request_invariants",
    "is_awaiting",
    "is_visible_to",
    "may_resolve",
    "sort_requests",
    "summarize_requests",
]
