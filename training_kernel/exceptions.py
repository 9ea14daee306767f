"""
Typed Exception Hierarchy for the Training Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the lifecycle controller (HTTP handlers, RPC shims, CLIs) must
react to failures precisely: a conflict is retried, a validation failure is
shown next to the form, an authorization failure hides the action button.
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Rejected workflow calls also carry the unchanged request snapshot in the
``request`` attribute so a client can re-render without re-fetching:

    try:
        controller.decide(request_id, actor_id, Decision.APPROVED)
    except AuthorizationError as e:
        return {"error": e.code, "request": request_to_dict(e.request)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TrainingWorkflowError (base)
    |
    +-- ValidationError
    +-- AuthorizationError
    +-- InvalidTransitionError
    +-- StateConflictError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- EmployeeNotFoundError
    |
    +-- DependencyError
    |   +-- RepositoryError
    |   +-- DirectoryError
    |   +-- NotificationError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                   | When Raised
----------------|------------------------|-----------------------------------
Input           | VALIDATION_ERROR       | Malformed draft (dates, cost, title)
----------------|------------------------|-----------------------------------
Workflow        | AUTHORIZATION_ERROR    | Wrong role, not the line manager
                | INVALID_TRANSITION     | Operation illegal for status/step
                | STATE_CONFLICT         | Concurrent modification won
----------------|------------------------|-----------------------------------
Lookup          | REQUEST_NOT_FOUND      | Unknown request id
                | EMPLOYEE_NOT_FOUND     | Unknown actor/employee id
----------------|------------------------|-----------------------------------
Dependency      | REPOSITORY_ERROR       | Store failure or timeout
                | DIRECTORY_ERROR        | Directory failure or timeout
                | NOTIFICATION_ERROR     | Router rejected an event
----------------|------------------------|-----------------------------------
Audit           | IMMUTABILITY_VIOLATION | Approval chain row modified

===============================================================================
PROPAGATION
===============================================================================

- Engine errors (Validation/Authorization/InvalidTransition) are
  deterministic: retrying the same inputs yields the same error.
- StateConflictError is raised only after the controller exhausted its
  bounded reload-and-retry loop, or when the caller supplied a stale
  expected version.
- DependencyError subclasses propagate to the caller unchanged, except
  NotificationError which is logged and swallowed after commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from training_kernel.domain.training import TrainingRequest


class TrainingWorkflowError(Exception):
    """
    Base exception for all training workflow errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "TRAINING_WORKFLOW_ERROR"


# Workflow exceptions


class ValidationError(TrainingWorkflowError):
    """A draft or decision payload is malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        field: str,
        reason: str,
        request: TrainingRequest | None = None,
    ):
        self.field = field
        self.reason = reason
        self.request = request
        super().__init__(f"Invalid {field}: {reason}")


class AuthorizationError(TrainingWorkflowError):
    """The actor may not perform this operation on this request."""

    code: str = "AUTHORIZATION_ERROR"

    def __init__(
        self,
        actor_id: str,
        operation: str,
        reason: str,
        request: TrainingRequest | None = None,
    ):
        self.actor_id = actor_id
        self.operation = operation
        self.reason = reason
        self.request = request
        super().__init__(f"Actor {actor_id} may not {operation}: {reason}")


class InvalidTransitionError(TrainingWorkflowError):
    """The operation is not legal for the request's current status/step."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        request_id: str,
        operation: str,
        status: str,
        step: str,
        request: TrainingRequest | None = None,
    ):
        self.request_id = request_id
        self.operation = operation
        self.status = status
        self.step = step
        self.request = request
        super().__init__(
            f"Cannot {operation} request {request_id} "
            f"in status={status} step={step}"
        )


class StateConflictError(TrainingWorkflowError):
    """Another actor mutated the request first and retries ran out."""

    code: str = "STATE_CONFLICT"

    def __init__(
        self,
        request_id: str,
        attempts: int,
        request: TrainingRequest | None = None,
    ):
        self.request_id = request_id
        self.attempts = attempts
        self.request = request
        super().__init__(
            f"Request {request_id} was modified concurrently "
            f"({attempts} attempt(s))"
        )


# Lookup exceptions


class NotFoundError(TrainingWorkflowError):
    """Base exception for unknown ids."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Training request id does not exist."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Training request {request_id} not found")


class EmployeeNotFoundError(NotFoundError):
    """Employee/actor id does not exist in the directory."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee {employee_id} not found")


# Dependency exceptions


class DependencyError(TrainingWorkflowError):
    """Base exception for failures of external collaborators."""

    code: str = "DEPENDENCY_ERROR"

    def __init__(self, operation: str, detail: Any):
        self.operation = operation
        self.detail = str(detail)
        super().__init__(f"{operation} failed: {detail}")


class RepositoryError(DependencyError):
    """Request store failure (connection loss, timeout, constraint)."""

    code: str = "REPOSITORY_ERROR"


class DirectoryError(DependencyError):
    """Directory lookup failure."""

    code: str = "DIRECTORY_ERROR"


class NotificationError(DependencyError):
    """Notification router refused or failed to accept an event."""

    code: str = "NOTIFICATION_ERROR"


# Immutability exceptions


class ImmutabilityViolationError(TrainingWorkflowError):
    """Attempted to modify or delete an append-only approval record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
