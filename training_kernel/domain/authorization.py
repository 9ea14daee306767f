"""
Authorization strategy (``training_kernel.domain.authorization``).

Responsibility
--------------
The single place that answers "may this actor resolve this step?".
Authority is keyed by ``(role, step)``: ``STEP_AUTHORITY`` names the one
role that owns each decidable step, and ``LINE_MANAGER_STEPS`` marks the
steps that additionally require the actor to be the requester's current
manager according to live directory data.

Architecture position
---------------------
**Kernel domain layer** -- pure.  The caller resolves ``manager_id`` from
the directory and passes it in.
"""

from __future__ import annotations

from training_kernel.domain.training import (
    ApprovalStep,
    Employee,
    RequestStatus,
    Role,
    TrainingRequest,
)
from training_kernel.exceptions import AuthorizationError

STEP_AUTHORITY: dict[ApprovalStep, Role] = {
    ApprovalStep.SUPERVISOR: Role.SUPERVISOR,
    ApprovalStep.THR: Role.THR,
    ApprovalStep.CEO: Role.CEO,
    ApprovalStep.CM: Role.CM,
}

LINE_MANAGER_STEPS: frozenset[ApprovalStep] = frozenset({ApprovalStep.SUPERVISOR})

# Role -> step it acts on.  Employees own no step.
ROLE_STEP: dict[Role, ApprovalStep] = {
    role: step for step, role in STEP_AUTHORITY.items()
}


def may_resolve(
    actor: Employee,
    step: ApprovalStep,
    manager_id: str | None,
) -> bool:
    """True if ``actor`` owns ``step``; ``manager_id`` is the requester's manager."""
    if STEP_AUTHORITY.get(step) != actor.role:
        return False
    if step in LINE_MANAGER_STEPS:
        return manager_id is not None and manager_id == actor.id
    return True


def authorize_decision(
    actor: Employee,
    request: TrainingRequest,
    manager_id: str | None,
) -> None:
    """Raise ``AuthorizationError`` unless ``actor`` may decide now."""
    step = request.current_approval_step
    if request.status != RequestStatus.PENDING:
        raise AuthorizationError(
            actor.id,
            "decide",
            f"request is {request.status.value}, not pending",
            request=request,
        )
    if STEP_AUTHORITY.get(step) != actor.role:
        raise AuthorizationError(
            actor.id,
            "decide",
            f"role {actor.role.value} does not own step {step.value}",
            request=request,
        )
    if not may_resolve(actor, step, manager_id):
        raise AuthorizationError(
            actor.id,
            "decide",
            f"not the manager of employee {request.employee_id}",
            request=request,
        )


def authorize_cancel(actor: Employee, request: TrainingRequest) -> None:
    """Only the requester may withdraw their own request."""
    if actor.id != request.employee_id:
        raise AuthorizationError(
            actor.id,
            "cancel",
            f"request belongs to employee {request.employee_id}",
            request=request,
        )
