"""
Request visibility and review-queue rules (``training_kernel.domain.visibility``).

Pure predicates over snapshots.  Directory-derived facts (the requester's
current manager) are resolved by the caller and passed in, so a manager
reassignment is visible on the next query.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum

from training_kernel.domain.authorization import ROLE_STEP, may_resolve
from training_kernel.domain.training import (
    ApprovalStep,
    Employee,
    RequestStatus,
    Role,
    TrainingRequest,
)


class SortOrder(str, Enum):
    """Orderings offered by the review list."""

    NEWEST = "newest"
    OLDEST = "oldest"
    COST_DESC = "cost_desc"
    COST_ASC = "cost_asc"


_SORT_KEYS: dict[SortOrder, tuple[Callable[[TrainingRequest], object], bool]] = {
    SortOrder.NEWEST: (lambda r: (r.submitted_date, r.id), True),
    SortOrder.OLDEST: (lambda r: (r.submitted_date, r.id), False),
    SortOrder.COST_DESC: (lambda r: (r.cost, r.submitted_date), True),
    SortOrder.COST_ASC: (lambda r: (r.cost, r.submitted_date), False),
}


def is_visible_to(
    request: TrainingRequest,
    actor: Employee,
    manager_id: str | None,
) -> bool:
    """Whether ``actor`` may see ``request``.

    Everyone sees their own requests.  Beyond that:

    * supervisor -- requests from direct reports
    * thr / ceo  -- requests currently or previously at their step
    * cm         -- approved requests
    """
    if request.employee_id == actor.id:
        return True
    if actor.role == Role.SUPERVISOR:
        return manager_id == actor.id
    if actor.role in (Role.THR, Role.CEO):
        step = ROLE_STEP[actor.role]
        return (
            request.current_approval_step == step
            or step in request.steps_visited
        )
    if actor.role == Role.CM:
        return request.status == RequestStatus.APPROVED
    return False


def is_awaiting(
    request: TrainingRequest,
    actor: Employee,
    manager_id: str | None,
) -> bool:
    """Whether ``actor`` can act on ``request`` right now."""
    step = request.current_approval_step
    if step == ApprovalStep.COMPLETED:
        return False
    if step == ApprovalStep.CM:
        return request.awaiting_processing and actor.role == Role.CM
    return request.status == RequestStatus.PENDING and may_resolve(
        actor, step, manager_id,
    )


def sort_requests(
    requests: Iterable[TrainingRequest],
    order: SortOrder | str = SortOrder.NEWEST,
) -> list[TrainingRequest]:
    """Sort a request list for display."""
    key, reverse = _SORT_KEYS[SortOrder(order)]
    return sorted(requests, key=key, reverse=reverse)
