"""
Training request domain types (``training_kernel.domain.training``).

Responsibility
--------------
Pure value objects for the training approval workflow.  Defines roles,
request statuses, approval steps, decisions, the employee and request
records, and the structural invariants every request snapshot must
satisfy.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
``check_request_invariants`` verifies, for any snapshot:

* pending  <=> step in {supervisor, thr, ceo}
* rejected <=> step completed and the last chain entry is a rejection
* approved  => step in {cm, completed}
* cancelled <=> step completed and cancellation fields are set
* every chain entry's ``step_role`` equals the step that was active
  when it was appended (verified by replaying the chain)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


# =========================================================================
# Enumerations
# =========================================================================


class Role(str, Enum):
    """Directory roles.  Every role except ``employee`` owns one step."""

    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"
    THR = "thr"
    CEO = "ceo"
    CM = "cm"


class RequestStatus(str, Enum):
    """Training request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalStep(str, Enum):
    """The role currently responsible for acting on a request."""

    SUPERVISOR = "supervisor"
    THR = "thr"
    CEO = "ceo"
    CM = "cm"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is ApprovalStep.COMPLETED


class Decision(str, Enum):
    """Decision recorded in an approval chain entry."""

    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class LocationMode(str, Enum):
    """Where the training takes place."""

    ONLINE = "online"
    IN_HOUSE = "in-house"
    LOCAL = "local"
    OVERSEAS = "overseas"


class ProgramType(str, Enum):
    """Category of training programme."""

    COURSE = "course"
    CONFERENCE = "conference/seminar/forum"
    ATTACHMENT = "on-the-job attachment"
    SKG_FSA = "skg/fsa"
    HSE = "hse"
    FUNCTIONAL = "functional"
    LEADERSHIP = "leadership"
    SPECIALIZED = "specialized"
    OTHERS = "others"


PENDING_STEPS: frozenset[ApprovalStep] = frozenset({
    ApprovalStep.SUPERVISOR,
    ApprovalStep.THR,
    ApprovalStep.CEO,
})

CANCELLABLE_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PENDING,
    RequestStatus.REJECTED,
})


# =========================================================================
# Directory records
# =========================================================================


@dataclass(frozen=True)
class Employee:
    """A directory entry.  ``manager_id`` is set for employees and
    supervisors who report upward."""

    id: str
    name: str
    email: str
    department: str
    role: Role
    manager_id: str | None = None
    position: str | None = None
    staff_no: str | None = None
    prefers_email_notifications: bool = True
    prefers_in_app_notifications: bool = True


# =========================================================================
# Request records
# =========================================================================


@dataclass(frozen=True)
class SupportingDocument:
    """Metadata of an uploaded document.  Storage lives elsewhere."""

    name: str
    url: str | None = None


@dataclass(frozen=True)
class TrainingDraft:
    """Immutable submission payload.

    The optional L1A budget fields are carried onto the request verbatim;
    nothing in the workflow evaluates them.
    """

    training_title: str
    justification: str
    organiser: str
    venue: str
    start_date: date
    end_date: date
    cost: Decimal
    mode: LocationMode
    program_type: ProgramType
    previous_relevant_training: str | None = None
    supporting_documents: tuple[SupportingDocument, ...] = ()
    cost_center: str | None = None
    estimated_logistic_cost: Decimal | None = None
    department_approved_budget: Decimal | None = None
    department_budget_balance: Decimal | None = None


@dataclass(frozen=True)
class ApprovalAction:
    """One entry of an approval chain. Immutable once appended."""

    step_role: ApprovalStep
    decision: Decision
    user_id: str
    user_name: str
    date: datetime
    notes: str | None = None


@dataclass(frozen=True)
class TrainingRequest:
    """Immutable snapshot of a training request.

    Every mutation produces a new snapshot; ``last_updated`` is the
    optimistic-concurrency token for the snapshot.
    """

    id: str
    employee_id: str
    employee_name: str
    training_title: str
    justification: str
    organiser: str
    venue: str
    start_date: date
    end_date: date
    cost: Decimal
    mode: LocationMode
    program_type: ProgramType
    status: RequestStatus
    current_approval_step: ApprovalStep
    submitted_date: datetime
    last_updated: datetime
    approval_chain: tuple[ApprovalAction, ...] = ()
    previous_relevant_training: str | None = None
    supporting_documents: tuple[SupportingDocument, ...] = ()
    cost_center: str | None = None
    estimated_logistic_cost: Decimal | None = None
    department_approved_budget: Decimal | None = None
    department_budget_balance: Decimal | None = None
    cancelled_by_user_id: str | None = None
    cancelled_date: datetime | None = None
    cancellation_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        """No further transitions are possible."""
        if self.status in (RequestStatus.REJECTED, RequestStatus.CANCELLED):
            return True
        return (
            self.status == RequestStatus.APPROVED
            and self.current_approval_step == ApprovalStep.COMPLETED
        )

    @property
    def awaiting_processing(self) -> bool:
        return (
            self.status == RequestStatus.APPROVED
            and self.current_approval_step == ApprovalStep.CM
        )

    @property
    def steps_visited(self) -> frozenset[ApprovalStep]:
        """Steps that were resolved by a chain entry."""
        return frozenset(action.step_role for action in self.approval_chain)


# =========================================================================
# Invariants
# =========================================================================


@dataclass(frozen=True)
class InvariantReport:
    """Result of ``check_request_invariants``."""

    violations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.violations


_APPROVE_EDGES: dict[ApprovalStep, frozenset[ApprovalStep]] = {
    ApprovalStep.SUPERVISOR: frozenset({ApprovalStep.THR}),
    ApprovalStep.THR: frozenset({ApprovalStep.CEO, ApprovalStep.CM}),
    ApprovalStep.CEO: frozenset({ApprovalStep.CM}),
}


def check_request_invariants(request: TrainingRequest) -> InvariantReport:
    """Check a snapshot against the structural workflow invariants."""
    violations: list[str] = []
    status = request.status
    step = request.current_approval_step
    chain = request.approval_chain

    if status == RequestStatus.PENDING and step not in PENDING_STEPS:
        violations.append(f"pending request at step {step.value}")
    if status != RequestStatus.PENDING and step in PENDING_STEPS:
        violations.append(f"{status.value} request at pending step {step.value}")

    if status == RequestStatus.REJECTED:
        if step != ApprovalStep.COMPLETED:
            violations.append("rejected request not completed")
        if not chain or chain[-1].decision != Decision.REJECTED:
            violations.append("rejected request without a trailing rejection")

    if status == RequestStatus.APPROVED and step not in (
        ApprovalStep.CM, ApprovalStep.COMPLETED,
    ):
        violations.append(f"approved request at step {step.value}")

    cancel_fields = (
        request.cancelled_by_user_id,
        request.cancelled_date,
        request.cancellation_reason,
    )
    if status == RequestStatus.CANCELLED:
        if step != ApprovalStep.COMPLETED:
            violations.append("cancelled request not completed")
        if any(value is None for value in cancel_fields):
            violations.append("cancelled request missing cancellation fields")
    elif any(value is not None for value in cancel_fields):
        violations.append("cancellation fields set on a live request")

    # Replay the chain: each entry resolves the step active before it.
    active = ApprovalStep.SUPERVISOR
    for index, action in enumerate(chain):
        if action.step_role != active:
            violations.append(
                f"chain[{index}] resolves {action.step_role.value}, "
                f"expected {active.value}"
            )
            break
        if action.decision == Decision.REJECTED:
            active = ApprovalStep.COMPLETED
        elif action.decision == Decision.PROCESSED:
            if active != ApprovalStep.CM:
                violations.append(f"chain[{index}] processed outside cm step")
                break
            active = ApprovalStep.COMPLETED
        else:
            allowed = _APPROVE_EDGES.get(active, frozenset())
            if not allowed:
                violations.append(
                    f"chain[{index}] approves terminal step {active.value}"
                )
                break
            # thr branches; the next entry (or the current step) tells which.
            if len(allowed) == 1:
                active = next(iter(allowed))
            elif index + 1 < len(chain):
                active = chain[index + 1].step_role
            elif status == RequestStatus.CANCELLED:
                # Only the ceo branch stays cancellable.
                active = ApprovalStep.CEO
            else:
                active = step
            if active not in allowed:
                violations.append(
                    f"chain[{index}] leads to {active.value}, not a successor"
                )
                break
        if active == ApprovalStep.COMPLETED and index + 1 < len(chain):
            violations.append(f"chain continues after completion at [{index}]")
            break
    else:
        if status != RequestStatus.CANCELLED and active != step:
            violations.append(
                f"chain ends at {active.value} but request is at {step.value}"
            )

    for earlier, later in zip(chain, chain[1:]):
        if later.date < earlier.date:
            violations.append("approval chain is not chronological")
            break

    if request.last_updated < request.submitted_date:
        violations.append("last_updated precedes submitted_date")

    return InvariantReport(violations=tuple(violations))
