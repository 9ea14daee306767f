"""
training_engines.approval -- Pure training-request approval workflow engine.

Responsibility:
    Decide, for one request snapshot, what the next snapshot is: who must
    act next, what approval or rejection does, when cost or location
    escalates a request to the CEO, and when cancellation is allowed.

Architecture position:
    Engines -- pure workflow layer, zero I/O.
    May only import training_kernel/domain/ types and exceptions.

Transition table (approval):

    supervisor -> thr    pending
    thr        -> cm     approved   (cost <= threshold, mode not escalating)
    thr        -> ceo    pending    (cost > threshold or escalating mode)
    ceo        -> cm     approved
    cm         -> completed         (process_by_cm; status stays approved)

    Rejection at supervisor/thr/ceo -> completed, rejected.
    Cancellation from pending or rejected -> completed, cancelled.

Invariants enforced:
    - Purity: no clock access (the caller passes ``now``), no I/O.
    - Every returned snapshot passes ``check_request_invariants``.
    - ``last_updated`` strictly increases; if ``now`` has not moved past
      the previous value it is advanced by one microsecond.
    - Escalation is evaluated once, at thr approval, on stored values.

Failure modes:
    - ValidationError: malformed draft, unknown decision, blank reason.
    - AuthorizationError: decide on a non-pending request, wrong role, or
      supervisor who is not the requester's live manager.
    - InvalidTransitionError: process_by_cm outside approved/cm or by a
      non-cm actor; cancel outside pending/rejected.
    Every error carries the unchanged input snapshot in ``exc.request``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal

from training_engines.tracer import traced_engine
from training_kernel.domain.authorization import authorize_cancel, authorize_decision
from training_kernel.domain.training import (
    CANCELLABLE_STATUSES,
    ApprovalAction,
    ApprovalStep,
    Decision,
    Employee,
    LocationMode,
    RequestStatus,
    Role,
    TrainingDraft,
    TrainingRequest,
    check_request_invariants,
)
from training_kernel.exceptions import InvalidTransitionError, ValidationError

ENGINE_VERSION = "1.0"
COST_DECIMAL_PLACES = 2

_ONE_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True)
class EscalationPolicy:
    """When a thr-approved request must also go to the CEO."""

    cost_threshold: Decimal = Decimal("2000")
    escalating_modes: frozenset[LocationMode] = frozenset({LocationMode.OVERSEAS})

    def __post_init__(self) -> None:
        if self.cost_threshold < 0:
            raise ValueError("cost_threshold must be non-negative")


DEFAULT_POLICY = EscalationPolicy()


# =========================================================================
# Rules
# =========================================================================


def requires_ceo_approval(
    request: TrainingRequest | TrainingDraft,
    policy: EscalationPolicy = DEFAULT_POLICY,
) -> bool:
    """Cost strictly above the threshold, or an escalating mode."""
    return (
        request.cost > policy.cost_threshold
        or request.mode in policy.escalating_modes
    )


def next_step_after_approval(
    request: TrainingRequest,
    policy: EscalationPolicy = DEFAULT_POLICY,
) -> tuple[ApprovalStep, RequestStatus]:
    """Step and status that follow an approval at the current step."""
    step = request.current_approval_step
    if step == ApprovalStep.SUPERVISOR:
        return ApprovalStep.THR, RequestStatus.PENDING
    if step == ApprovalStep.THR:
        if requires_ceo_approval(request, policy):
            return ApprovalStep.CEO, RequestStatus.PENDING
        return ApprovalStep.CM, RequestStatus.APPROVED
    if step == ApprovalStep.CEO:
        return ApprovalStep.CM, RequestStatus.APPROVED
    raise InvalidTransitionError(
        request.id,
        "approve",
        request.status.value,
        step.value,
        request=request,
    )


def _next_timestamp(previous: datetime, now: datetime) -> datetime:
    if now <= previous:
        return previous + _ONE_MICROSECOND
    return now


def _checked(result: TrainingRequest) -> TrainingRequest:
    report = check_request_invariants(result)
    if not report.ok:
        raise RuntimeError(
            f"Transition produced an inconsistent request {result.id}: "
            + "; ".join(report.violations)
        )
    return result


_OPTIONAL_AMOUNTS = (
    "estimated_logistic_cost",
    "department_approved_budget",
    "department_budget_balance",
)


def _check_amount(field: str, amount: Decimal) -> None:
    if not amount.is_finite():
        raise ValidationError(field, f"{amount} is not a finite amount")
    # Stored as Numeric(18, 2); finer amounts would be rounded on save.
    if amount.as_tuple().exponent < -COST_DECIMAL_PLACES:
        raise ValidationError(
            field, f"{amount} has more than {COST_DECIMAL_PLACES} decimal places",
        )


def _validate_draft(draft: TrainingDraft) -> None:
    if not draft.training_title or not draft.training_title.strip():
        raise ValidationError("training_title", "must not be blank")
    if draft.end_date < draft.start_date:
        raise ValidationError(
            "end_date",
            f"{draft.end_date.isoformat()} is before start date "
            f"{draft.start_date.isoformat()}",
        )
    _check_amount("cost", draft.cost)
    if draft.cost < 0:
        raise ValidationError("cost", f"{draft.cost} is negative")
    for field in _OPTIONAL_AMOUNTS:
        amount = getattr(draft, field)
        if amount is not None:
            _check_amount(field, amount)


# =========================================================================
# Operations
# =========================================================================


@traced_engine("approval.submit", ENGINE_VERSION, fingerprint_fields=("draft", "request_id"))
def submit(
    draft: TrainingDraft,
    requester: Employee,
    *,
    request_id: str,
    now: datetime,
) -> TrainingRequest:
    """Create a pending request at the supervisor step.

    Raises:
        ValidationError: blank title, end before start, or a negative,
            non-finite or sub-cent amount.
    """
    _validate_draft(draft)
    return _checked(TrainingRequest(
        id=request_id,
        employee_id=requester.id,
        employee_name=requester.name,
        training_title=draft.training_title,
        justification=draft.justification,
        organiser=draft.organiser,
        venue=draft.venue,
        start_date=draft.start_date,
        end_date=draft.end_date,
        cost=draft.cost,
        mode=draft.mode,
        program_type=draft.program_type,
        status=RequestStatus.PENDING,
        current_approval_step=ApprovalStep.SUPERVISOR,
        submitted_date=now,
        last_updated=now,
        previous_relevant_training=draft.previous_relevant_training,
        supporting_documents=draft.supporting_documents,
        cost_center=draft.cost_center,
        estimated_logistic_cost=draft.estimated_logistic_cost,
        department_approved_budget=draft.department_approved_budget,
        department_budget_balance=draft.department_budget_balance,
    ))


@traced_engine(
    "approval.decide",
    ENGINE_VERSION,
    fingerprint_fields=("request", "decision", "manager_id"),
)
def decide(
    request: TrainingRequest,
    actor: Employee,
    decision: Decision | str,
    notes: str | None = None,
    *,
    manager_id: str | None,
    now: datetime,
    policy: EscalationPolicy = DEFAULT_POLICY,
) -> TrainingRequest:
    """Record an approval or rejection at the current step.

    ``manager_id`` is the requester's manager according to the live
    directory; it gates the supervisor step.
    """
    authorize_decision(actor, request, manager_id)

    try:
        decision = Decision(decision)
    except ValueError:
        raise ValidationError(
            "decision", f"unknown decision {decision!r}", request=request,
        ) from None
    if decision not in (Decision.APPROVED, Decision.REJECTED):
        raise ValidationError(
            "decision",
            f"{decision.value} is not an approval decision",
            request=request,
        )

    timestamp = _next_timestamp(request.last_updated, now)
    action = ApprovalAction(
        step_role=request.current_approval_step,
        decision=decision,
        user_id=actor.id,
        user_name=actor.name,
        notes=notes,
        date=timestamp,
    )

    if decision == Decision.REJECTED:
        step, status = ApprovalStep.COMPLETED, RequestStatus.REJECTED
    else:
        step, status = next_step_after_approval(request, policy)

    return _checked(replace(
        request,
        status=status,
        current_approval_step=step,
        approval_chain=request.approval_chain + (action,),
        last_updated=timestamp,
    ))


@traced_engine("approval.process_by_cm", ENGINE_VERSION, fingerprint_fields=("request",))
def process_by_cm(
    request: TrainingRequest,
    actor: Employee,
    notes: str | None = None,
    *,
    now: datetime,
) -> TrainingRequest:
    """Mark an approved request as processed by course management."""
    if not request.awaiting_processing or actor.role != Role.CM:
        raise InvalidTransitionError(
            request.id,
            "process",
            request.status.value,
            request.current_approval_step.value,
            request=request,
        )

    timestamp = _next_timestamp(request.last_updated, now)
    action = ApprovalAction(
        step_role=ApprovalStep.CM,
        decision=Decision.PROCESSED,
        user_id=actor.id,
        user_name=actor.name,
        notes=notes,
        date=timestamp,
    )
    return _checked(replace(
        request,
        current_approval_step=ApprovalStep.COMPLETED,
        approval_chain=request.approval_chain + (action,),
        last_updated=timestamp,
    ))


@traced_engine("approval.cancel", ENGINE_VERSION, fingerprint_fields=("request", "reason"))
def cancel(
    request: TrainingRequest,
    actor: Employee,
    reason: str,
    *,
    now: datetime,
) -> TrainingRequest:
    """Withdraw a pending or rejected request.  The chain is left as is."""
    if request.status not in CANCELLABLE_STATUSES:
        raise InvalidTransitionError(
            request.id,
            "cancel",
            request.status.value,
            request.current_approval_step.value,
            request=request,
        )
    authorize_cancel(actor, request)
    if not reason or not reason.strip():
        raise ValidationError("reason", "must not be blank", request=request)

    timestamp = _next_timestamp(request.last_updated, now)
    return _checked(replace(
        request,
        status=RequestStatus.CANCELLED,
        current_approval_step=ApprovalStep.COMPLETED,
        last_updated=timestamp,
        cancelled_by_user_id=actor.id,
        cancelled_date=timestamp,
        cancellation_reason=reason,
    ))
