"""
training_services.lifecycle_controller -- Training request lifecycle orchestration.

Responsibility:
    Orchestrates Directory + RequestRepository + pure approval engine +
    NotificationRouter for the four mutating operations (submit, decide,
    process_by_cm, cancel) and the read-side queries (visible requests,
    awaiting-action queue, single request, dashboard summary).

Architecture position:
    Services layer.  May import from training_engines/ (pure engine),
    training_kernel/ (domain, services) and training_config/.
    Thin coordinator: every workflow rule lives in the engine or the
    kernel authorization strategy.

Invariants enforced:
    - Optimistic concurrency: every mutation is load -> engine ->
      compare_and_save against the version token that was loaded.  A lost
      race reloads and re-runs the engine, up to ``max_conflict_retries``
      attempts in total.
    - A caller-supplied ``expected_version`` that differs from the stored
      version fails immediately with StateConflictError; the caller acted
      on stale state and the operation is never applied twice.
    - Authorization is re-evaluated on every attempt against live
      directory data (the requester's current manager).
    - Events are published only after a successful commit.  Publication
      failures are logged and never undo the commit.

Failure modes:
    - ValidationError / AuthorizationError / InvalidTransitionError from
      the engine propagate unchanged (never retried).
    - StateConflictError after the retry budget is spent.
    - NotFoundError subclasses for unknown request or actor ids.
    - RepositoryError / DirectoryError propagate.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from training_config.bridges import build_escalation_policy
from training_config.schema import WorkflowConfig
from training_engines import approval
from training_kernel.domain.analytics import WorkflowSummary, summarize_requests
from training_kernel.domain.authorization import LINE_MANAGER_STEPS, STEP_AUTHORITY
from training_kernel.domain.clock import Clock, SystemClock
from training_kernel.domain.events import WorkflowEvent, WorkflowEventType
from training_kernel.domain.ports import Directory, NotificationRouter, RequestRepository
from training_kernel.domain.training import (
    ApprovalStep,
    Decision,
    Employee,
    Role,
    TrainingDraft,
    TrainingRequest,
)
from training_kernel.domain.visibility import (
    SortOrder,
    is_awaiting,
    is_visible_to,
    sort_requests,
)
from training_kernel.exceptions import (
    AuthorizationError,
    EmployeeNotFoundError,
    StateConflictError,
    TrainingWorkflowError,
)
from training_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.lifecycle_controller")

Transition = Callable[[TrainingRequest, Employee], TrainingRequest]

_ADVANCE_STEPS = frozenset({ApprovalStep.THR, ApprovalStep.CEO, ApprovalStep.CM})

SUMMARY_ROLES = frozenset({Role.THR, Role.CEO})


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


class RequestLifecycleController:
    """
    Entry point for every training request operation.

    Contract:
        Collaborators are injected; the controller holds no request state
        of its own, so one instance may serve many threads.

    Guarantees:
        - Each successful mutation commits exactly one new snapshot.
        - The returned snapshot is the one that was committed.
    """

    def __init__(
        self,
        repository: RequestRepository,
        directory: Directory,
        router: NotificationRouter,
        clock: Clock | None = None,
        config: WorkflowConfig | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._repository = repository
        self._directory = directory
        self._router = router
        self._clock = clock or SystemClock()
        self._config = config or WorkflowConfig()
        self._policy = build_escalation_policy(self._config)
        self._max_attempts = self._config.concurrency.max_conflict_retries
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    @property
    def policy(self) -> approval.EscalationPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit(self, draft: TrainingDraft, requester_id: str) -> TrainingRequest:
        """Create a pending request and notify the requester's supervisor."""
        with LogContext.bind(
            correlation_id=_new_correlation_id(),
            actor_id=requester_id,
            operation="submit",
        ):
            requester = self._directory.get_by_id(requester_id)
            request = approval.submit(
                draft,
                requester,
                request_id=self._new_id(),
                now=self._clock.now(),
            )
            self._repository.create(request)

            with LogContext.bind(request_id=request.id):
                logger.info(
                    "training_request_submitted",
                    extra={
                        "cost": request.cost,
                        "mode": request.mode.value,
                        "program_type": request.program_type.value,
                    },
                )
                self._notify_submitted(request)
            return request

    def decide(
        self,
        request_id: str,
        actor_id: str,
        decision: Decision | str,
        notes: str | None = None,
        expected_version: datetime | None = None,
    ) -> TrainingRequest:
        """Approve or reject the request at its current step."""

        def transition(snapshot: TrainingRequest, actor: Employee) -> TrainingRequest:
            manager_id = None
            if snapshot.current_approval_step in LINE_MANAGER_STEPS:
                manager_id = self._directory.manager_of(snapshot.employee_id)
            return approval.decide(
                snapshot,
                actor,
                decision,
                notes,
                manager_id=manager_id,
                now=self._clock.now(),
                policy=self._policy,
            )

        before, after = self._mutate(request_id, actor_id, "decide", expected_version, transition)
        resolved = after.approval_chain[-1]
        self._notify_transition(
            before,
            after,
            WorkflowEventType.REQUEST_DECIDED,
            {
                "decision": resolved.decision.value,
                "step_role": resolved.step_role.value,
                "decided_by": resolved.user_name,
                "notes": resolved.notes,
            },
        )
        return after

    def process_by_cm(
        self,
        request_id: str,
        actor_id: str,
        notes: str | None = None,
        expected_version: datetime | None = None,
    ) -> TrainingRequest:
        """Mark an approved request as processed by course management."""

        def transition(snapshot: TrainingRequest, actor: Employee) -> TrainingRequest:
            return approval.process_by_cm(snapshot, actor, notes, now=self._clock.now())

        before, after = self._mutate(
            request_id, actor_id, "process_by_cm", expected_version, transition,
        )
        self._notify_transition(
            before,
            after,
            WorkflowEventType.REQUEST_PROCESSED,
            {"processed_by": after.approval_chain[-1].user_name, "notes": notes},
        )
        return after

    def cancel(
        self,
        request_id: str,
        actor_id: str,
        reason: str,
        expected_version: datetime | None = None,
    ) -> TrainingRequest:
        """Withdraw a pending or rejected request (requester only)."""

        def transition(snapshot: TrainingRequest, actor: Employee) -> TrainingRequest:
            return approval.cancel(snapshot, actor, reason, now=self._clock.now())

        before, after = self._mutate(request_id, actor_id, "cancel", expected_version, transition)
        self._notify_transition(
            before,
            after,
            WorkflowEventType.REQUEST_CANCELLED,
            {"reason": reason, "previous_status": before.status.value},
        )
        return after

    def _mutate(
        self,
        request_id: str,
        actor_id: str,
        operation: str,
        expected_version: datetime | None,
        transition: Transition,
    ) -> tuple[TrainingRequest, TrainingRequest]:
        """Run ``transition`` under optimistic concurrency.

        Returns the (loaded, committed) snapshot pair of the winning attempt.
        """
        with LogContext.bind(
            correlation_id=_new_correlation_id(),
            request_id=request_id,
            actor_id=actor_id,
            operation=operation,
        ):
            snapshot: TrainingRequest | None = None
            for attempt in range(1, self._max_attempts + 1):
                snapshot, version = self._repository.load(request_id)
                if expected_version is not None and version != expected_version:
                    logger.info(
                        "training_request_stale_version",
                        extra={
                            "expected_version": expected_version,
                            "current_version": version,
                            "attempt": attempt,
                        },
                    )
                    raise StateConflictError(request_id, attempt, request=snapshot)

                actor = self._directory.get_by_id(actor_id)
                try:
                    updated = transition(snapshot, actor)
                except TrainingWorkflowError as exc:
                    logger.info(
                        "training_request_operation_rejected",
                        extra={
                            "error_code": exc.code,
                            "error": str(exc),
                            "status": snapshot.status.value,
                            "step": snapshot.current_approval_step.value,
                        },
                    )
                    raise

                if self._repository.compare_and_save(request_id, version, updated):
                    logger.info(
                        "training_request_transitioned",
                        extra={
                            "from_status": snapshot.status.value,
                            "to_status": updated.status.value,
                            "from_step": snapshot.current_approval_step.value,
                            "to_step": updated.current_approval_step.value,
                            "attempt": attempt,
                        },
                    )
                    return snapshot, updated

                logger.info(
                    "training_request_conflict_retry",
                    extra={"attempt": attempt, "max_attempts": self._max_attempts},
                )

            logger.warning(
                "training_request_conflict_exhausted",
                extra={"attempts": self._max_attempts},
            )
            raise StateConflictError(request_id, self._max_attempts, request=snapshot)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_visible_to(
        self,
        actor_id: str,
        sort: SortOrder | str = SortOrder.NEWEST,
    ) -> list[TrainingRequest]:
        """Requests ``actor_id`` may see, in the requested order."""
        order = SortOrder(sort)
        actor = self._directory.get_by_id(actor_id)
        managers = self._manager_lookup(actor)
        visible = [
            r for r in self._repository.list_requests()
            if is_visible_to(r, actor, managers(r))
        ]
        return sort_requests(visible, order)

    def list_awaiting_action(self, actor_id: str) -> list[TrainingRequest]:
        """Requests ``actor_id`` can act on right now, oldest first."""
        actor = self._directory.get_by_id(actor_id)
        managers = self._manager_lookup(actor)
        awaiting = [
            r for r in self._repository.list_requests()
            if is_awaiting(r, actor, managers(r))
        ]
        return sort_requests(awaiting, SortOrder.OLDEST)

    def get_request(self, request_id: str, actor_id: str) -> TrainingRequest:
        """A single request, if ``actor_id`` may see it."""
        actor = self._directory.get_by_id(actor_id)
        request, _ = self._repository.load(request_id)
        manager_id = self._manager_lookup(actor)(request)
        if not is_visible_to(request, actor, manager_id):
            raise AuthorizationError(actor_id, "view", f"request {request_id} is not visible")
        return request

    def summarize(self, actor_id: str) -> WorkflowSummary:
        """Dashboard figures for the current year.  thr and ceo only."""
        actor = self._directory.get_by_id(actor_id)
        if actor.role not in SUMMARY_ROLES:
            raise AuthorizationError(
                actor_id, "summarize", f"role {actor.role.value} has no dashboard access",
            )

        departments: dict[str, str | None] = {}

        def department_of(employee_id: str) -> str | None:
            if employee_id not in departments:
                try:
                    departments[employee_id] = self._directory.get_by_id(employee_id).department
                except EmployeeNotFoundError:
                    departments[employee_id] = None
            return departments[employee_id]

        summary = summarize_requests(
            self._repository.list_requests(), self._clock.now(), department_of,
        )
        logger.debug(
            "workflow_summary_built",
            extra={
                "actor_id": actor_id,
                "year": summary.year,
                "total_pending": summary.total_pending,
            },
        )
        return summary

    def _manager_lookup(self, actor: Employee) -> Callable[[TrainingRequest], str | None]:
        """Per-query cache of requester -> live manager.  Only supervisors need it."""
        if actor.role != Role.SUPERVISOR:
            return lambda request: None

        cache: dict[str, str | None] = {}

        def lookup(request: TrainingRequest) -> str | None:
            employee_id = request.employee_id
            if employee_id not in cache:
                try:
                    cache[employee_id] = self._directory.manager_of(employee_id)
                except EmployeeNotFoundError:
                    cache[employee_id] = None
            return cache[employee_id]

        return lookup

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _publish(
        self,
        event_type: WorkflowEventType,
        build: Callable[[], WorkflowEvent | None],
    ) -> None:
        """Build and publish one event.  Failures are logged, never raised."""
        try:
            event = build()
            if event is not None:
                self._router.publish(event)
        except Exception:
            logger.warning(
                "notification_publish_failed",
                extra={"event_type": event_type.value},
                exc_info=True,
            )

    def _notify_submitted(self, request: TrainingRequest) -> None:
        def build() -> WorkflowEvent | None:
            manager_id = self._directory.manager_of(request.employee_id)
            if manager_id is None:
                logger.warning(
                    "training_request_without_supervisor",
                    extra={"employee_id": request.employee_id},
                )
                return None
            return self._event(
                WorkflowEventType.REQUEST_SUBMITTED,
                request,
                (self._directory.get_by_id(manager_id),),
                {
                    "employee_name": request.employee_name,
                    "training_title": request.training_title,
                    "cost": str(request.cost),
                    "mode": request.mode.value,
                },
            )

        self._publish(WorkflowEventType.REQUEST_SUBMITTED, build)

    def _notify_transition(
        self,
        before: TrainingRequest,
        after: TrainingRequest,
        event_type: WorkflowEventType,
        payload: dict,
    ) -> None:
        with LogContext.bind(request_id=after.id):
            self._publish(event_type, lambda: self._event(
                event_type,
                after,
                (self._directory.get_by_id(after.employee_id),),
                {
                    **payload,
                    "status": after.status.value,
                    "current_approval_step": after.current_approval_step.value,
                },
            ))

            step = after.current_approval_step
            if step == before.current_approval_step or step not in _ADVANCE_STEPS:
                return

            def build_advance() -> WorkflowEvent | None:
                members = self._directory.get_by_role(STEP_AUTHORITY[step])
                if not members:
                    logger.warning("step_without_role_members", extra={"step": step.value})
                    return None
                return self._event(
                    WorkflowEventType.STEP_ADVANCED,
                    after,
                    members,
                    {
                        "from_step": before.current_approval_step.value,
                        "to_step": step.value,
                        "status": after.status.value,
                        "training_title": after.training_title,
                    },
                )

            self._publish(WorkflowEventType.STEP_ADVANCED, build_advance)

    def _event(
        self,
        event_type: WorkflowEventType,
        request: TrainingRequest,
        recipients: tuple[Employee, ...],
        payload: dict,
    ) -> WorkflowEvent:
        return WorkflowEvent(
            event_type=event_type,
            request_id=request.id,
            recipients=tuple(e.id for e in recipients),
            occurred_at=request.last_updated,
            payload={
                **payload,
                "email_recipients": tuple(
                    e.id for e in recipients if e.prefers_email_notifications
                ),
            },
        )
