"""
training_kernel.services.request_repository -- Request persistence adapters.

Responsibility:
    Atomic create / load / compare-and-save of a single training request,
    keyed by the ``last_updated`` version token.  Two adapters:
    ``SqlAlchemyRequestRepository`` for a relational store and
    ``InMemoryRequestRepository`` for tests, demos and embedded use.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Compare-and-save is the single point of commit: a snapshot replaces
      the stored one only if the stored ``last_updated`` still equals the
      caller's expected version.  Otherwise nothing is written.
    - Approval chains only grow: the stored prefix is never rewritten.

Failure modes:
    - RequestNotFoundError if the id is unknown.
    - RepositoryError wrapping any SQLAlchemy failure (including pool and
      statement timeouts) and duplicate ids on create.
    - ImmutabilityViolationError if a new snapshot would shorten the chain.
"""

from __future__ import annotations

import threading
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_kernel.domain.training import TrainingRequest
from training_kernel.exceptions import (
    ImmutabilityViolationError,
    RepositoryError,
    RequestNotFoundError,
)
from training_kernel.logging_config import get_logger
from training_kernel.models.training_request import (
    ApprovalActionModel,
    TrainingRequestModel,
    mutable_columns,
)

logger = get_logger("services.request_repository")


def _check_same_id(request_id: str, snapshot: TrainingRequest) -> None:
    if snapshot.id != request_id:
        raise ValueError(
            f"Snapshot id {snapshot.id} does not match request id {request_id}"
        )


def _check_chain_growth(
    request_id: str, stored_length: int, new_length: int,
) -> None:
    if new_length < stored_length:
        raise ImmutabilityViolationError(
            entity_type="TrainingRequest",
            entity_id=request_id,
            reason=(
                f"approval chain would shrink from {stored_length} "
                f"to {new_length} entries"
            ),
        )


class SqlAlchemyRequestRepository:
    """Relational request store.

    Contract:
        Holds a session factory and opens one short transaction per call,
        so the compare-and-save commit is independent of any caller
        session.

    Guarantees:
        - ``compare_and_save`` issues ``UPDATE ... WHERE id = :id AND
          last_updated = :expected`` and inserts only the chain entries
          beyond the stored length, in the same transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(self, request: TrainingRequest) -> None:
        try:
            with self._session_factory() as session, session.begin():
                session.add(TrainingRequestModel.from_dto(request))
        except IntegrityError as exc:
            raise RepositoryError("create", f"request {request.id} rejected: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise RepositoryError("create", exc) from exc

        logger.debug("request_created", extra={"request_id": request.id})

    def load(self, request_id: str) -> tuple[TrainingRequest, datetime]:
        try:
            with self._session_factory() as session:
                model = session.get(TrainingRequestModel, request_id)
                if model is None:
                    raise RequestNotFoundError(request_id)
                dto = model.to_dto()
        except SQLAlchemyError as exc:
            raise RepositoryError("load", exc) from exc
        return dto, dto.last_updated

    def compare_and_save(
        self,
        request_id: str,
        expected_version: datetime,
        new_snapshot: TrainingRequest,
    ) -> bool:
        _check_same_id(request_id, new_snapshot)
        try:
            with self._session_factory() as session, session.begin():
                result = session.execute(
                    update(TrainingRequestModel)
                    .where(
                        TrainingRequestModel.id == request_id,
                        TrainingRequestModel.last_updated == expected_version,
                    )
                    .values(**mutable_columns(new_snapshot))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    if session.get(TrainingRequestModel, request_id) is None:
                        raise RequestNotFoundError(request_id)
                    logger.info(
                        "request_version_conflict",
                        extra={
                            "request_id": request_id,
                            "expected_version": expected_version,
                        },
                    )
                    return False

                stored_length = session.scalar(
                    select(func.count())
                    .select_from(ApprovalActionModel)
                    .where(ApprovalActionModel.request_id == request_id)
                ) or 0
                chain = new_snapshot.approval_chain
                _check_chain_growth(request_id, stored_length, len(chain))
                for sequence in range(stored_length, len(chain)):
                    session.add(
                        ApprovalActionModel.from_dto(
                            request_id, sequence, chain[sequence],
                        )
                    )
        except SQLAlchemyError as exc:
            raise RepositoryError("compare_and_save", exc) from exc
        return True

    def list_requests(self) -> tuple[TrainingRequest, ...]:
        try:
            with self._session_factory() as session:
                models = session.execute(
                    select(TrainingRequestModel).order_by(
                        TrainingRequestModel.submitted_date.desc(),
                        TrainingRequestModel.id,
                    )
                ).scalars().all()
                return tuple(m.to_dto() for m in models)
        except SQLAlchemyError as exc:
            raise RepositoryError("list_requests", exc) from exc


class InMemoryRequestRepository:
    """Process-local request store.

    The lock is held only for the duration of each read or swap, so
    callers working on different requests never wait on each other for
    longer than a dict operation.
    """

    def __init__(self) -> None:
        self._requests: dict[str, TrainingRequest] = {}
        self._lock = threading.Lock()

    def create(self, request: TrainingRequest) -> None:
        with self._lock:
            if request.id in self._requests:
                raise RepositoryError("create", f"request {request.id} already exists")
            self._requests[request.id] = request

    def load(self, request_id: str) -> tuple[TrainingRequest, datetime]:
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request, request.last_updated

    def compare_and_save(
        self,
        request_id: str,
        expected_version: datetime,
        new_snapshot: TrainingRequest,
    ) -> bool:
        _check_same_id(request_id, new_snapshot)
        with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                raise RequestNotFoundError(request_id)
            if current.last_updated != expected_version:
                return False
            _check_chain_growth(
                request_id,
                len(current.approval_chain),
                len(new_snapshot.approval_chain),
            )
            self._requests[request_id] = new_snapshot
        return True

    def list_requests(self) -> tuple[TrainingRequest, ...]:
        with self._lock:
            requests = list(self._requests.values())
        requests.sort(key=lambda r: r.id)
        requests.sort(key=lambda r: r.submitted_date, reverse=True)
        return tuple(requests)
