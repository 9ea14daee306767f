"""
Module: training_kernel.models.training_request
Responsibility: ORM persistence for training requests and their approval
    chains.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only (domain DTOs are imported lazily in the converters).

Invariants enforced:
    - Valid status and step values (check constraints).
    - Append-only approval chain: ``training_approval_actions`` rows are
      keyed by (request_id, sequence); ORM listeners reject UPDATE and
      DELETE of existing rows.
    - ``last_updated`` is the optimistic-concurrency token; the repository
      updates a request row only where it still holds the expected value.

Failure modes:
    - IntegrityError on duplicate (request_id, sequence): two writers raced
      past the version check, which the conditional UPDATE prevents.
    - ImmutabilityViolationError on approval action UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from training_kernel.db.base import Base
from training_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from training_kernel.domain.training import ApprovalAction, TrainingRequest


class TrainingRequestModel(Base):
    """Persistent training request (one row per request, never deleted)."""

    __tablename__ = "training_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_training_requests_valid_status",
        ),
        CheckConstraint(
            "current_approval_step IN "
            "('supervisor', 'thr', 'ceo', 'cm', 'completed')",
            name="ck_training_requests_valid_step",
        ),
        CheckConstraint("cost >= 0", name="ck_training_requests_cost"),
        Index("ix_training_requests_employee", "employee_id"),
        Index(
            "ix_training_requests_queue",
            "status", "current_approval_step", "submitted_date",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    training_title: Mapped[str] = mapped_column(String(300), nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    organiser: Mapped[str] = mapped_column(String(300), nullable=False)
    venue: Mapped[str] = mapped_column(String(300), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    cost: Mapped[Decimal] = mapped_column(nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    program_type: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_relevant_training: Mapped[str | None] = mapped_column(
        Text, nullable=True,
    )
    supporting_documents: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False,
    )
    cost_center: Mapped[str | None] = mapped_column(String(50), nullable=True)
    estimated_logistic_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    department_approved_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    department_budget_balance: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    current_approval_step: Mapped[str] = mapped_column(String(20), nullable=False)
    submitted_date: Mapped[datetime] = mapped_column(nullable=False)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)
    cancelled_by_user_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True,
    )
    cancelled_date: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    actions: Mapped[list["ApprovalActionModel"]] = relationship(
        "ApprovalActionModel",
        back_populates="request",
        order_by="ApprovalActionModel.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingRequest {self.id} status={self.status} "
            f"step={self.current_approval_step}>"
        )

    def to_dto(self) -> TrainingRequest:
        """Convert ORM model to frozen domain DTO."""
        from training_kernel.domain.training import (
            ApprovalStep,
            LocationMode,
            ProgramType,
            RequestStatus,
            SupportingDocument,
            TrainingRequest as TrainingRequestDTO,
        )

        return TrainingRequestDTO(
            id=self.id,
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            training_title=self.training_title,
            justification=self.justification,
            organiser=self.organiser,
            venue=self.venue,
            start_date=self.start_date,
            end_date=self.end_date,
            cost=self.cost,
            mode=LocationMode(self.mode),
            program_type=ProgramType(self.program_type),
            previous_relevant_training=self.previous_relevant_training,
            supporting_documents=tuple(
                SupportingDocument(name=d["name"], url=d.get("url"))
                for d in self.supporting_documents or ()
            ),
            cost_center=self.cost_center,
            estimated_logistic_cost=self.estimated_logistic_cost,
            department_approved_budget=self.department_approved_budget,
            department_budget_balance=self.department_budget_balance,
            status=RequestStatus(self.status),
            current_approval_step=ApprovalStep(self.current_approval_step),
            approval_chain=tuple(a.to_dto() for a in self.actions),
            submitted_date=self.submitted_date,
            last_updated=self.last_updated,
            cancelled_by_user_id=self.cancelled_by_user_id,
            cancelled_date=self.cancelled_date,
            cancellation_reason=self.cancellation_reason,
        )

    @classmethod
    def from_dto(cls, dto: TrainingRequest) -> TrainingRequestModel:
        """Create ORM model (with its chain rows) from domain DTO."""
        model = cls(id=dto.id, **mutable_columns(dto), **immutable_columns(dto))
        model.actions = [
            ApprovalActionModel.from_dto(dto.id, index, action)
            for index, action in enumerate(dto.approval_chain)
        ]
        return model


def immutable_columns(dto: TrainingRequest) -> dict[str, Any]:
    """Columns fixed at submission."""
    return {
        "employee_id": dto.employee_id,
        "employee_name": dto.employee_name,
        "training_title": dto.training_title,
        "justification": dto.justification,
        "organiser": dto.organiser,
        "venue": dto.venue,
        "start_date": dto.start_date,
        "end_date": dto.end_date,
        "cost": dto.cost,
        "mode": dto.mode.value,
        "program_type": dto.program_type.value,
        "previous_relevant_training": dto.previous_relevant_training,
        "supporting_documents": [
            {"name": d.name, "url": d.url} for d in dto.supporting_documents
        ],
        "cost_center": dto.cost_center,
        "estimated_logistic_cost": dto.estimated_logistic_cost,
        "department_approved_budget": dto.department_approved_budget,
        "department_budget_balance": dto.department_budget_balance,
        "submitted_date": dto.submitted_date,
    }


def mutable_columns(dto: TrainingRequest) -> dict[str, Any]:
    """Columns a workflow transition may change."""
    return {
        "status": dto.status.value,
        "current_approval_step": dto.current_approval_step.value,
        "last_updated": dto.last_updated,
        "cancelled_by_user_id": dto.cancelled_by_user_id,
        "cancelled_date": dto.cancelled_date,
        "cancellation_reason": dto.cancellation_reason,
    }


class ApprovalActionModel(Base):
    """Persistent approval chain entry. Append-only."""

    __tablename__ = "training_approval_actions"

    __table_args__ = (
        CheckConstraint(
            "decision IN ('approved', 'rejected', 'processed')",
            name="ck_training_approval_actions_decision",
        ),
    )

    request_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("training_requests.id"),
        primary_key=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    step_role: Mapped[str] = mapped_column(String(20), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    request: Mapped["TrainingRequestModel"] = relationship(
        "TrainingRequestModel", back_populates="actions",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalAction {self.request_id}#{self.sequence} "
            f"{self.step_role}={self.decision}>"
        )

    def to_dto(self) -> ApprovalAction:
        from training_kernel.domain.training import (
            ApprovalAction as ApprovalActionDTO,
            ApprovalStep,
            Decision,
        )

        return ApprovalActionDTO(
            step_role=ApprovalStep(self.step_role),
            decision=Decision(self.decision),
            user_id=self.user_id,
            user_name=self.user_name,
            notes=self.notes,
            date=self.decided_at,
        )

    @classmethod
    def from_dto(
        cls, request_id: str, sequence: int, dto: ApprovalAction,
    ) -> ApprovalActionModel:
        return cls(
            request_id=request_id,
            sequence=sequence,
            step_role=dto.step_role.value,
            decision=dto.decision.value,
            user_id=dto.user_id,
            user_name=dto.user_name,
            notes=dto.notes,
            decided_at=dto.date,
        )


# =============================================================================
# ORM-Level Immutability for Approval Actions (Append-Only)
# =============================================================================


@event.listens_for(ApprovalActionModel, "before_update")
def prevent_action_update(mapper, connection, target):
    """Prevent updates to approval chain entries."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalAction",
        entity_id=f"{target.request_id}#{target.sequence}",
        reason="Approval chain entries are immutable -- cannot modify",
    )


@event.listens_for(ApprovalActionModel, "before_delete")
def prevent_action_delete(mapper, connection, target):
    """Prevent deletion of approval chain entries."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalAction",
        entity_id=f"{target.request_id}#{target.sequence}",
        reason="Approval chain entries are immutable -- cannot delete",
    )
