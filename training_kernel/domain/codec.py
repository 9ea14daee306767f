"""
JSON codec for requests and approval chains (``training_kernel.domain.codec``).

Responsibility
--------------
Lossless conversion between snapshots and JSON-compatible dicts.  Used by
transport layers, event payloads and the approval-chain round-trip tests.

Invariants enforced
-------------------
* Datetimes are encoded with ``isoformat()`` (microseconds and UTC offset
  included) and decoded with ``fromisoformat()``: timestamps survive a
  round trip exactly.
* Decimals are encoded as strings, never floats.
* Chain order is list order.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from training_kernel.domain.training import (
    ApprovalAction,
    ApprovalStep,
    Decision,
    LocationMode,
    ProgramType,
    RequestStatus,
    SupportingDocument,
    TrainingRequest,
)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _dec(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _parse_dec(value: Any) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def action_to_dict(action: ApprovalAction) -> dict[str, Any]:
    """Encode one approval chain entry."""
    return {
        "stepRole": action.step_role.value,
        "decision": action.decision.value,
        "userId": action.user_id,
        "userName": action.user_name,
        "notes": action.notes,
        "date": action.date.isoformat(),
    }


def action_from_dict(data: dict[str, Any]) -> ApprovalAction:
    """Decode one approval chain entry.

    Raises:
        KeyError: if a required key is missing.
        ValueError: on unknown enum values or malformed dates.
    """
    return ApprovalAction(
        step_role=ApprovalStep(data["stepRole"]),
        decision=Decision(data["decision"]),
        user_id=data["userId"],
        user_name=data["userName"],
        notes=data.get("notes"),
        date=datetime.fromisoformat(data["date"]),
    )


def chain_to_json(chain: tuple[ApprovalAction, ...]) -> str:
    return json.dumps([action_to_dict(a) for a in chain])


def chain_from_json(raw: str) -> tuple[ApprovalAction, ...]:
    return tuple(action_from_dict(item) for item in json.loads(raw))


def request_to_dict(request: TrainingRequest) -> dict[str, Any]:
    """Encode a full snapshot."""
    return {
        "id": request.id,
        "employeeId": request.employee_id,
        "employeeName": request.employee_name,
        "trainingTitle": request.training_title,
        "justification": request.justification,
        "organiser": request.organiser,
        "venue": request.venue,
        "startDate": request.start_date.isoformat(),
        "endDate": request.end_date.isoformat(),
        "cost": str(request.cost),
        "mode": request.mode.value,
        "programType": request.program_type.value,
        "previousRelevantTraining": request.previous_relevant_training,
        "supportingDocuments": [
            {"name": d.name, "url": d.url} for d in request.supporting_documents
        ],
        "status": request.status.value,
        "currentApprovalStep": request.current_approval_step.value,
        "approvalChain": [action_to_dict(a) for a in request.approval_chain],
        "submittedDate": request.submitted_date.isoformat(),
        "lastUpdated": request.last_updated.isoformat(),
        "cancelledByUserId": request.cancelled_by_user_id,
        "cancelledDate": _dt(request.cancelled_date),
        "cancellationReason": request.cancellation_reason,
        "costCenter": request.cost_center,
        "estimatedLogisticCost": _dec(request.estimated_logistic_cost),
        "departmentApprovedBudget": _dec(request.department_approved_budget),
        "departmentBudgetBalance": _dec(request.department_budget_balance),
    }


def request_from_dict(data: dict[str, Any]) -> TrainingRequest:
    """Decode a full snapshot produced by ``request_to_dict``."""
    return TrainingRequest(
        id=data["id"],
        employee_id=data["employeeId"],
        employee_name=data["employeeName"],
        training_title=data["trainingTitle"],
        justification=data["justification"],
        organiser=data["organiser"],
        venue=data["venue"],
        start_date=date.fromisoformat(data["startDate"]),
        end_date=date.fromisoformat(data["endDate"]),
        cost=Decimal(str(data["cost"])),
        mode=LocationMode(data["mode"]),
        program_type=ProgramType(data["programType"]),
        previous_relevant_training=data.get("previousRelevantTraining"),
        supporting_documents=tuple(
            SupportingDocument(name=d["name"], url=d.get("url"))
            for d in data.get("supportingDocuments") or ()
        ),
        status=RequestStatus(data["status"]),
        current_approval_step=ApprovalStep(data["currentApprovalStep"]),
        approval_chain=tuple(
            action_from_dict(a) for a in data.get("approvalChain") or ()
        ),
        submitted_date=datetime.fromisoformat(data["submittedDate"]),
        last_updated=datetime.fromisoformat(data["lastUpdated"]),
        cancelled_by_user_id=data.get("cancelledByUserId"),
        cancelled_date=_parse_dt(data.get("cancelledDate")),
        cancellation_reason=data.get("cancellationReason"),
        cost_center=data.get("costCenter"),
        estimated_logistic_cost=_parse_dec(data.get("estimatedLogisticCost")),
        department_approved_budget=_parse_dec(data.get("departmentApprovedBudget")),
        department_budget_balance=_parse_dec(data.get("departmentBudgetBalance")),
    )
