"""
Workflow notification events (``training_kernel.domain.events``).

The lifecycle controller decides *that* something happened and *who*
should hear about it; delivery belongs to the notification router.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class WorkflowEventType(str, Enum):
    """Type tag carried by every published event."""

    REQUEST_SUBMITTED = "RequestSubmitted"
    STEP_ADVANCED = "StepAdvanced"
    REQUEST_DECIDED = "RequestDecided"
    REQUEST_PROCESSED = "RequestProcessed"
    REQUEST_CANCELLED = "RequestCancelled"


@dataclass(frozen=True)
class WorkflowEvent:
    """A notification-worthy fact about one training request."""

    event_type: WorkflowEventType
    request_id: str
    recipients: tuple[str, ...]
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
