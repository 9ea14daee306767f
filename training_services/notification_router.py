"""
training_services.notification_router -- Workflow event routers.

Responsibility:
    Receive ``WorkflowEvent`` instances from the lifecycle controller.
    The controller decides *that* an event happened and *who* should hear
    about it; routers decide what to do with it.

Architecture position:
    Services layer.  Implements ``training_kernel.domain.ports.NotificationRouter``.

Routers:
    - LoggingNotificationRouter: one structured log line per event.
    - InMemoryNotificationRouter: keeps events in a list (tests, demos).
    - FanOutNotificationRouter: forwards each event to several routers,
      tries all of them, then raises one NotificationError naming the
      routers that failed.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from training_kernel.domain.events import WorkflowEvent, WorkflowEventType
from training_kernel.domain.ports import NotificationRouter
from training_kernel.exceptions import NotificationError
from training_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class LoggingNotificationRouter:
    """Emits a ``workflow_event_published`` log record per event."""

    def publish(self, event: WorkflowEvent) -> None:
        logger.info(
            "workflow_event_published",
            extra={
                "event_type": event.event_type.value,
                "event_request_id": event.request_id,
                "recipients": event.recipients,
                "occurred_at": event.occurred_at,
                "payload": event.payload,
            },
        )


class InMemoryNotificationRouter:
    """Collects published events in order."""

    def __init__(self) -> None:
        self._events: list[WorkflowEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> tuple[WorkflowEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def publish(self, event: WorkflowEvent) -> None:
        with self._lock:
            self._events.append(event)

    def of_type(self, event_type: WorkflowEventType | str) -> list[WorkflowEvent]:
        wanted = WorkflowEventType(event_type)
        return [e for e in self.events if e.event_type == wanted]

    def for_recipient(self, employee_id: str) -> list[WorkflowEvent]:
        return [e for e in self.events if employee_id in e.recipients]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class FanOutNotificationRouter:
    """Forwards every event to each wrapped router in turn."""

    def __init__(self, routers: Iterable[NotificationRouter]) -> None:
        self._routers = tuple(routers)

    def publish(self, event: WorkflowEvent) -> None:
        failures: list[str] = []
        for router in self._routers:
            try:
                router.publish(event)
            except Exception as exc:
                logger.warning(
                    "notification_router_failed",
                    extra={
                        "router": type(router).__name__,
                        "event_type": event.event_type.value,
                        "event_request_id": event.request_id,
                        "error": str(exc),
                    },
                )
                failures.append(f"{type(router).__name__}: {exc}")
        if failures:
            raise NotificationError("publish", "; ".join(failures))
