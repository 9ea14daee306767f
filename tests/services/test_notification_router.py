"""Tests for the notification routers."""

from datetime import datetime, timezone

import pytest

from training_kernel.domain.events import WorkflowEvent, WorkflowEventType
from training_kernel.exceptions import NotificationError
from training_services import (
    FanOutNotificationRouter,
    InMemoryNotificationRouter,
    LoggingNotificationRouter,
)

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def _event(event_type=WorkflowEventType.REQUEST_SUBMITTED, recipients=("sup-1",)):
    return WorkflowEvent(
        event_type=event_type,
        request_id="TR-1",
        recipients=recipients,
        occurred_at=T0,
        payload={"training_title": "Rigging basics"},
    )


class ExplodingRouter:
    def publish(self, event):
        raise RuntimeError("smtp unavailable")


class TestInMemoryRouter:
    def test_filters(self):
        router = InMemoryNotificationRouter()
        router.publish(_event())
        router.publish(_event(WorkflowEventType.REQUEST_DECIDED, ("emp-1",)))

        assert len(router.events) == 2
        assert [e.request_id for e in router.of_type("RequestDecided")] == ["TR-1"]
        assert router.for_recipient("sup-1")[0].event_type == WorkflowEventType.REQUEST_SUBMITTED

        router.clear()
        assert router.events == ()


class TestLoggingRouter:
    def test_one_record_per_event(self, captured_logs):
        LoggingNotificationRouter().publish(_event())

        records = [r for r in captured_logs() if r["message"] == "workflow_event_published"]
        assert len(records) == 1
        assert records[0]["event_type"] == "RequestSubmitted"
        assert records[0]["event_request_id"] == "TR-1"
        assert records[0]["recipients"] == ["sup-1"]
        assert records[0]["payload"] == {"training_title": "Rigging basics"}


class TestFanOutRouter:
    def test_forwards_to_every_router(self):
        first, second = InMemoryNotificationRouter(), InMemoryNotificationRouter()
        FanOutNotificationRouter([first, second]).publish(_event())
        assert len(first.events) == len(second.events) == 1

    def test_failure_does_not_stop_later_routers(self, captured_logs):
        survivor = InMemoryNotificationRouter()
        fan_out = FanOutNotificationRouter([ExplodingRouter(), survivor])

        with pytest.raises(NotificationError) as exc_info:
            fan_out.publish(_event())

        assert "ExplodingRouter" in exc_info.value.detail
        assert len(survivor.events) == 1
        assert any(
            r["message"] == "notification_router_failed" and r["router"] == "ExplodingRouter"
            for r in captured_logs()
        )
