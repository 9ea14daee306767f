"""
Service layer for the training request workflow.

``RequestLifecycleController`` is the public surface; routers receive the
events it publishes.
"""

from training_services.lifecycle_controller import RequestLifecycleController
from training_services.notification_router import (
    FanOutNotificationRouter,
    InMemoryNotificationRouter,
    LoggingNotificationRouter,
)

__all__ = [
    "FanOutNotificationRouter",
    "InMemoryNotificationRouter",
    "LoggingNotificationRouter",
    "RequestLifecycleController",
]
