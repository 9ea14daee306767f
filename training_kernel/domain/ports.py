"""
Collaborator interfaces (``training_kernel.domain.ports``).

Responsibility
--------------
Structural protocols for the three external collaborators of the
lifecycle controller.  Adapters live in ``training_kernel.services``
(directory, repository) and ``training_services.notification_router``.

Architecture position
---------------------
**Kernel domain layer** -- interfaces only, ZERO I/O.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from training_kernel.domain.events import WorkflowEvent
from training_kernel.domain.training import Employee, Role, TrainingRequest


class Directory(Protocol):
    """Read-only actor lookups.

    Unknown ids raise ``EmployeeNotFoundError``; infrastructure failures
    raise ``DirectoryError``.
    """

    def get_by_id(self, employee_id: str) -> Employee:
        """Return the employee with this id."""
        ...

    def get_by_role(self, role: Role) -> tuple[Employee, ...]:
        """Return every employee holding ``role``."""
        ...

    def manager_of(self, employee_id: str) -> str | None:
        """Return the id of the employee's manager, if any."""
        ...


class RequestRepository(Protocol):
    """Atomic single-request persistence keyed by a version token.

    The version token is the snapshot's ``last_updated``.  Unknown ids
    raise ``RequestNotFoundError``; infrastructure failures raise
    ``RepositoryError``.
    """

    def create(self, request: TrainingRequest) -> None:
        """Persist a freshly submitted request."""
        ...

    def load(self, request_id: str) -> tuple[TrainingRequest, datetime]:
        """Return the current snapshot and its version token."""
        ...

    def compare_and_save(
        self,
        request_id: str,
        expected_version: datetime,
        new_snapshot: TrainingRequest,
    ) -> bool:
        """Replace the snapshot iff the stored version still matches.

        Returns False on conflict and leaves the stored request untouched.
        """
        ...

    def list_requests(self) -> tuple[TrainingRequest, ...]:
        """Return every stored request, newest submission first."""
        ...


class NotificationRouter(Protocol):
    """Receives workflow events.  Fire-and-forget for the caller."""

    def publish(self, event: WorkflowEvent) -> None:
        ...
