"""
training_kernel.services.directory_service -- Employee directory adapters.

Responsibility:
    Answer actor lookups (by id, by role, line manager) for the lifecycle
    controller, and maintain the directory (provisioning and manager
    reassignment).  The controller reads the directory on every attempt,
    so a reassignment takes effect on the next authorization check.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Failure modes:
    - EmployeeNotFoundError for unknown ids.
    - DirectoryError wrapping any SQLAlchemy failure.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_kernel.domain.training import Employee, Role
from training_kernel.exceptions import DirectoryError, EmployeeNotFoundError
from training_kernel.logging_config import get_logger
from training_kernel.models.employee import EmployeeModel

logger = get_logger("services.directory")


class InMemoryDirectory:
    """Directory backed by a dict of frozen ``Employee`` records."""

    def __init__(self, employees: Iterable[Employee] = ()) -> None:
        self._employees: dict[str, Employee] = {e.id: e for e in employees}
        self._lock = threading.Lock()

    def get_by_id(self, employee_id: str) -> Employee:
        employee = self._employees.get(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    def get_by_role(self, role: Role) -> tuple[Employee, ...]:
        return tuple(
            e for e in sorted(self._employees.values(), key=lambda e: e.id)
            if e.role == role
        )

    def manager_of(self, employee_id: str) -> str | None:
        return self.get_by_id(employee_id).manager_id

    def add(self, employee: Employee) -> None:
        with self._lock:
            self._employees[employee.id] = employee

    def reassign_manager(self, employee_id: str, manager_id: str | None) -> Employee:
        """Point ``employee_id`` at a new line manager."""
        with self._lock:
            current = self.get_by_id(employee_id)
            if manager_id is not None:
                self.get_by_id(manager_id)
            updated = replace(current, manager_id=manager_id)
            self._employees[employee_id] = updated

        logger.info(
            "manager_reassigned",
            extra={
                "employee_id": employee_id,
                "previous_manager_id": current.manager_id,
                "manager_id": manager_id,
            },
        )
        return updated


class SqlAlchemyDirectory:
    """Directory backed by the ``employees`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_by_id(self, employee_id: str) -> Employee:
        try:
            with self._session_factory() as session:
                model = session.get(EmployeeModel, employee_id)
                if model is None:
                    raise EmployeeNotFoundError(employee_id)
                return model.to_dto()
        except SQLAlchemyError as exc:
            raise DirectoryError("get_by_id", exc) from exc

    def get_by_role(self, role: Role) -> tuple[Employee, ...]:
        try:
            with self._session_factory() as session:
                models = session.execute(
                    select(EmployeeModel)
                    .where(EmployeeModel.role == Role(role).value)
                    .order_by(EmployeeModel.id)
                ).scalars().all()
                return tuple(m.to_dto() for m in models)
        except SQLAlchemyError as exc:
            raise DirectoryError("get_by_role", exc) from exc

    def manager_of(self, employee_id: str) -> str | None:
        return self.get_by_id(employee_id).manager_id

    def provision(self, employees: Iterable[Employee]) -> int:
        """Insert or overwrite directory entries.  Returns the count."""
        count = 0
        try:
            with self._session_factory() as session, session.begin():
                for employee in employees:
                    session.merge(EmployeeModel.from_dto(employee))
                    count += 1
        except SQLAlchemyError as exc:
            raise DirectoryError("provision", exc) from exc

        logger.info("directory_provisioned", extra={"employee_count": count})
        return count

    def reassign_manager(self, employee_id: str, manager_id: str | None) -> Employee:
        """Point ``employee_id`` at a new line manager."""
        try:
            with self._session_factory() as session, session.begin():
                model = session.get(EmployeeModel, employee_id)
                if model is None:
                    raise EmployeeNotFoundError(employee_id)
                if manager_id is not None and session.get(EmployeeModel, manager_id) is None:
                    raise EmployeeNotFoundError(manager_id)
                previous = model.manager_id
                model.manager_id = manager_id
                session.flush()
                updated = model.to_dto()
        except SQLAlchemyError as exc:
            raise DirectoryError("reassign_manager", exc) from exc

        logger.info(
            "manager_reassigned",
            extra={
                "employee_id": employee_id,
                "previous_manager_id": previous,
                "manager_id": manager_id,
            },
        )
        return updated
