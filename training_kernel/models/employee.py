"""
Module: training_kernel.models.employee
Responsibility: ORM persistence for directory entries.

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs are imported lazily inside the converters).

Invariants enforced:
    - role is one of the five directory roles (check constraint).
    - manager_id is indexed: ``manager_of`` and direct-report lookups hit it
      on every supervisor decision.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from training_kernel.db.base import Base

if TYPE_CHECKING:
    from training_kernel.domain.training import Employee


class EmployeeModel(Base):
    """Persistent directory entry."""

    __tablename__ = "employees"

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'supervisor', 'thr', 'ceo', 'cm')",
            name="ck_employees_valid_role",
        ),
        Index("ix_employees_manager_id", "manager_id"),
        Index("ix_employees_role", "role"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    manager_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    position: Mapped[str | None] = mapped_column(String(200), nullable=True)
    staff_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    prefers_email_notifications: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
    )
    prefers_in_app_notifications: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Employee {self.id} role={self.role}>"

    def to_dto(self) -> Employee:
        """Convert ORM model to frozen domain DTO."""
        from training_kernel.domain.training import Employee, Role

        return Employee(
            id=self.id,
            name=self.name,
            email=self.email,
            department=self.department,
            role=Role(self.role),
            manager_id=self.manager_id,
            position=self.position,
            staff_no=self.staff_no,
            prefers_email_notifications=self.prefers_email_notifications,
            prefers_in_app_notifications=self.prefers_in_app_notifications,
        )

    @classmethod
    def from_dto(cls, dto: Employee) -> EmployeeModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            name=dto.name,
            email=dto.email,
            department=dto.department,
            role=dto.role.value,
            manager_id=dto.manager_id,
            position=dto.position,
            staff_no=dto.staff_no,
            prefers_email_notifications=dto.prefers_email_notifications,
            prefers_in_app_notifications=dto.prefers_in_app_notifications,
        )
