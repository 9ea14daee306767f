"""
Pytest fixtures for the training workflow test suite.

Provides:
- Structured logging setup and the ``captured_logs`` fixture
- A deterministic clock
- A standard staff directory (employees, supervisors, thr, ceo, cm)
- In-memory and SQLite-backed repository / directory adapters
- A wired ``RequestLifecycleController``

SQLite databases live in the per-test ``tmp_path`` so tests never share
state; no external database server is needed.
"""

import itertools
import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from training_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from training_kernel.domain.clock import DeterministicClock
from training_kernel.domain.training import (
    Employee,
    LocationMode,
    ProgramType,
    Role,
    TrainingDraft,
)
from training_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from training_kernel.services import (
    InMemoryDirectory,
    InMemoryRequestRepository,
    SqlAlchemyDirectory,
    SqlAlchemyRequestRepository,
)
from training_services import InMemoryNotificationRouter, RequestLifecycleController


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture training_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, controller):
            controller.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "training_request_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("training_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Staff directory
# =============================================================================


def build_staff() -> dict[str, Employee]:
    """The standard organisation used across the suite."""
    staff = [
        Employee("emp-1", "Aina Rahman", "aina@example.com", "Operations",
                 Role.EMPLOYEE, manager_id="sup-1", position="Technician",
                 staff_no="S1001"),
        Employee("emp-2", "Badrul Hisham", "badrul@example.com", "Finance",
                 Role.EMPLOYEE, manager_id="sup-2", staff_no="S1002",
                 prefers_email_notifications=False),
        Employee("emp-orphan", "Chen Wei", "chen@example.com", "Operations",
                 Role.EMPLOYEE, manager_id=None),
        Employee("sup-1", "Dewi Lestari", "dewi@example.com", "Operations",
                 Role.SUPERVISOR, manager_id=None, position="Operations Lead"),
        Employee("sup-2", "Eric Tan", "eric@example.com", "Finance",
                 Role.SUPERVISOR, manager_id=None),
        Employee("thr-1", "Farah Aziz", "farah@example.com", "Human Resources",
                 Role.THR),
        Employee("thr-2", "Gopal Nair", "gopal@example.com", "Human Resources",
                 Role.THR),
        Employee("ceo-1", "Hana Yusof", "hana@example.com", "Executive",
                 Role.CEO),
        Employee("cm-1", "Ivan Lim", "ivan@example.com", "Course Management",
                 Role.CM),
    ]
    return {e.id: e for e in staff}


@pytest.fixture
def staff() -> dict[str, Employee]:
    return build_staff()


def build_draft(**overrides) -> TrainingDraft:
    fields = dict(
        training_title="Advanced Process Safety",
        justification="Required for plant certification",
        organiser="Institute of Safety",
        venue="Kuala Lumpur",
        start_date=date(2024, 3, 4),
        end_date=date(2024, 3, 6),
        cost=Decimal("1500"),
        mode=LocationMode.LOCAL,
        program_type=ProgramType.HSE,
    )
    fields.update(overrides)
    return TrainingDraft(**fields)


@pytest.fixture
def make_draft():
    """Factory for TrainingDraft with overridable fields."""
    return build_draft


# =============================================================================
# In-memory adapters
# =============================================================================


@pytest.fixture
def directory(staff) -> InMemoryDirectory:
    return InMemoryDirectory(staff.values())


@pytest.fixture
def repository() -> InMemoryRequestRepository:
    return InMemoryRequestRepository()


@pytest.fixture
def router() -> InMemoryNotificationRouter:
    return InMemoryNotificationRouter()


def sequential_ids(prefix: str = "TR"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter):04d}"


@pytest.fixture
def controller(repository, directory, router, clock) -> RequestLifecycleController:
    return RequestLifecycleController(
        repository,
        directory,
        router,
        clock=clock,
        id_factory=sequential_ids(),
    )


# =============================================================================
# SQLite-backed adapters
# =============================================================================


@pytest.fixture
def sql_session_factory(tmp_path):
    """Fresh file-backed SQLite database per test."""
    init_engine_from_url(f"sqlite:///{tmp_path / 'training.db'}")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_repository(sql_session_factory) -> SqlAlchemyRequestRepository:
    return SqlAlchemyRequestRepository(sql_session_factory)


@pytest.fixture
def sql_directory(sql_session_factory, staff) -> SqlAlchemyDirectory:
    directory = SqlAlchemyDirectory(sql_session_factory)
    directory.provision(staff.values())
    return directory


@pytest.fixture
def sql_controller(sql_repository, sql_directory, router, clock) -> RequestLifecycleController:
    return RequestLifecycleController(
        sql_repository,
        sql_directory,
        router,
        clock=clock,
        id_factory=sequential_ids("SQL"),
    )
