"""
Tests for the request repository and directory adapters.

Both repository adapters run the same contract tests; SQLAlchemy-specific
tests cover chain-row persistence, the append-only listeners and error
wrapping.
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from training_engines.approval import cancel, decide, submit
from training_kernel.domain.training import (
    Decision,
    Role,
    SupportingDocument,
)
from training_kernel.exceptions import (
    DirectoryError,
    EmployeeNotFoundError,
    ImmutabilityViolationError,
    RepositoryError,
    RequestNotFoundError,
)
from training_kernel.models import ApprovalActionModel, TrainingRequestModel
from training_kernel.services import SqlAlchemyDirectory, SqlAlchemyRequestRepository

T0 = datetime(2024, 1, 1, 9, 0, 0, 123456, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def any_repository(request):
    name = "repository" if request.param == "memory" else "sql_repository"
    return request.getfixturevalue(name)


@pytest.fixture
def new_request(staff, make_draft):
    def _make(request_id="TR-1", now=T0, **draft_overrides):
        return submit(
            make_draft(**draft_overrides), staff["emp-1"], request_id=request_id, now=now,
        )
    return _make


def _approve(request, actor, now):
    return decide(request, actor, Decision.APPROVED, "ok", manager_id="sup-1", now=now)


# =============================================================================
# Contract shared by both adapters
# =============================================================================


class TestRepositoryContract:
    def test_create_and_load(self, any_repository, new_request):
        request = new_request()
        any_repository.create(request)
        loaded, version = any_repository.load("TR-1")
        assert loaded == request
        assert version == request.last_updated
        assert version.tzinfo is not None

    def test_load_unknown(self, any_repository):
        with pytest.raises(RequestNotFoundError):
            any_repository.load("missing")

    def test_duplicate_create(self, any_repository, new_request):
        any_repository.create(new_request())
        with pytest.raises(RepositoryError):
            any_repository.create(new_request())

    def test_compare_and_save_success(self, any_repository, new_request, staff):
        request = new_request()
        any_repository.create(request)
        updated = _approve(request, staff["sup-1"], T0 + timedelta(minutes=1))

        assert any_repository.compare_and_save("TR-1", request.last_updated, updated)
        loaded, version = any_repository.load("TR-1")
        assert loaded == updated
        assert version == updated.last_updated

    def test_compare_and_save_conflict_writes_nothing(self, any_repository, new_request, staff):
        request = new_request()
        any_repository.create(request)
        first = _approve(request, staff["sup-1"], T0 + timedelta(minutes=1))
        assert any_repository.compare_and_save("TR-1", request.last_updated, first)

        second = cancel(request, staff["emp-1"], "changed mind", now=T0 + timedelta(minutes=2))
        assert not any_repository.compare_and_save("TR-1", request.last_updated, second)

        loaded, _ = any_repository.load("TR-1")
        assert loaded == first

    def test_compare_and_save_unknown(self, any_repository, new_request):
        request = new_request()
        with pytest.raises(RequestNotFoundError):
            any_repository.compare_and_save("TR-1", request.last_updated, request)

    def test_chain_cannot_shrink(self, any_repository, new_request, staff):
        request = new_request()
        any_repository.create(request)
        updated = _approve(request, staff["sup-1"], T0 + timedelta(minutes=1))
        any_repository.compare_and_save("TR-1", request.last_updated, updated)

        truncated = replace(updated, approval_chain=(), last_updated=T0 + timedelta(minutes=2))
        with pytest.raises(ImmutabilityViolationError):
            any_repository.compare_and_save("TR-1", updated.last_updated, truncated)

    def test_mismatched_snapshot_id(self, any_repository, new_request):
        request = new_request()
        any_repository.create(request)
        with pytest.raises(ValueError):
            any_repository.compare_and_save("TR-1", request.last_updated, new_request("TR-2"))

    def test_list_newest_first(self, any_repository, new_request):
        for index, request_id in enumerate(["TR-1", "TR-2", "TR-3"]):
            any_repository.create(new_request(request_id, now=T0 + timedelta(days=index)))
        assert [r.id for r in any_repository.list_requests()] == ["TR-3", "TR-2", "TR-1"]


# =============================================================================
# SQLAlchemy specifics
# =============================================================================


class TestSqlAlchemyRepository:
    def test_optional_fields_round_trip(self, sql_repository, new_request):
        request = new_request(
            previous_relevant_training="Basic rigging (2022)",
            supporting_documents=(
                SupportingDocument("brochure.pdf", "https://files.example.com/b.pdf"),
                SupportingDocument("quote.pdf"),
            ),
            cost_center="CC-100",
            estimated_logistic_cost=Decimal("350.50"),
            department_approved_budget=Decimal("20000"),
            department_budget_balance=Decimal("12500.75"),
        )
        sql_repository.create(request)
        loaded, _ = sql_repository.load("TR-1")
        assert loaded == request
        assert loaded.supporting_documents[1].url is None

    def test_chain_rows_appended_in_order(self, sql_repository, sql_session_factory, new_request, staff):
        request = new_request(cost=Decimal("2500"))
        sql_repository.create(request)
        step1 = _approve(request, staff["sup-1"], T0 + timedelta(minutes=1))
        sql_repository.compare_and_save("TR-1", request.last_updated, step1)
        step2 = _approve(step1, staff["thr-1"], T0 + timedelta(minutes=2))
        sql_repository.compare_and_save("TR-1", step1.last_updated, step2)

        with sql_session_factory() as session:
            rows = session.execute(
                select(ApprovalActionModel)
                .where(ApprovalActionModel.request_id == "TR-1")
                .order_by(ApprovalActionModel.sequence)
            ).scalars().all()
            assert [(r.sequence, r.step_role) for r in rows] == [(0, "supervisor"), (1, "thr")]

    def test_microsecond_version_token_round_trips(self, sql_repository, new_request, staff):
        request = new_request()
        sql_repository.create(request)
        same_instant = decide(
            request, staff["sup-1"], Decision.APPROVED, None, manager_id="sup-1", now=T0,
        )
        assert same_instant.last_updated == T0 + timedelta(microseconds=1)
        assert sql_repository.compare_and_save("TR-1", T0, same_instant)
        _, version = sql_repository.load("TR-1")
        assert version == same_instant.last_updated

    def test_action_rows_are_immutable(self, sql_repository, sql_session_factory, new_request, staff):
        request = new_request()
        sql_repository.create(request)
        updated = _approve(request, staff["sup-1"], T0 + timedelta(minutes=1))
        sql_repository.compare_and_save("TR-1", request.last_updated, updated)

        with sql_session_factory() as session:
            row = session.get(ApprovalActionModel, ("TR-1", 0))
            row.notes = "rewritten"
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

        with sql_session_factory() as session:
            row = session.get(ApprovalActionModel, ("TR-1", 0))
            session.delete(row)
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_request_row_repr(self, sql_repository, sql_session_factory, new_request):
        sql_repository.create(new_request())
        with sql_session_factory() as session:
            model = session.get(TrainingRequestModel, "TR-1")
            assert "status=pending" in repr(model)

    def test_database_failure_wrapped(self, sql_session_factory, new_request):
        from training_kernel.db.engine import drop_tables

        repository = SqlAlchemyRequestRepository(sql_session_factory)
        drop_tables()
        try:
            with pytest.raises(RepositoryError) as exc_info:
                repository.load("TR-1")
            assert exc_info.value.operation == "load"
        finally:
            from training_kernel.db.engine import create_tables
            create_tables()


# =============================================================================
# Directory adapters
# =============================================================================


@pytest.fixture(params=["memory", "sqlite"])
def any_directory(request):
    name = "directory" if request.param == "memory" else "sql_directory"
    return request.getfixturevalue(name)


class TestDirectory:
    def test_get_by_id(self, any_directory, staff):
        assert any_directory.get_by_id("emp-1") == staff["emp-1"]

    def test_unknown_id(self, any_directory):
        with pytest.raises(EmployeeNotFoundError):
            any_directory.get_by_id("ghost")
        with pytest.raises(EmployeeNotFoundError):
            any_directory.manager_of("ghost")

    def test_get_by_role(self, any_directory):
        assert [e.id for e in any_directory.get_by_role(Role.THR)] == ["thr-1", "thr-2"]
        assert any_directory.get_by_role(Role.CEO)[0].name == "Hana Yusof"

    def test_manager_of(self, any_directory):
        assert any_directory.manager_of("emp-1") == "sup-1"
        assert any_directory.manager_of("emp-orphan") is None

    def test_reassign_manager(self, any_directory):
        updated = any_directory.reassign_manager("emp-1", "sup-2")
        assert updated.manager_id == "sup-2"
        assert any_directory.manager_of("emp-1") == "sup-2"

    def test_reassign_to_unknown_manager(self, any_directory):
        with pytest.raises(EmployeeNotFoundError):
            any_directory.reassign_manager("emp-1", "ghost")
        assert any_directory.manager_of("emp-1") == "sup-1"

    def test_reassignment_logged(self, any_directory, captured_logs):
        any_directory.reassign_manager("emp-1", None)
        records = [r for r in captured_logs() if r["message"] == "manager_reassigned"]
        assert records[0]["previous_manager_id"] == "sup-1"
        assert records[0]["manager_id"] is None

    def test_sql_directory_failure_wrapped(self, sql_session_factory):
        from training_kernel.db.engine import create_tables, drop_tables

        directory = SqlAlchemyDirectory(sql_session_factory)
        drop_tables()
        try:
            with pytest.raises(DirectoryError):
                directory.get_by_id("emp-1")
        finally:
            create_tables()

    def test_provision_overwrites(self, sql_directory, staff):
        changed = replace(staff["emp-1"], department="Logistics")
        assert sql_directory.provision([changed]) == 1
        assert sql_directory.get_by_id("emp-1").department == "Logistics"


def test_start_date_type_preserved(sql_repository, new_request):
    sql_repository.create(new_request())
    loaded, _ = sql_repository.load("TR-1")
    assert loaded.start_date == date(2024, 3, 4)
    assert type(loaded.start_date) is date


class TestSessionScope:
    def test_commits_on_success(self, sql_session_factory, staff):
        from training_kernel.db.engine import session_scope
        from training_kernel.models import EmployeeModel

        with session_scope() as session:
            session.add(EmployeeModel.from_dto(staff["emp-1"]))

        with sql_session_factory() as session:
            assert session.get(EmployeeModel, "emp-1").name == "Aina Rahman"

    def test_rolls_back_on_error(self, sql_session_factory, staff, captured_logs):
        from training_kernel.db.engine import session_scope
        from training_kernel.models import EmployeeModel

        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(EmployeeModel.from_dto(staff["emp-1"]))
                session.flush()
                raise RuntimeError("abort")

        with sql_session_factory() as session:
            assert session.get(EmployeeModel, "emp-1") is None
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())
