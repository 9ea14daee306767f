#!/usr/bin/env python3
"""
Training request scenarios against a real SQLite database.

Loads the YAML config, provisions a small organisation, and walks four
requests through the approval workflow with the lifecycle controller:

  - local course under the threshold  (supervisor -> thr -> cm)
  - overseas conference               (supervisor -> thr -> ceo -> cm)
  - rejected at thr, then withdrawn    (supervisor -> thr rejects -> cancel)
  - stale write                        (expected_version mismatch)

Usage:
    python3 scripts/demo_workflow.py
    python3 scripts/demo_workflow.py --db-url sqlite:///demo.db --log-level DEBUG
    python3 scripts/demo_workflow.py --config training_config/sets/default.yaml
"""

import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

ORGANISATION = [
    ("emp-100", "Aina Rahman", "Operations", "employee", "sup-100"),
    ("emp-101", "Badrul Hisham", "Finance", "employee", "sup-101"),
    ("sup-100", "Dewi Kartika", "Operations", "supervisor", None),
    ("sup-101", "Eko Santoso", "Finance", "supervisor", None),
    ("thr-100", "Farah Aziz", "Human Resources", "thr", None),
    ("ceo-100", "Hana Yusof", "Executive", "ceo", None),
    ("cm-100", "Ivan Lim", "Course Management", "cm", None),
]


def _organisation():
    from training_kernel.domain.training import Employee, Role

    return [
        Employee(
            id=emp_id,
            name=name,
            email=f"{emp_id}@example.com",
            department=department,
            role=Role(role),
            manager_id=manager_id,
        )
        for emp_id, name, department, role, manager_id in ORGANISATION
    ]


def _draft(title, cost, mode, program_type, start):
    from training_kernel.domain.training import LocationMode, ProgramType, TrainingDraft

    return TrainingDraft(
        training_title=title,
        justification="Required for the 2025 competency plan",
        organiser="Skills Institute",
        venue="Training Centre",
        start_date=start,
        end_date=start,
        cost=Decimal(cost),
        mode=LocationMode(mode),
        program_type=ProgramType(program_type),
    )


def _show(label, request):
    print(f"    {label}: status={request.status.value} step={request.current_approval_step.value}")
    for action in request.approval_chain:
        notes = f" ({action.notes})" if action.notes else ""
        print(f"      {action.step_role.value:10s} {action.decision.value:9s} "
              f"by {action.user_name}{notes}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Training approval workflow demo")
    parser.add_argument("--config", default=None, help="YAML configuration set")
    parser.add_argument("--db-url", default=None, help="Database URL (overrides config)")
    parser.add_argument("--log-level", default=None, help="Log level (overrides config)")
    args = parser.parse_args()

    from training_config import get_active_config
    from training_config.loader import log_level
    from training_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from training_kernel.domain.training import Decision
    from training_kernel.exceptions import StateConflictError, TrainingWorkflowError
    from training_kernel.logging_config import configure_logging
    from training_kernel.services import SqlAlchemyDirectory, SqlAlchemyRequestRepository
    from training_services import LoggingNotificationRouter, RequestLifecycleController

    print()
    print("  [1/4] Loading YAML config...")
    config = get_active_config(args.config)
    configure_logging(level=args.log_level.upper() if args.log_level else log_level(config))
    print(f"         Config: {config.config_id} v{config.version}")
    print(f"         Escalation: cost > {config.escalation.cost_threshold} "
          f"or mode in {list(config.escalation.modes)}")

    print("  [2/4] Connecting to database and resetting schema...")
    db_url = args.db_url or config.database.url
    try:
        init_engine_from_url(db_url, echo=config.database.echo)
        drop_tables()
        create_tables()
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    print(f"         Database: {db_url}")

    print("  [3/4] Provisioning organisation...")
    session_factory = get_session_factory()
    directory = SqlAlchemyDirectory(session_factory)
    print(f"         Employees: {directory.provision(_organisation())}")

    controller = RequestLifecycleController(
        SqlAlchemyRequestRepository(session_factory),
        directory,
        LoggingNotificationRouter(),
        config=config,
    )

    print("  [4/4] Running scenarios...")
    print()
    try:
        local = controller.submit(
            _draft("Confined space entry", "1500", "local", "hse", date(2025, 3, 4)),
            "emp-100",
        )
        controller.decide(local.id, "sup-100", Decision.APPROVED)
        controller.decide(local.id, "thr-100", Decision.APPROVED, notes="within budget")
        local = controller.process_by_cm(local.id, "cm-100", notes="seat booked")
        _show("Local course", local)

        overseas = controller.submit(
            _draft("Offshore safety forum", "1800", "overseas",
                   "conference/seminar/forum", date(2025, 5, 12)),
            "emp-101",
        )
        controller.decide(overseas.id, "sup-101", Decision.APPROVED)
        overseas = controller.decide(overseas.id, "thr-100", Decision.APPROVED)
        print(f"    Overseas forum after thr: step={overseas.current_approval_step.value}")
        controller.decide(overseas.id, "ceo-100", Decision.APPROVED, notes="approved")
        overseas = controller.process_by_cm(overseas.id, "cm-100")
        _show("Overseas forum", overseas)

        rejected = controller.submit(
            _draft("Advanced spreadsheets", "900", "online", "functional", date(2025, 2, 1)),
            "emp-101",
        )
        controller.decide(rejected.id, "sup-101", Decision.APPROVED)
        controller.decide(rejected.id, "thr-100", Decision.REJECTED, notes="covered in-house")
        rejected = controller.cancel(rejected.id, "emp-101", "will attend in-house session")
        _show("Rejected then withdrawn", rejected)

        stale = controller.submit(
            _draft("Leadership essentials", "2500", "in-house", "leadership", date(2025, 6, 2)),
            "emp-100",
        )
        stale_version = stale.last_updated
        controller.decide(stale.id, "sup-100", Decision.APPROVED)
        try:
            controller.decide(stale.id, "thr-100", Decision.APPROVED,
                              expected_version=stale_version)
        except StateConflictError as exc:
            print(f"    Stale write refused: {exc}")
            _show("Current snapshot", exc.request)
    except TrainingWorkflowError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print()
    print("  Visible to thr-100:")
    for request in controller.list_visible_to("thr-100"):
        print(f"    {request.id}  {request.training_title:28s} {request.status.value}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
