"""
Workflow summaries for the review dashboard (``training_kernel.domain.analytics``).

Pure aggregation over request snapshots.  The caller supplies the
reporting instant and a department lookup (live directory data), so the
same inputs always produce the same summary.

Figures:
    - pending requests (all years)
    - approved / rejected requests submitted in the reporting year, and
      the average approved cost
    - request counts per status (all years)
    - submissions per month over the twelve months ending at ``as_of``
    - approved spend per requester department in the reporting year,
      largest first; requesters with no department are left out
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from training_kernel.domain.training import RequestStatus, TrainingRequest

MONTHS_REPORTED = 12

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class WorkflowSummary:
    """Dashboard figures for one reporting year."""

    year: int
    total_pending: int
    approved_this_year: int
    rejected_this_year: int
    average_approved_cost: Decimal
    requests_by_status: tuple[tuple[RequestStatus, int], ...]
    monthly_submissions: tuple[tuple[str, int], ...]
    spending_by_department: tuple[tuple[str, Decimal], ...]


def _trailing_months(as_of: datetime, count: int) -> list[str]:
    """``YYYY-MM`` labels for the ``count`` months ending with ``as_of``'s month."""
    labels = []
    year, month = as_of.year, as_of.month
    for _ in range(count):
        labels.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return labels[::-1]


def summarize_requests(
    requests: Iterable[TrainingRequest],
    as_of: datetime,
    department_of: Callable[[str], str | None],
) -> WorkflowSummary:
    """Build the dashboard summary as of ``as_of``."""
    requests = list(requests)
    year = as_of.year
    this_year = [r for r in requests if r.submitted_date.year == year]
    approved = [r for r in this_year if r.status == RequestStatus.APPROVED]

    average = Decimal("0.00")
    if approved:
        average = (sum(r.cost for r in approved) / len(approved)).quantize(
            _CENT, rounding=ROUND_HALF_UP,
        )

    status_counts = Counter(r.status for r in requests)

    months = _trailing_months(as_of, MONTHS_REPORTED)
    monthly = Counter(
        label for label in (r.submitted_date.strftime("%Y-%m") for r in requests)
        if label in months
    )

    spending: dict[str, Decimal] = {}
    for request in approved:
        department = department_of(request.employee_id)
        if department:
            spending[department] = spending.get(department, Decimal("0")) + request.cost

    return WorkflowSummary(
        year=year,
        total_pending=status_counts[RequestStatus.PENDING],
        approved_this_year=len(approved),
        rejected_this_year=sum(1 for r in this_year if r.status == RequestStatus.REJECTED),
        average_approved_cost=average,
        requests_by_status=tuple(
            (status, status_counts[status])
            for status in RequestStatus
            if status_counts[status]
        ),
        monthly_submissions=tuple((label, monthly[label]) for label in months),
        spending_by_department=tuple(
            sorted(spending.items(), key=lambda item: (-item[1], item[0]))
        ),
    )
