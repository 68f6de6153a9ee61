"""
Dashboard reporting over fiche sets (``fiche_kernel.domain.reporting``).

Responsibility
--------------
Pure aggregations the dashboard renders: listing filters, per-status and
per-type counts, and the annual objectives KPIs.  Rendering (charts, CSV)
stays with the caller.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  The current time
is always a parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable
from uuid import UUID

from fiche_kernel.domain.alerts import days_between
from fiche_kernel.domain.fiche import FicheRecord, FicheStatus, FicheType
from fiche_kernel.domain.rules import DEFAULT_RULES, WorkflowRules


class CreationPeriod(str, Enum):
    """Creation-date windows offered by the listing filter."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


@dataclass(frozen=True)
class FicheFilter:
    """Listing filter; ``None`` fields do not constrain."""

    fiche_type: FicheType | None = None
    status: FicheStatus | None = None
    author_id: UUID | None = None
    period: CreationPeriod | None = None

    def matches(self, fiche: FicheRecord, now: datetime) -> bool:
        if self.fiche_type is not None and fiche.fiche_type != self.fiche_type:
            return False
        if self.status is not None and fiche.status != self.status:
            return False
        if self.author_id is not None and fiche.author_id != self.author_id:
            return False
        if self.period is not None and not _in_period(fiche.created_at, now, self.period):
            return False
        return True

    def apply(self, fiches: Iterable[FicheRecord], now: datetime) -> list[FicheRecord]:
        return [f for f in fiches if self.matches(f, now)]


def _in_period(created_at: datetime, now: datetime, period: CreationPeriod) -> bool:
    if period == CreationPeriod.WEEK:
        return (now - created_at).total_seconds() <= 7 * 86_400
    if created_at.year != now.year:
        return False
    if period == CreationPeriod.MONTH:
        return created_at.month == now.month
    return (created_at.month - 1) // 3 == (now.month - 1) // 3


def status_counts(fiches: Iterable[FicheRecord]) -> dict[FicheStatus, int]:
    """Number of fiches per status; every status is present."""
    counts = {status: 0 for status in FicheStatus}
    for fiche in fiches:
        counts[fiche.status] += 1
    return counts


def type_counts(fiches: Iterable[FicheRecord]) -> dict[FicheType, int]:
    """Number of fiches per type; every type is present."""
    counts = {fiche_type: 0 for fiche_type in FicheType}
    for fiche in fiches:
        counts[fiche.fiche_type] += 1
    return counts


# =========================================================================
# Annual objectives
# =========================================================================


@dataclass(frozen=True)
class AnnualKpis:
    """Yearly review KPIs.

    Rates are percentages.  ``late_fiches`` are those whose last update
    came more than ``on_time_days`` after creation.
    """

    year: int
    total_fiches: int
    completion_rate: float
    on_time_rate: float
    evaluation_rate: float
    missing_evaluations: int
    late_fiches: tuple[FicheRecord, ...]
    status_counts: dict[FicheStatus, int]
    type_counts: dict[FicheType, int]


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part * 100.0 / whole


def annual_kpis(
    fiches: Iterable[FicheRecord],
    year: int,
    rules: WorkflowRules = DEFAULT_RULES,
) -> AnnualKpis:
    """KPIs over the fiches created during ``year``."""
    in_year = [f for f in fiches if f.created_at.year == year]
    total = len(in_year)
    approved = sum(1 for f in in_year if f.status == FicheStatus.APPROVED)
    late = tuple(
        f for f in in_year
        if days_between(f.created_at, f.updated_at) > rules.on_time_days
    )
    evaluations = sum(1 for f in in_year if f.fiche_type == FicheType.EVALUATION)
    expected = rules.expected_evaluations_per_year

    return AnnualKpis(
        year=year,
        total_fiches=total,
        completion_rate=_percent(approved, total),
        on_time_rate=_percent(total - len(late), total),
        evaluation_rate=_percent(evaluations, expected),
        missing_evaluations=max(expected - evaluations, 0),
        late_fiches=late,
        status_counts=status_counts(in_year),
        type_counts=type_counts(in_year),
    )
