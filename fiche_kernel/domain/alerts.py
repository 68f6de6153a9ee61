"""
Alert engine (``fiche_kernel.domain.alerts``).

Responsibility
--------------
Stateless time-window rules over a set of fiches, producing
severity-ranked notices.  Alerts are recomputed on every call and never
persisted.

Architecture position
---------------------
**Kernel domain layer** -- pure function of (fiches, now, rules).  ZERO I/O.

Invariants enforced
-------------------
* Idempotent: the same input set and ``now`` always yield the same output.
* Rules are independent; one fiche may count towards several alerts.
* An alert whose count is zero is omitted.
* Output order is stale-in-review, pending-review, overdue.

Alerts are best-effort notifications computed from a possibly stale read;
enforcement never consults them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from fiche_kernel.domain.fiche import FicheRecord, FicheStatus
from fiche_kernel.domain.rules import DEFAULT_RULES, WorkflowRules


class AlertSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertKind(str, Enum):
    STALE_IN_REVIEW = "stale_in_review"
    PENDING_REVIEW = "pending_review"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class Alert:
    """Derived notice about fiches matching one rule."""

    kind: AlertKind
    severity: AlertSeverity
    message: str
    count: int


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from ``start`` to ``end`` (truncated)."""
    return (end - start).days


def list_alerts(
    fiches: Iterable[FicheRecord],
    now: datetime,
    rules: WorkflowRules = DEFAULT_RULES,
) -> tuple[Alert, ...]:
    """Evaluate every alert rule over ``fiches`` as of ``now``."""
    fiches = tuple(fiches)

    stale = sum(
        1 for f in fiches
        if f.status == FicheStatus.IN_REVIEW
        and days_between(f.updated_at, now) > rules.stale_review_days
    )
    pending = sum(1 for f in fiches if f.status == FicheStatus.IN_REVIEW)
    overdue = sum(
        1 for f in fiches
        if f.status != FicheStatus.APPROVED
        and days_between(f.created_at, now) > rules.overdue_days
    )

    candidates = (
        Alert(
            AlertKind.STALE_IN_REVIEW,
            AlertSeverity.HIGH,
            f"in review more than {rules.stale_review_days} days",
            stale,
        ),
        Alert(
            AlertKind.PENDING_REVIEW,
            AlertSeverity.MEDIUM,
            "pending review",
            pending,
        ),
        Alert(
            AlertKind.OVERDUE,
            AlertSeverity.HIGH,
            f"overdue (more than {rules.overdue_days} days)",
            overdue,
        ),
    )
    return tuple(alert for alert in candidates if alert.count > 0)
