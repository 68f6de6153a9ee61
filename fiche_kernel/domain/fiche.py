"""
Fiche domain types (``fiche_kernel.domain.fiche``).

Responsibility
--------------
Pure value objects for the fiche approval workflow: the closed
enumerations (type, status, stage, role, journal action, rejection
reason) and the immutable records exchanged between the services, the
selectors and the caller.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``current_stage`` is set if and only if ``status`` is ``in_review``.
* Records are frozen; a state change always produces a new record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class FicheType(str, Enum):
    """Kind of fiche; fixed at creation."""

    ANNUAL = "annual"
    PROJECT = "project"
    EVALUATION = "evaluation"


class FicheStatus(str, Enum):
    """Fiche lifecycle states."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class Stage(str, Enum):
    """Named checkpoint in a review path."""

    AUTHOR = "author"
    PROJECT_REFERENT = "project_referent"
    HR_COACH = "hr_coach"
    MANAGEMENT = "management"


class Role(str, Enum):
    """Organisational role of an actor, resolved by the identity service."""

    EMPLOYEE = "employee"
    PROJECT_REFERENT = "project_referent"
    HR_COACH = "hr_coach"
    MANAGEMENT = "management"


# Reviewer role that owns each review stage.
STAGE_ROLES: dict[Stage, Role] = {
    Stage.PROJECT_REFERENT: Role.PROJECT_REFERENT,
    Stage.HR_COACH: Role.HR_COACH,
    Stage.MANAGEMENT: Role.MANAGEMENT,
}


class FicheAction(str, Enum):
    """Actions a caller may request against a fiche."""

    READ = "read"
    EDIT = "edit"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    COMMENT = "comment"


class JournalActionType(str, Enum):
    """Kinds of audited reviewer actions."""

    APPROVAL = "approval"
    REJECTION = "rejection"
    COMMENT = "comment"


class RejectionReason(str, Enum):
    """Closed set of rejection reasons; the value is the display label."""

    INCOMPLETE_INFORMATION = "Incomplete information"
    POORLY_DEFINED_OBJECTIVES = "Poorly defined objectives"
    NOT_ALIGNED_WITH_STRATEGY = "Not aligned with strategy"
    NEEDS_CLARIFICATION = "Needs clarification"
    INCORRECT_FORMAT = "Incorrect format"
    OTHER = "Other"


@dataclass(frozen=True)
class Actor:
    """Identity and role of the caller, passed explicitly to every call."""

    actor_id: UUID
    role: Role


@dataclass(frozen=True)
class FicheRecord:
    """Immutable snapshot of a fiche row.

    ``revision`` is the optimistic-concurrency counter compared by the
    store's compare-and-swap; ``version`` is the content version bumped
    only by submissions.
    """

    id: UUID
    fiche_type: FicheType
    status: FicheStatus
    current_stage: Stage | None
    content: str
    author_id: UUID
    version: int
    revision: int
    journal_count: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FicheVersionRecord:
    """Immutable content snapshot taken at a submission."""

    fiche_id: UUID
    version: int
    content: str
    status: FicheStatus
    created_at: datetime


@dataclass(frozen=True)
class JournalEntryRecord:
    """Immutable audit record of an approval, rejection or comment.

    ``seq`` is the per-fiche insertion order, used to break timestamp ties.
    """

    id: UUID
    fiche_id: UUID
    seq: int
    actor_id: UUID
    action_type: JournalActionType
    created_at: datetime
    reason: RejectionReason | None = None
    comment: str | None = None


def rejection_comment(reason: RejectionReason, comment: str | None = None) -> str:
    """Render the journal text of a rejection.

    >>> rejection_comment(RejectionReason.OTHER)
    'Motif : Other'
    """
    text = f"Motif : {reason.value}"
    if comment:
        text += f"\n\nCommentaire : {comment}"
    return text
