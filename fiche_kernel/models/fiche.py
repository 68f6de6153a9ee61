"""
Module: fiche_kernel.models.fiche
Responsibility: ORM persistence for the fiche itself.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - DB check constraints limit status and fiche_type to their enumerations.
    - current_stage is NULL exactly when status is not 'in_review'.
    - revision is the compare-and-swap counter; journal_count allocates the
      per-fiche journal sequence under that same guard.

Failure modes:
    - IntegrityError on an out-of-range status, type or stage combination.
    - ImmutabilityViolationError when the locked fields of an approved fiche
      are changed through the ORM (see db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, and_, or_
from sqlalchemy.orm import Mapped, mapped_column

from fiche_kernel.db.base import Base, UTCDateTime, UUIDString

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from fiche_kernel.domain.access_policy import VisibilityScope
    from fiche_kernel.domain.fiche import FicheRecord


class FicheModel(Base):
    """Persistent fiche row; the single mutable entity of the workflow."""

    __tablename__ = "fiches"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'in_review', 'approved', 'rejected')",
            name="ck_fiches_valid_status",
        ),
        CheckConstraint(
            "fiche_type IN ('annual', 'project', 'evaluation')",
            name="ck_fiches_valid_type",
        ),
        CheckConstraint(
            "(status = 'in_review' AND current_stage IS NOT NULL) OR "
            "(status <> 'in_review' AND current_stage IS NULL)",
            name="ck_fiches_stage_matches_status",
        ),
        CheckConstraint("version >= 0", name="ck_fiches_version_non_negative"),
        Index("ix_fiches_author", "author_id"),
        Index("ix_fiches_status_stage", "status", "current_stage"),
    )

    fiche_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    current_stage: Mapped[str | None] = mapped_column(String(30), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    journal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    @classmethod
    def visible_to(cls, scope: VisibilityScope) -> ColumnElement[bool]:
        """SQL form of a VisibilityScope: own fiches, fiches in review at
        the scope's stage, fiches in one of the scope's statuses, or
        everything."""
        if scope.everything:
            return cls.id.is_not(None)
        clauses = [cls.author_id == scope.author_id]
        if scope.statuses:
            clauses.append(cls.status.in_(sorted(s.value for s in scope.statuses)))
        if scope.stage is not None:
            clauses.append(and_(
                cls.status == "in_review",
                cls.current_stage == scope.stage.value,
            ))
        return or_(*clauses)

    def __repr__(self) -> str:
        return (
            f"<Fiche {self.id} {self.fiche_type} status={self.status} "
            f"stage={self.current_stage} v{self.version} r{self.revision}>"
        )

    def to_record(self) -> FicheRecord:
        """Convert ORM model to a frozen domain record."""
        from fiche_kernel.domain.fiche import FicheRecord, FicheStatus, FicheType, Stage

        return FicheRecord(
            id=self.id,
            fiche_type=FicheType(self.fiche_type),
            status=FicheStatus(self.status),
            current_stage=Stage(self.current_stage) if self.current_stage else None,
            content=self.content,
            author_id=self.author_id,
            version=self.version,
            revision=self.revision,
            journal_count=self.journal_count,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
