"""
Module: fiche_kernel.models.journal
Responsibility: ORM persistence for the append-only review journal.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(fiche_id, seq): seq is allocated from the fiche's
      journal_count under the revision compare-and-swap.
    - action_type is one of approval / rejection / comment.
    - Rows are append-only (ORM listeners and database triggers).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Select,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column

from fiche_kernel.db.base import Base, UTCDateTime, UUIDString

if TYPE_CHECKING:
    from fiche_kernel.domain.fiche import JournalEntryRecord


class JournalEntryModel(Base):
    """Audit record of an approval, rejection or comment."""

    __tablename__ = "fiche_journal_entries"

    __table_args__ = (
        CheckConstraint(
            "action_type IN ('approval', 'rejection', 'comment')",
            name="ck_fiche_journal_entries_valid_action",
        ),
        UniqueConstraint("fiche_id", "seq", name="uq_fiche_journal_entries_seq"),
        Index("ix_fiche_journal_entries_order", "fiche_id", "created_at", "seq"),
    )

    fiche_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiches.id"), nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<JournalEntry {self.fiche_id}#{self.seq} {self.action_type}>"

    @classmethod
    def for_fiche(cls, fiche_id: UUID) -> Select[tuple[JournalEntryModel]]:
        """Entries of a fiche in display order: created_at then seq, newest first."""
        return (
            select(cls)
            .where(cls.fiche_id == fiche_id)
            .order_by(cls.created_at.desc(), cls.seq.desc())
        )

    def to_record(self) -> JournalEntryRecord:
        from fiche_kernel.domain.fiche import (
            JournalActionType,
            JournalEntryRecord,
            RejectionReason,
        )

        return JournalEntryRecord(
            id=self.id,
            fiche_id=self.fiche_id,
            seq=self.seq,
            actor_id=self.actor_id,
            action_type=JournalActionType(self.action_type),
            created_at=self.created_at,
            reason=RejectionReason(self.reason) if self.reason else None,
            comment=self.comment,
        )
