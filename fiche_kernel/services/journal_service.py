"""
JournalService -- append-only review journal.

Responsibility:
    Appends one typed entry per approve / reject / comment and lists a
    fiche's entries for display.

Architecture position:
    Kernel > Services.  Called by the WorkflowEngine inside its transaction.

Invariants enforced:
    - ``seq`` comes from the fiche's ``journal_count`` as written by the
      same compare-and-swap, so insertion order is total per fiche.
    - Listing order is created_at descending, then seq descending.
    - Rows are never updated or deleted (db/immutability.py, db/triggers.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from fiche_kernel.domain.fiche import (
    JournalActionType,
    JournalEntryRecord,
    RejectionReason,
)
from fiche_kernel.models.journal import JournalEntryModel
from fiche_kernel.services.base import BaseService
from fiche_kernel.services.fiche_store import FicheStore


class JournalService(BaseService):
    """Records and lists the audited actions on fiches."""

    def __init__(self, session, store: FicheStore | None = None):
        super().__init__(session)
        self._store = store or FicheStore(session)

    def record(
        self,
        fiche_id: UUID,
        seq: int,
        actor_id: UUID,
        action_type: JournalActionType,
        created_at: datetime,
        reason: RejectionReason | None = None,
        comment: str | None = None,
    ) -> JournalEntryRecord:
        if action_type == JournalActionType.REJECTION and reason is None:
            raise ValueError("rejection entries require a reason")
        return self._store.append_journal(JournalEntryRecord(
            id=uuid4(),
            fiche_id=fiche_id,
            seq=seq,
            actor_id=actor_id,
            action_type=action_type,
            created_at=created_at,
            reason=reason,
            comment=comment,
        ))

    def entries(self, fiche_id: UUID) -> tuple[JournalEntryRecord, ...]:
        """Entries of a fiche, newest first."""
        rows = self.session.scalars(JournalEntryModel.for_fiche(fiche_id))
        return tuple(row.to_record() for row in rows)

    def latest_rejection(self, fiche_id: UUID) -> JournalEntryRecord | None:
        row = self.session.scalars(
            JournalEntryModel.for_fiche(fiche_id)
            .where(JournalEntryModel.action_type == JournalActionType.REJECTION.value)
            .limit(1)
        ).first()
        return row.to_record() if row is not None else None
