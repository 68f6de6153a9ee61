"""
VersioningService -- immutable content snapshots.

Responsibility:
    Writes one Version row per submission (and the version-1 draft snapshot
    at creation) and lists a fiche's history newest first.

Architecture position:
    Kernel > Services.  Called by the WorkflowEngine inside its transaction.

Invariants enforced:
    - The snapshot number is the fiche's ``version`` as written by the same
      compare-and-swap, so numbers per fiche are strictly increasing and
      gap-free; UNIQUE(fiche_id, version) backs this up.
    - Rows are never updated or deleted (db/immutability.py, db/triggers.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fiche_kernel.domain.fiche import FicheRecord, FicheVersionRecord
from fiche_kernel.logging_config import get_logger
from fiche_kernel.models.version import FicheVersionModel
from fiche_kernel.services.base import BaseService
from fiche_kernel.services.fiche_store import FicheStore

logger = get_logger("services.versioning")


class VersioningService(BaseService):
    """Snapshots fiche content into immutable version rows."""

    def __init__(self, session, store: FicheStore | None = None):
        super().__init__(session)
        self._store = store or FicheStore(session)

    def snapshot(self, fiche: FicheRecord, created_at: datetime) -> FicheVersionRecord:
        """Record ``fiche``'s content and status under its current version."""
        record = self._store.append_version(FicheVersionRecord(
            fiche_id=fiche.id,
            version=fiche.version,
            content=fiche.content,
            status=fiche.status,
            created_at=created_at,
        ))
        logger.debug(
            "fiche_version_recorded",
            extra={"fiche_id": str(fiche.id), "version": fiche.version},
        )
        return record

    def history(self, fiche_id: UUID) -> tuple[FicheVersionRecord, ...]:
        """All versions of a fiche, newest first."""
        rows = self.session.scalars(FicheVersionModel.for_fiche(fiche_id))
        return tuple(row.to_record() for row in rows)
