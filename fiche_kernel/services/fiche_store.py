"""
FicheStore -- durable fiche storage with compare-and-swap updates.

Responsibility:
    The Document Store contract of the workflow: load a fiche, insert a new
    one, update it atomically against the revision the caller read, append
    version and journal rows, and list fiches for a visibility scope.

Architecture position:
    Kernel > Services.  Imported by the versioning and journal services,
    the WorkflowEngine and the selectors.

Invariants enforced:
    - Single writer per fiche: ``cas_update_fiche`` issues
      ``UPDATE fiches SET ... WHERE id = :id AND revision = :expected`` and
      bumps ``revision``; zero rows updated means another transaction got
      there first.
    - Approved fiches: a compare-and-swap touching a locked field is
      refused with ImmutabilityViolationError.  The statement is Core SQL
      and bypasses the ORM listeners, so the guard is part of its WHERE
      clause.

Failure modes:
    - FicheNotFoundError from ``get_fiche`` / ``cas_update_fiche``.
    - ConflictError when the revision moved.
    - ImmutabilityViolationError on a locked-field update of an approved fiche.
    - IntegrityError on a duplicate (fiche_id, version) or (fiche_id, seq).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.sql.elements import ColumnElement

from fiche_kernel.db.immutability import LOCKED_FICHE_FIELDS
from fiche_kernel.domain.access_policy import VisibilityScope
from fiche_kernel.domain.fiche import (
    FicheRecord,
    FicheStatus,
    FicheVersionRecord,
    JournalEntryRecord,
)
from fiche_kernel.exceptions import (
    ConflictError,
    FicheNotFoundError,
    ImmutabilityViolationError,
)
from fiche_kernel.logging_config import get_logger
from fiche_kernel.models.fiche import FicheModel
from fiche_kernel.models.journal import JournalEntryModel
from fiche_kernel.models.version import FicheVersionModel
from fiche_kernel.services.base import BaseService

logger = get_logger("services.fiche_store")

_FICHE_COLUMNS = frozenset(
    {"status", "current_stage", "content", "version", "journal_count", "updated_at"}
)


def _column_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class FicheStore(BaseService):
    """Fiche persistence for the workflow engine."""

    def get_fiche(self, fiche_id: UUID) -> FicheRecord:
        """Current committed state of a fiche.

        Raises:
            FicheNotFoundError: No fiche has this id.
        """
        model = self.session.execute(
            select(FicheModel)
            .where(FicheModel.id == fiche_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise FicheNotFoundError(str(fiche_id))
        return model.to_record()

    def insert_fiche(self, record: FicheRecord) -> FicheRecord:
        model = FicheModel(
            id=record.id,
            fiche_type=record.fiche_type.value,
            status=record.status.value,
            current_stage=_column_value(record.current_stage),
            content=record.content,
            author_id=record.author_id,
            version=record.version,
            revision=record.revision,
            journal_count=record.journal_count,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        self.session.add(model)
        self.session.flush()
        return model.to_record()

    def cas_update_fiche(
        self,
        fiche_id: UUID,
        expected_revision: int,
        mutation: dict[str, Any],
    ) -> FicheRecord:
        """Apply ``mutation`` if the fiche is still at ``expected_revision``.

        ``mutation`` maps column names (status, current_stage, content,
        version, journal_count, updated_at) to new values; enum values are
        stored by value.  ``revision`` is bumped by one.

        Raises:
            FicheNotFoundError: The fiche does not exist.
            ConflictError: The fiche's revision is no longer ``expected_revision``.
            ImmutabilityViolationError: The fiche is approved and ``mutation``
                touches a locked field.
        """
        unknown = set(mutation) - _FICHE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown fiche columns: {sorted(unknown)}")

        values = {key: _column_value(val) for key, val in mutation.items()}
        values["revision"] = expected_revision + 1
        touches_locked = any(key in LOCKED_FICHE_FIELDS for key in mutation)

        stmt = update(FicheModel).where(
            FicheModel.id == fiche_id,
            FicheModel.revision == expected_revision,
        )
        if touches_locked:
            stmt = stmt.where(FicheModel.status != FicheStatus.APPROVED.value)
        result = self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            current = self.session.execute(
                select(FicheModel.revision, FicheModel.status)
                .where(FicheModel.id == fiche_id)
            ).one_or_none()
            if current is None:
                raise FicheNotFoundError(str(fiche_id))
            revision, status = current
            if revision == expected_revision and status == FicheStatus.APPROVED.value:
                logger.error(
                    "immutability_violation_blocked",
                    extra={
                        "entity_type": "Fiche",
                        "entity_id": str(fiche_id),
                        "operation": "UPDATE",
                    },
                )
                raise ImmutabilityViolationError(
                    entity_type="Fiche",
                    entity_id=str(fiche_id),
                    reason="Approved fiche is locked",
                )
            raise ConflictError(str(fiche_id), expected_revision, revision)

        return self.get_fiche(fiche_id)

    def append_version(self, record: FicheVersionRecord) -> FicheVersionRecord:
        model = FicheVersionModel(
            fiche_id=record.fiche_id,
            version=record.version,
            content=record.content,
            status=record.status.value,
            created_at=record.created_at,
        )
        self.session.add(model)
        self.session.flush()
        return model.to_record()

    def append_journal(self, record: JournalEntryRecord) -> JournalEntryRecord:
        model = JournalEntryModel(
            id=record.id,
            fiche_id=record.fiche_id,
            seq=record.seq,
            actor_id=record.actor_id,
            action_type=record.action_type.value,
            reason=_column_value(record.reason),
            comment=record.comment,
            created_at=record.created_at,
        )
        self.session.add(model)
        self.session.flush()
        return model.to_record()

    def list_fiches(
        self,
        scope: VisibilityScope | None = None,
        *criteria: ColumnElement[bool],
    ) -> list[FicheRecord]:
        """Fiches matching ``scope`` and every extra SQL criterion.

        With no scope every fiche qualifies.  Ordered newest first.
        """
        stmt = select(FicheModel).execution_options(populate_existing=True)
        if scope is not None:
            stmt = stmt.where(FicheModel.visible_to(scope))
        for criterion in criteria:
            stmt = stmt.where(criterion)
        stmt = stmt.order_by(FicheModel.created_at.desc(), FicheModel.id)
        return [model.to_record() for model in self.session.scalars(stmt)]
