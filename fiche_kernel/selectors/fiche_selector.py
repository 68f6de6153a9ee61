"""
Module: fiche_kernel.selectors.fiche_selector
Responsibility: Read-only dashboard queries over fiches: visibility-scoped
    listing with filters, the detail view (history, journal, progress,
    allowed actions), dashboard statistics and the annual objectives KPIs.
Architecture position: Kernel > Selectors.  May import from models/, the
    pure domain layer and selectors/base.py.

Invariants enforced:
    - "Can see" and "can act" come from the same access policy: listings
      use ``visibility_scope`` translated to SQL, single-fiche reads use
      ``require(READ, ...)``.
    - Journal order is created_at descending, then seq descending; version
      history is newest first.

Failure modes:
    - FicheNotFoundError for an unknown fiche id.
    - ForbiddenError when the actor may not see the fiche, or may not read
      the annual KPIs (only hr_coach and management).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fiche_kernel.domain.access_policy import allowed_actions, require, visibility_scope
from fiche_kernel.domain.alerts import Alert, list_alerts
from fiche_kernel.domain.clock import Clock, SystemClock
from fiche_kernel.domain.fiche import (
    Actor,
    FicheAction,
    FicheRecord,
    FicheStatus,
    FicheType,
    FicheVersionRecord,
    JournalActionType,
    JournalEntryRecord,
    Role,
)
from fiche_kernel.domain.reporting import (
    AnnualKpis,
    FicheFilter,
    annual_kpis,
    status_counts,
    type_counts,
)
from fiche_kernel.domain.rules import DEFAULT_RULES, WorkflowRules
from fiche_kernel.domain.workflow import StepProgress, workflow_progress
from fiche_kernel.exceptions import FicheNotFoundError, ForbiddenError
from fiche_kernel.models.fiche import FicheModel
from fiche_kernel.models.journal import JournalEntryModel
from fiche_kernel.models.version import FicheVersionModel
from fiche_kernel.selectors.base import BaseSelector

KPI_ROLES = frozenset({Role.HR_COACH, Role.MANAGEMENT})


@dataclass(frozen=True)
class FicheDetailDTO:
    """Everything the detail page of a fiche shows."""

    fiche: FicheRecord
    allowed_actions: frozenset[FicheAction]
    progress: tuple[StepProgress, ...]
    versions: tuple[FicheVersionRecord, ...]
    journal: tuple[JournalEntryRecord, ...]
    latest_rejection: JournalEntryRecord | None


@dataclass(frozen=True)
class DashboardStatsDTO:
    total: int
    status_counts: dict[FicheStatus, int]
    type_counts: dict[FicheType, int]
    alerts: tuple[Alert, ...]


class FicheSelector(BaseSelector[FicheModel]):
    """
    Selector for fiche queries.

    Contract:
        All public query methods return frozen domain records or DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rules: WorkflowRules = DEFAULT_RULES,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._rules = rules

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_visible(
        self,
        actor: Actor,
        fiche_filter: FicheFilter | None = None,
        now: datetime | None = None,
    ) -> list[FicheRecord]:
        """Fiches the actor may see, newest first, optionally filtered."""
        stmt = (
            select(FicheModel)
            .where(FicheModel.visible_to(visibility_scope(actor)))
            .order_by(FicheModel.created_at.desc(), FicheModel.id)
            .execution_options(populate_existing=True)
        )
        if fiche_filter is not None:
            if fiche_filter.fiche_type is not None:
                stmt = stmt.where(FicheModel.fiche_type == fiche_filter.fiche_type.value)
            if fiche_filter.status is not None:
                stmt = stmt.where(FicheModel.status == fiche_filter.status.value)
            if fiche_filter.author_id is not None:
                stmt = stmt.where(FicheModel.author_id == fiche_filter.author_id)

        records = [model.to_record() for model in self.session.scalars(stmt)]
        if fiche_filter is not None and fiche_filter.period is not None:
            records = fiche_filter.apply(records, now or self._clock.now())
        return records

    def dashboard_stats(
        self,
        actor: Actor,
        fiche_filter: FicheFilter | None = None,
        now: datetime | None = None,
    ) -> DashboardStatsDTO:
        now = now or self._clock.now()
        fiches = self.list_visible(actor, fiche_filter, now)
        return DashboardStatsDTO(
            total=len(fiches),
            status_counts=status_counts(fiches),
            type_counts=type_counts(fiches),
            alerts=list_alerts(fiches, now, self._rules),
        )

    # ------------------------------------------------------------------
    # Single fiche
    # ------------------------------------------------------------------

    def get_fiche(self, fiche_id: UUID, actor: Actor) -> FicheRecord:
        model = self.session.execute(
            select(FicheModel)
            .where(FicheModel.id == fiche_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise FicheNotFoundError(str(fiche_id))
        fiche = model.to_record()
        require(FicheAction.READ, actor, fiche)
        return fiche

    def version_history(self, fiche_id: UUID, actor: Actor) -> tuple[FicheVersionRecord, ...]:
        """Versions of a fiche, newest first."""
        self.get_fiche(fiche_id, actor)
        return self._versions(fiche_id)

    def journal(self, fiche_id: UUID, actor: Actor) -> tuple[JournalEntryRecord, ...]:
        """Journal entries of a fiche, newest first."""
        self.get_fiche(fiche_id, actor)
        return self._journal(fiche_id)

    def progress(self, fiche_id: UUID, actor: Actor) -> tuple[StepProgress, ...]:
        fiche = self.get_fiche(fiche_id, actor)
        return self._progress(fiche)

    def detail(self, fiche_id: UUID, actor: Actor) -> FicheDetailDTO:
        fiche = self.get_fiche(fiche_id, actor)
        journal = self._journal(fiche_id)
        latest_rejection = next(
            (e for e in journal if e.action_type == JournalActionType.REJECTION),
            None,
        )
        return FicheDetailDTO(
            fiche=fiche,
            allowed_actions=allowed_actions(actor, fiche),
            progress=self._progress(fiche),
            versions=self._versions(fiche_id),
            journal=journal,
            latest_rejection=latest_rejection,
        )

    # ------------------------------------------------------------------
    # Annual objectives
    # ------------------------------------------------------------------

    def annual_kpis(self, actor: Actor, year: int) -> AnnualKpis:
        """Yearly KPIs over every fiche; hr_coach and management only."""
        if actor.role not in KPI_ROLES:
            raise ForbiddenError(
                "*", "read_annual_kpis", str(actor.actor_id),
                f"role {actor.role.value} may not read the annual objectives",
            )
        fiches = [
            model.to_record()
            for model in self.session.scalars(
                select(FicheModel).execution_options(populate_existing=True)
            )
        ]
        return annual_kpis(fiches, year, self._rules)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _versions(self, fiche_id: UUID) -> tuple[FicheVersionRecord, ...]:
        rows = self.session.scalars(FicheVersionModel.for_fiche(fiche_id))
        return tuple(row.to_record() for row in rows)

    def _journal(self, fiche_id: UUID) -> tuple[JournalEntryRecord, ...]:
        rows = self.session.scalars(JournalEntryModel.for_fiche(fiche_id))
        return tuple(row.to_record() for row in rows)

    def _progress(self, fiche: FicheRecord) -> tuple[StepProgress, ...]:
        return workflow_progress(
            self._rules.review_path(fiche.fiche_type),
            fiche.status,
            fiche.current_stage,
        )
