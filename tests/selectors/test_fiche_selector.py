"""
FicheSelector tests.

Verifies:
- Listing visibility per role (author, stage reviewer, management)
- Filters by type, status, author and creation period
- Dashboard statistics and alerts over the visible set
- Detail view: allowed actions, progress, history, journal
- Annual KPIs restricted to hr_coach and management
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from fiche_kernel.domain.fiche import (
    FicheAction,
    FicheStatus,
    FicheType,
    JournalActionType,
    RejectionReason,
    Stage,
)
from fiche_kernel.domain.reporting import CreationPeriod, FicheFilter
from fiche_kernel.domain.workflow import StepState
from fiche_kernel.exceptions import FicheNotFoundError, ForbiddenError
from fiche_kernel.selectors.fiche_selector import FicheSelector
from fiche_kernel.services.journal_service import JournalService
from fiche_kernel.services.versioning_service import VersioningService


@pytest.fixture
def selector(session, deterministic_clock):
    return FicheSelector(session, deterministic_clock)


class TestListVisible:

    def test_roles_see_their_slice(
        self, selector, workflow_engine, author, referent, coach, director,
    ):
        draft = workflow_engine.create(FicheType.PROJECT, "d", author)
        at_referent = workflow_engine.submit(
            workflow_engine.create(FicheType.PROJECT, "p", author).id, author,
        )
        at_coach = workflow_engine.submit(
            workflow_engine.create(FicheType.ANNUAL, "a", author).id, author,
        )

        assert {f.id for f in selector.list_visible(author)} == {
            draft.id, at_referent.id, at_coach.id,
        }
        assert [f.id for f in selector.list_visible(referent)] == [at_referent.id]
        assert {f.id for f in selector.list_visible(coach)} == {at_referent.id, at_coach.id}
        assert len(selector.list_visible(director)) == 3

    def test_coach_lists_approved_but_not_draft_or_rejected(
        self, selector, workflow_engine, submitted_fiche, author, coach, referent,
    ):
        workflow_engine.create(FicheType.PROJECT, "draft", author)
        rejected = submitted_fiche(FicheType.PROJECT)
        workflow_engine.reject(rejected.id, referent, RejectionReason.OTHER)
        approved = workflow_engine.approve(submitted_fiche(FicheType.EVALUATION).id, coach)

        assert [f.id for f in selector.list_visible(coach)] == [approved.id]

    def test_reviewer_also_sees_own_fiches(self, selector, workflow_engine, coach):
        own = workflow_engine.create(FicheType.EVALUATION, "self review", coach)
        assert [f.id for f in selector.list_visible(coach)] == [own.id]

    def test_newest_first(self, selector, workflow_engine, author, deterministic_clock):
        first = workflow_engine.create(FicheType.PROJECT, "1", author)
        deterministic_clock.advance(10)
        second = workflow_engine.create(FicheType.PROJECT, "2", author)
        assert [f.id for f in selector.list_visible(author)] == [second.id, first.id]


class TestFilters:

    def test_type_status_author(self, selector, insert_fiche, director):
        me = uuid4()
        wanted = insert_fiche(author_id=me, fiche_type=FicheType.ANNUAL)
        insert_fiche(author_id=me, fiche_type=FicheType.PROJECT)
        insert_fiche(fiche_type=FicheType.ANNUAL)
        insert_fiche(author_id=me, fiche_type=FicheType.ANNUAL, status=FicheStatus.APPROVED)

        result = selector.list_visible(director, FicheFilter(
            fiche_type=FicheType.ANNUAL, status=FicheStatus.DRAFT, author_id=me,
        ))
        assert [f.id for f in result] == [wanted.id]

    def test_period(self, selector, insert_fiche, director, deterministic_clock):
        now = deterministic_clock.now()
        recent = insert_fiche(created_at=now - timedelta(days=2))
        insert_fiche(created_at=now - timedelta(days=20))

        result = selector.list_visible(director, FicheFilter(period=CreationPeriod.WEEK))
        assert [f.id for f in result] == [recent.id]


class TestDashboardStats:

    def test_counts_and_alerts(self, selector, insert_fiche, director, deterministic_clock):
        now = deterministic_clock.now()
        insert_fiche(status=FicheStatus.IN_REVIEW, created_at=now - timedelta(days=10),
                     updated_at=now - timedelta(days=8))
        insert_fiche(fiche_type=FicheType.EVALUATION, status=FicheStatus.APPROVED)
        insert_fiche(created_at=now - timedelta(days=40))

        stats = selector.dashboard_stats(director)

        assert stats.total == 3
        assert stats.status_counts[FicheStatus.IN_REVIEW] == 1
        assert stats.status_counts[FicheStatus.DRAFT] == 1
        assert stats.type_counts[FicheType.EVALUATION] == 1
        assert [a.kind.value for a in stats.alerts] == [
            "stale_in_review", "pending_review", "overdue",
        ]

    def test_stats_only_cover_visible(self, selector, insert_fiche, author):
        insert_fiche()
        assert selector.dashboard_stats(author).total == 0


class TestDetail:

    def test_detail_after_rejection(
        self, selector, workflow_engine, submitted_fiche, author, coach,
    ):
        fiche = submitted_fiche(FicheType.ANNUAL)
        workflow_engine.comment(fiche.id, coach, "see section 2")
        workflow_engine.reject(fiche.id, coach, RejectionReason.POORLY_DEFINED_OBJECTIVES)

        detail = selector.detail(fiche.id, author)

        assert detail.fiche.status == FicheStatus.REJECTED
        assert detail.allowed_actions == {
            FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
        }
        assert {p.state for p in detail.progress} == {StepState.REFUSED}
        assert [v.version for v in detail.versions] == [2, 1]
        assert [e.action_type for e in detail.journal] == [
            JournalActionType.REJECTION, JournalActionType.COMMENT,
        ]
        assert detail.latest_rejection.reason == RejectionReason.POORLY_DEFINED_OBJECTIVES

    def test_journal_and_history_match_services(
        self, selector, workflow_engine, submitted_fiche, coach, director, session,
    ):
        fiche = submitted_fiche(FicheType.ANNUAL)
        # Same clock instant: ties fall back to insertion order, newest first.
        for text in ("one", "two", "three"):
            workflow_engine.comment(fiche.id, coach, text)

        journal = selector.journal(fiche.id, director)
        assert [e.comment for e in journal] == ["three", "two", "one"]
        assert journal == JournalService(session).entries(fiche.id)
        assert selector.version_history(fiche.id, director) == (
            VersioningService(session).history(fiche.id)
        )

    def test_progress_in_review(self, selector, submitted_fiche, author):
        fiche = submitted_fiche(FicheType.PROJECT)
        progress = selector.progress(fiche.id, author)
        assert [(p.stage, p.state) for p in progress] == [
            (Stage.AUTHOR, StepState.COMPLETED),
            (Stage.PROJECT_REFERENT, StepState.CURRENT),
            (Stage.MANAGEMENT, StepState.PENDING),
        ]

    def test_history_and_journal_require_read(
        self, selector, submitted_fiche, other_employee,
    ):
        fiche = submitted_fiche(FicheType.PROJECT)
        with pytest.raises(ForbiddenError):
            selector.version_history(fiche.id, other_employee)
        with pytest.raises(ForbiddenError):
            selector.journal(fiche.id, other_employee)

    def test_unknown_fiche(self, selector, director):
        with pytest.raises(FicheNotFoundError):
            selector.detail(uuid4(), director)

    def test_reviewer_allowed_actions(self, selector, submitted_fiche, referent):
        fiche = submitted_fiche(FicheType.PROJECT)
        detail = selector.detail(fiche.id, referent)
        assert detail.allowed_actions == {
            FicheAction.READ, FicheAction.APPROVE, FicheAction.REJECT,
        }
        assert detail.latest_rejection is None


class TestAnnualKpis:

    def test_restricted_roles(self, selector, author, referent):
        for actor in (author, referent):
            with pytest.raises(ForbiddenError) as exc_info:
                selector.annual_kpis(actor, 2024)
            assert exc_info.value.action == "read_annual_kpis"

    def test_kpis_over_all_fiches(
        self, selector, workflow_engine, submitted_fiche, coach, director,
    ):
        evaluation = submitted_fiche(FicheType.EVALUATION)
        workflow_engine.approve(evaluation.id, coach)
        submitted_fiche(FicheType.PROJECT)

        kpis = selector.annual_kpis(coach, 2024)
        assert kpis.total_fiches == 2
        assert kpis.completion_rate == pytest.approx(50.0)
        assert kpis.evaluation_rate == pytest.approx(25.0)
        assert kpis.missing_evaluations == 3
        assert selector.annual_kpis(director, 2023).total_fiches == 0
