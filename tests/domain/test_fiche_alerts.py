"""
Alert rule tests.

Verifies:
- Stale-in-review, pending-review and overdue rules
- Rules are independent; zero-count alerts are omitted
- Output order and idempotence
- Thresholds come from WorkflowRules and count whole days
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from fiche_kernel.domain.alerts import AlertKind, AlertSeverity, days_between, list_alerts
from fiche_kernel.domain.fiche import FicheRecord, FicheStatus, FicheType, Stage
from fiche_kernel.domain.rules import WorkflowRules

NOW = datetime(2024, 6, 15, 9, 0, tzinfo=timezone.utc)


def _fiche(status, created_days_ago=0, updated_days_ago=None):
    updated_days_ago = created_days_ago if updated_days_ago is None else updated_days_ago
    return FicheRecord(
        id=uuid4(),
        fiche_type=FicheType.ANNUAL,
        status=status,
        current_stage=Stage.HR_COACH if status == FicheStatus.IN_REVIEW else None,
        content="c",
        author_id=uuid4(),
        version=2,
        revision=3,
        journal_count=0,
        created_at=NOW - timedelta(days=created_days_ago),
        updated_at=NOW - timedelta(days=updated_days_ago),
    )


class TestAlertRules:

    def test_stale_in_review_after_eight_days(self):
        fiche = _fiche(FicheStatus.IN_REVIEW, created_days_ago=10, updated_days_ago=8)
        alerts = list_alerts([fiche], NOW)

        stale = alerts[0]
        assert stale.kind == AlertKind.STALE_IN_REVIEW
        assert stale.severity == AlertSeverity.HIGH
        assert stale.message == "in review more than 7 days"
        assert stale.count >= 1

    def test_pending_review_counts_any_age(self):
        alerts = list_alerts([_fiche(FicheStatus.IN_REVIEW), _fiche(FicheStatus.IN_REVIEW)], NOW)
        assert len(alerts) == 1
        assert alerts[0].kind == AlertKind.PENDING_REVIEW
        assert alerts[0].severity == AlertSeverity.MEDIUM
        assert alerts[0].count == 2

    def test_overdue_excludes_approved(self):
        fiches = [
            _fiche(FicheStatus.DRAFT, created_days_ago=31),
            _fiche(FicheStatus.REJECTED, created_days_ago=45),
            _fiche(FicheStatus.APPROVED, created_days_ago=90),
        ]
        alerts = list_alerts(fiches, NOW)
        assert len(alerts) == 1
        assert alerts[0].kind == AlertKind.OVERDUE
        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].count == 2

    def test_one_fiche_feeds_all_three_rules(self):
        fiche = _fiche(FicheStatus.IN_REVIEW, created_days_ago=40, updated_days_ago=20)
        alerts = list_alerts([fiche], NOW)
        assert [a.kind for a in alerts] == [
            AlertKind.STALE_IN_REVIEW, AlertKind.PENDING_REVIEW, AlertKind.OVERDUE,
        ]
        assert all(a.count == 1 for a in alerts)

    def test_no_alerts_for_empty_set(self):
        assert list_alerts([], NOW) == ()

    def test_fresh_drafts_raise_nothing(self):
        assert list_alerts([_fiche(FicheStatus.DRAFT, created_days_ago=3)], NOW) == ()


class TestThresholds:

    def test_exactly_seven_days_is_not_stale(self):
        fiche = _fiche(FicheStatus.IN_REVIEW, created_days_ago=7, updated_days_ago=7)
        kinds = [a.kind for a in list_alerts([fiche], NOW)]
        assert AlertKind.STALE_IN_REVIEW not in kinds

    def test_partial_days_are_truncated(self):
        fiche = _fiche(FicheStatus.IN_REVIEW, created_days_ago=7.9, updated_days_ago=7.9)
        kinds = [a.kind for a in list_alerts([fiche], NOW)]
        assert AlertKind.STALE_IN_REVIEW not in kinds

    def test_custom_rules(self):
        rules = WorkflowRules(stale_review_days=2, overdue_days=5)
        fiche = _fiche(FicheStatus.IN_REVIEW, created_days_ago=6, updated_days_ago=3)
        alerts = list_alerts([fiche], NOW, rules)
        assert [a.kind for a in alerts] == [
            AlertKind.STALE_IN_REVIEW, AlertKind.PENDING_REVIEW, AlertKind.OVERDUE,
        ]
        assert alerts[0].message == "in review more than 2 days"

    def test_days_between(self):
        assert days_between(NOW - timedelta(days=3, hours=23), NOW) == 3


_statuses = st.sampled_from(list(FicheStatus))
_ages = st.integers(min_value=0, max_value=120)


class TestAlertProperties:

    @settings(max_examples=100, deadline=None)
    @given(st.lists(st.tuples(_statuses, _ages, _ages), max_size=15))
    def test_idempotent_ordered_and_non_zero(self, specs):
        fiches = [
            _fiche(status, created_days_ago=max(a, b), updated_days_ago=min(a, b))
            for status, a, b in specs
        ]
        first = list_alerts(fiches, NOW)
        second = list_alerts(fiches, NOW)

        assert first == second
        assert all(alert.count > 0 for alert in first)
        order = [AlertKind.STALE_IN_REVIEW, AlertKind.PENDING_REVIEW, AlertKind.OVERDUE]
        assert [a.kind for a in first] == [k for k in order if k in {a.kind for a in first}]

    @settings(max_examples=100, deadline=None)
    @given(st.lists(st.tuples(_statuses, _ages), max_size=15))
    def test_stale_never_exceeds_pending(self, specs):
        fiches = [_fiche(status, created_days_ago=age) for status, age in specs]
        counts = {a.kind: a.count for a in list_alerts(fiches, NOW)}
        assert counts.get(AlertKind.STALE_IN_REVIEW, 0) <= counts.get(AlertKind.PENDING_REVIEW, 0)
