"""JournalService tests: append, ordering and rejection lookup."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from fiche_kernel.domain.fiche import JournalActionType, RejectionReason
from fiche_kernel.services.journal_service import JournalService

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def journal(session):
    return JournalService(session)


class TestJournalService:

    def test_record_and_list(self, journal, insert_fiche, session):
        fiche = insert_fiche()
        actor_id = uuid4()
        journal.record(fiche.id, 1, actor_id, JournalActionType.COMMENT, T0, comment="hi")
        session.commit()

        (entry,) = journal.entries(fiche.id)
        assert entry.actor_id == actor_id
        assert entry.comment == "hi"
        assert entry.created_at == T0

    def test_rejection_requires_reason(self, journal, insert_fiche):
        fiche = insert_fiche()
        with pytest.raises(ValueError):
            journal.record(fiche.id, 1, uuid4(), JournalActionType.REJECTION, T0)

    def test_duplicate_seq_refused(self, journal, insert_fiche):
        fiche = insert_fiche()
        journal.record(fiche.id, 1, uuid4(), JournalActionType.APPROVAL, T0)
        with pytest.raises(IntegrityError):
            journal.record(fiche.id, 1, uuid4(), JournalActionType.APPROVAL, T0)

    def test_order_time_then_seq(self, journal, insert_fiche):
        fiche = insert_fiche()
        later = T0 + timedelta(hours=1)
        journal.record(fiche.id, 1, uuid4(), JournalActionType.COMMENT, later, comment="a")
        journal.record(fiche.id, 2, uuid4(), JournalActionType.COMMENT, T0, comment="b")
        journal.record(fiche.id, 3, uuid4(), JournalActionType.COMMENT, T0, comment="c")

        assert [e.comment for e in journal.entries(fiche.id)] == ["a", "c", "b"]

    def test_latest_rejection(self, journal, insert_fiche):
        fiche = insert_fiche()
        assert journal.latest_rejection(fiche.id) is None

        journal.record(
            fiche.id, 1, uuid4(), JournalActionType.REJECTION, T0,
            reason=RejectionReason.OTHER, comment="Motif : Other",
        )
        journal.record(
            fiche.id, 2, uuid4(), JournalActionType.REJECTION, T0,
            reason=RejectionReason.INCORRECT_FORMAT, comment="Motif : Incorrect format",
        )
        journal.record(fiche.id, 3, uuid4(), JournalActionType.COMMENT, T0, comment="x")

        latest = journal.latest_rejection(fiche.id)
        assert latest.seq == 2
        assert latest.reason == RejectionReason.INCORRECT_FORMAT

    def test_entries_scoped_to_fiche(self, journal, insert_fiche):
        first = insert_fiche()
        second = insert_fiche()
        journal.record(first.id, 1, uuid4(), JournalActionType.APPROVAL, T0)
        assert journal.entries(second.id) == ()
