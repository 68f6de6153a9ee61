"""ORM model tests: check constraints, type decorators and record conversion."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, StatementError

from fiche_kernel.domain.fiche import FicheStatus, FicheType, Stage
from fiche_kernel.models.fiche import FicheModel

NOW = datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc)


def _model(**overrides) -> FicheModel:
    values = dict(
        id=uuid4(),
        fiche_type=FicheType.PROJECT.value,
        status=FicheStatus.DRAFT.value,
        current_stage=None,
        content="c",
        author_id=uuid4(),
        version=1,
        revision=1,
        journal_count=0,
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return FicheModel(**values)


class TestFicheConstraints:

    def test_valid_row(self, session):
        model = _model()
        session.add(model)
        session.flush()
        assert model.to_record().status == FicheStatus.DRAFT

    @pytest.mark.parametrize("overrides", [
        {"status": "archived"},
        {"fiche_type": "holiday"},
        {"status": "in_review", "current_stage": None},
        {"status": "draft", "current_stage": "hr_coach"},
        {"version": -1},
    ])
    def test_constraint_violations(self, session, overrides):
        session.add(_model(**overrides))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_naive_datetime_refused(self, session):
        session.add(_model(created_at=datetime(2024, 1, 1)))
        with pytest.raises(StatementError):
            session.flush()
        session.rollback()


class TestRecordConversion:

    def test_round_trip_keeps_utc_and_enums(self, session):
        model = _model(status="in_review", current_stage=Stage.HR_COACH.value)
        session.add(model)
        session.commit()

        loaded = session.get(FicheModel, model.id, populate_existing=True)
        record = loaded.to_record()
        assert record.current_stage == Stage.HR_COACH
        assert record.status == FicheStatus.IN_REVIEW
        assert record.created_at == NOW
        assert record.created_at.utcoffset().total_seconds() == 0
        assert record.id == model.id
