"""
Access policy tests.

Verifies:
- allowed_actions per (role, status, stage) for authors and reviewers
- Approved fiches admit read and comment only
- require() raises InvalidTransitionError before ForbiddenError
- Visibility scope per role
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from fiche_kernel.domain.access_policy import (
    allowed_actions,
    is_visible,
    require,
    visibility_scope,
)
from fiche_kernel.domain.fiche import (
    Actor,
    FicheAction,
    FicheRecord,
    FicheStatus,
    FicheType,
    Role,
    Stage,
)
from fiche_kernel.exceptions import ForbiddenError, InvalidTransitionError

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _fiche(author_id, status=FicheStatus.DRAFT, stage=None, fiche_type=FicheType.PROJECT):
    return FicheRecord(
        id=uuid4(),
        fiche_type=fiche_type,
        status=status,
        current_stage=stage,
        content="c",
        author_id=author_id,
        version=1,
        revision=1,
        journal_count=0,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def employee():
    return Actor(uuid4(), Role.EMPLOYEE)


class TestAuthorActions:

    def test_author_on_draft(self, employee):
        fiche = _fiche(employee.actor_id)
        assert allowed_actions(employee, fiche) == {
            FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
        }

    def test_author_on_rejected(self, employee):
        fiche = _fiche(employee.actor_id, FicheStatus.REJECTED)
        assert allowed_actions(employee, fiche) == {
            FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
        }

    def test_author_on_in_review_can_only_read(self, employee):
        fiche = _fiche(employee.actor_id, FicheStatus.IN_REVIEW, Stage.PROJECT_REFERENT)
        assert allowed_actions(employee, fiche) == {FicheAction.READ}

    def test_other_employee_gets_nothing(self, employee):
        fiche = _fiche(uuid4())
        assert allowed_actions(employee, fiche) == frozenset()


class TestReviewerActions:

    @pytest.mark.parametrize("stage,role", [
        (Stage.PROJECT_REFERENT, Role.PROJECT_REFERENT),
        (Stage.HR_COACH, Role.HR_COACH),
        (Stage.MANAGEMENT, Role.MANAGEMENT),
    ])
    def test_stage_owner_may_approve_and_reject(self, stage, role):
        reviewer = Actor(uuid4(), role)
        fiche = _fiche(uuid4(), FicheStatus.IN_REVIEW, stage)
        actions = allowed_actions(reviewer, fiche)
        assert FicheAction.APPROVE in actions
        assert FicheAction.REJECT in actions
        assert FicheAction.READ in actions

    def test_referent_cannot_act_on_management_stage(self):
        referent = Actor(uuid4(), Role.PROJECT_REFERENT)
        fiche = _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.MANAGEMENT)
        assert allowed_actions(referent, fiche) == frozenset()

    def test_coach_may_read_and_comment_on_any_in_review(self):
        coach = Actor(uuid4(), Role.HR_COACH)
        fiche = _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.PROJECT_REFERENT)
        assert allowed_actions(coach, fiche) == {FicheAction.READ, FicheAction.COMMENT}

    def test_referent_may_not_comment(self):
        referent = Actor(uuid4(), Role.PROJECT_REFERENT)
        fiche = _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.PROJECT_REFERENT)
        assert FicheAction.COMMENT not in allowed_actions(referent, fiche)


class TestApprovedLock:

    @pytest.mark.parametrize("role", list(Role))
    def test_approved_admits_read_and_comment_only(self, role):
        actor = Actor(uuid4(), role)
        fiche = _fiche(actor.actor_id, FicheStatus.APPROVED)
        assert allowed_actions(actor, fiche) <= {FicheAction.READ, FicheAction.COMMENT}

    def test_management_on_approved(self):
        director = Actor(uuid4(), Role.MANAGEMENT)
        fiche = _fiche(uuid4(), FicheStatus.APPROVED)
        assert allowed_actions(director, fiche) == {FicheAction.READ, FicheAction.COMMENT}


class TestRequire:

    def test_invalid_transition_checked_before_forbidden(self, employee):
        # An outsider approving a draft: the state is the first objection.
        fiche = _fiche(uuid4())
        with pytest.raises(InvalidTransitionError) as exc_info:
            require(FicheAction.APPROVE, employee, fiche)
        assert exc_info.value.status == "draft"
        assert exc_info.value.action == "approve"

    def test_forbidden_when_state_admits_action(self, employee):
        fiche = _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.HR_COACH)
        with pytest.raises(ForbiddenError) as exc_info:
            require(FicheAction.APPROVE, employee, fiche)
        assert exc_info.value.action == "approve"
        assert exc_info.value.actor_id == str(employee.actor_id)
        assert "hr_coach" in exc_info.value.reason

    def test_submit_by_non_author_forbidden(self):
        director = Actor(uuid4(), Role.MANAGEMENT)
        fiche = _fiche(uuid4())
        with pytest.raises(ForbiddenError):
            require(FicheAction.SUBMIT, director, fiche)

    def test_edit_on_approved_is_invalid_transition(self, employee):
        fiche = _fiche(employee.actor_id, FicheStatus.APPROVED)
        with pytest.raises(InvalidTransitionError):
            require(FicheAction.EDIT, employee, fiche)

    def test_allowed_action_passes(self, employee):
        require(FicheAction.SUBMIT, employee, _fiche(employee.actor_id))


class TestVisibility:

    def test_employee_sees_own_only(self, employee):
        assert is_visible(employee, _fiche(employee.actor_id))
        assert not is_visible(employee, _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.HR_COACH))

    def test_reviewer_sees_fiches_at_their_stage(self):
        referent = Actor(uuid4(), Role.PROJECT_REFERENT)
        assert is_visible(referent, _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.PROJECT_REFERENT))
        assert not is_visible(referent, _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.MANAGEMENT))
        assert not is_visible(referent, _fiche(uuid4(), FicheStatus.APPROVED))

    def test_coach_sees_what_it_may_comment_on(self):
        coach = Actor(uuid4(), Role.HR_COACH)
        assert is_visible(coach, _fiche(uuid4(), FicheStatus.IN_REVIEW, Stage.MANAGEMENT))
        assert is_visible(coach, _fiche(uuid4(), FicheStatus.APPROVED))
        assert not is_visible(coach, _fiche(uuid4(), FicheStatus.DRAFT))
        assert not is_visible(coach, _fiche(uuid4(), FicheStatus.REJECTED))

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("status,stage", [
        (FicheStatus.DRAFT, None),
        (FicheStatus.IN_REVIEW, Stage.PROJECT_REFERENT),
        (FicheStatus.IN_REVIEW, Stage.HR_COACH),
        (FicheStatus.IN_REVIEW, Stage.MANAGEMENT),
        (FicheStatus.APPROVED, None),
        (FicheStatus.REJECTED, None),
    ])
    def test_any_allowed_action_implies_visible(self, role, status, stage):
        actor = Actor(uuid4(), role)
        fiche = _fiche(uuid4(), status, stage)
        if allowed_actions(actor, fiche):
            assert is_visible(actor, fiche)
            assert FicheAction.READ in allowed_actions(actor, fiche)

    def test_management_sees_everything(self):
        director = Actor(uuid4(), Role.MANAGEMENT)
        scope = visibility_scope(director)
        assert scope.everything
        assert is_visible(director, _fiche(uuid4()))

    def test_employee_scope_has_no_stage(self, employee):
        scope = visibility_scope(employee)
        assert scope.stage is None
        assert scope.author_id == employee.actor_id
        assert not scope.everything
