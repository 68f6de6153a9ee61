"""
Access policy (``fiche_kernel.domain.access_policy``).

Responsibility
--------------
Pure lookup from (actor, fiche state) to the actions the actor may
perform, and the visibility scope a role gets when listing fiches.
The workflow engine uses ``require`` as its precondition gate; the
selectors translate ``visibility_scope`` into SQL so that "can see" and
"can act" come from the same table.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over value objects.  ZERO I/O.

Invariants enforced
-------------------
* An approved fiche admits only read and comment.
* Approve / reject are granted only to the role owning ``current_stage``.
* Submit / edit are granted only to the author.
* A commenter role sees every fiche it may comment on.
* ``require`` distinguishes a state that admits the action for nobody
  (``InvalidTransitionError``) from an actor lacking the grant
  (``ForbiddenError``).
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fiche_kernel.domain.fiche import (
    STAGE_ROLES,
    Actor,
    FicheAction,
    FicheRecord,
    FicheStatus,
    Role,
    Stage,
)
from fiche_kernel.exceptions import ForbiddenError, InvalidTransitionError

# Actions each status admits, for any actor.
STATUS_ACTIONS: dict[FicheStatus, frozenset[FicheAction]] = {
    FicheStatus.DRAFT: frozenset({
        FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
    }),
    FicheStatus.IN_REVIEW: frozenset({
        FicheAction.READ, FicheAction.APPROVE, FicheAction.REJECT,
        FicheAction.COMMENT,
    }),
    FicheStatus.APPROVED: frozenset({
        FicheAction.READ, FicheAction.COMMENT,
    }),
    FicheStatus.REJECTED: frozenset({
        FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
    }),
}

AUTHOR_ACTIONS: frozenset[FicheAction] = frozenset({
    FicheAction.READ, FicheAction.EDIT, FicheAction.SUBMIT,
})

REVIEWER_ACTIONS: frozenset[FicheAction] = frozenset({
    FicheAction.APPROVE, FicheAction.REJECT,
})

COMMENTER_ROLES: frozenset[Role] = frozenset({Role.HR_COACH, Role.MANAGEMENT})

# Statuses on which commenter roles may comment, hence see.
COMMENT_STATUSES: frozenset[FicheStatus] = frozenset(
    status for status, actions in STATUS_ACTIONS.items()
    if FicheAction.COMMENT in actions
)

# Stage whose fiches a reviewer role may list.
ROLE_STAGES: dict[Role, Stage] = {role: stage for stage, role in STAGE_ROLES.items()}


@dataclass(frozen=True)
class VisibilityScope:
    """Which fiches an actor may list.

    A fiche is visible when ``everything`` is set, when it was authored by
    ``author_id``, when it is in review at ``stage``, or when its status is
    one of ``statuses``.
    """

    author_id: UUID
    stage: Stage | None = None
    statuses: frozenset[FicheStatus] = frozenset()
    everything: bool = False


def visibility_scope(actor: Actor) -> VisibilityScope:
    """Authors see their own; reviewers add their stage; commenters add the
    statuses they may comment on; management sees all."""
    if actor.role == Role.MANAGEMENT:
        return VisibilityScope(author_id=actor.actor_id, everything=True)
    return VisibilityScope(
        author_id=actor.actor_id,
        stage=ROLE_STAGES.get(actor.role),
        statuses=COMMENT_STATUSES if actor.role in COMMENTER_ROLES else frozenset(),
    )


def is_visible(actor: Actor, fiche: FicheRecord) -> bool:
    scope = visibility_scope(actor)
    if scope.everything or fiche.author_id == scope.author_id:
        return True
    if fiche.status in scope.statuses:
        return True
    return (
        scope.stage is not None
        and fiche.status == FicheStatus.IN_REVIEW
        and fiche.current_stage == scope.stage
    )


def granted_actions(actor: Actor, fiche: FicheRecord) -> frozenset[FicheAction]:
    """Actions the actor holds a grant for, ignoring what the state admits."""
    granted: set[FicheAction] = set()
    if is_visible(actor, fiche):
        granted.add(FicheAction.READ)
    if actor.actor_id == fiche.author_id:
        granted |= AUTHOR_ACTIONS
    if (
        fiche.current_stage is not None
        and STAGE_ROLES.get(fiche.current_stage) == actor.role
    ):
        granted |= REVIEWER_ACTIONS
    if actor.role in COMMENTER_ROLES:
        granted.add(FicheAction.COMMENT)
    return frozenset(granted)


def allowed_actions(actor: Actor, fiche: FicheRecord) -> frozenset[FicheAction]:
    """Actions the actor may perform on the fiche in its current state."""
    return STATUS_ACTIONS[fiche.status] & granted_actions(actor, fiche)


def require(action: FicheAction, actor: Actor, fiche: FicheRecord) -> None:
    """Raise unless ``actor`` may perform ``action`` on ``fiche`` now.

    Raises:
        InvalidTransitionError: the fiche's status does not admit ``action``.
        ForbiddenError: the status admits it but the actor holds no grant.
    """
    if action not in STATUS_ACTIONS[fiche.status]:
        raise InvalidTransitionError(
            str(fiche.id), action.value, fiche.status.value,
        )
    if action not in granted_actions(actor, fiche):
        raise ForbiddenError(
            str(fiche.id), action.value, str(actor.actor_id),
            _denial_reason(action, actor, fiche),
        )


def _denial_reason(action: FicheAction, actor: Actor, fiche: FicheRecord) -> str:
    if action == FicheAction.READ:
        return "not visible to this actor"
    if action in AUTHOR_ACTIONS:
        return "only the author may do this"
    if action in REVIEWER_ACTIONS:
        stage = fiche.current_stage.value if fiche.current_stage else "none"
        return f"role {actor.role.value} does not own stage {stage}"
    return f"role {actor.role.value} may not comment"
