"""
Fiche workflow state machines (``fiche_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects and functions for the fiche lifecycle.  A ``Workflow``
is derived from a type's ``ReviewPath``: ``draft``, one
``in_review:<stage>`` state per reviewer stage, ``approved`` (terminal)
and ``rejected`` (terminal but resumable through ``submit``).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``submit`` always lands on the first stage of the review path, from
  ``draft`` and from ``rejected`` alike.
* ``approve`` on the last stage yields ``approved`` and clears the stage.
* ``approved`` has no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fiche_kernel.domain.fiche import (
    FicheAction,
    FicheStatus,
    FicheType,
    JournalActionType,
    Stage,
)
from fiche_kernel.domain.rules import ReviewPath

_REVIEW_PREFIX = f"{FicheStatus.IN_REVIEW.value}:"


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a fiche workflow.

    Contract: frozen.  ``snapshots_version=True`` marks the submission
    transitions that bump the content version and write a Version row;
    ``journal_action`` names the journal entry the transition appends.
    """

    from_state: str
    to_state: str
    action: FicheAction
    snapshots_version: bool = False
    journal_action: JournalActionType | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one fiche type.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    fiche_type: FicheType
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def transition_for(self, state: str, action: FicheAction) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == state and transition.action == action:
                return transition
        return None


def state_key(status: FicheStatus, stage: Stage | None = None) -> str:
    """Encode (status, stage) as a workflow state name."""
    if status == FicheStatus.IN_REVIEW:
        if stage is None:
            raise ValueError("in_review state requires a stage")
        return f"{_REVIEW_PREFIX}{stage.value}"
    return status.value


def parse_state(key: str) -> tuple[FicheStatus, Stage | None]:
    """Decode a workflow state name into (status, stage)."""
    if key.startswith(_REVIEW_PREFIX):
        return FicheStatus.IN_REVIEW, Stage(key[len(_REVIEW_PREFIX):])
    return FicheStatus(key), None


def build_workflow(path: ReviewPath) -> Workflow:
    """Derive the state machine of a fiche type from its review path."""
    draft = state_key(FicheStatus.DRAFT)
    approved = state_key(FicheStatus.APPROVED)
    rejected = state_key(FicheStatus.REJECTED)
    review_states = tuple(
        state_key(FicheStatus.IN_REVIEW, stage) for stage in path.stages
    )

    transitions: list[Transition] = [
        Transition(draft, review_states[0], FicheAction.SUBMIT, snapshots_version=True),
        Transition(rejected, review_states[0], FicheAction.SUBMIT, snapshots_version=True),
    ]
    for index, review_state in enumerate(review_states):
        advance_to = (
            review_states[index + 1] if index + 1 < len(review_states) else approved
        )
        transitions.append(Transition(
            review_state, advance_to, FicheAction.APPROVE,
            journal_action=JournalActionType.APPROVAL,
        ))
        transitions.append(Transition(
            review_state, rejected, FicheAction.REJECT,
            journal_action=JournalActionType.REJECTION,
        ))

    return Workflow(
        name=f"{path.fiche_type.value}_review",
        fiche_type=path.fiche_type,
        initial_state=draft,
        states=(draft, *review_states, approved, rejected),
        transitions=tuple(transitions),
    )


# =========================================================================
# Workflow progress (display support)
# =========================================================================


class StepState(str, Enum):
    """Display state of one step of a fiche's review path."""

    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"
    REFUSED = "refused"
    LOCKED = "locked"


@dataclass(frozen=True)
class StepProgress:
    stage: Stage
    state: StepState


def workflow_progress(
    path: ReviewPath,
    status: FicheStatus,
    current_stage: Stage | None,
) -> tuple[StepProgress, ...]:
    """Progress of every step, the author step included.

    A rejected fiche shows every step refused and an approved one every
    step locked.  Otherwise steps before the current stage are completed;
    a draft is at its author step.
    """
    steps = (Stage.AUTHOR, *path.stages)
    if status == FicheStatus.REJECTED:
        return tuple(StepProgress(stage, StepState.REFUSED) for stage in steps)
    if status == FicheStatus.APPROVED:
        return tuple(StepProgress(stage, StepState.LOCKED) for stage in steps)

    current = current_stage if status == FicheStatus.IN_REVIEW else Stage.AUTHOR
    current_index = steps.index(current)
    progress = []
    for index, stage in enumerate(steps):
        if index < current_index:
            state = StepState.COMPLETED
        elif index == current_index:
            state = StepState.CURRENT
        else:
            state = StepState.PENDING
        progress.append(StepProgress(stage, state))
    return tuple(progress)
