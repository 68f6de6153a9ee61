"""
Workflow rules (``fiche_kernel.domain.rules``).

Responsibility
--------------
The kernel-side, already-validated form of the workflow configuration:
review paths per fiche type, the accepted rejection reasons, and the
alert / reporting thresholds.  ``fiche_config.bridges`` builds a
``WorkflowRules`` from YAML; ``DEFAULT_RULES`` is the built-in set used
when the caller injects nothing.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The kernel
never imports ``fiche_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fiche_kernel.domain.fiche import FicheType, RejectionReason, Stage


@dataclass(frozen=True)
class ReviewPath:
    """Ordered reviewer stages a fiche type passes through after its author."""

    fiche_type: FicheType
    stages: tuple[Stage, ...]

    @property
    def first_stage(self) -> Stage:
        return self.stages[0]

    @property
    def last_stage(self) -> Stage:
        return self.stages[-1]

    def next_stage(self, stage: Stage) -> Stage | None:
        """Stage following ``stage``, or None when ``stage`` is the last one."""
        index = self.stages.index(stage)
        if index + 1 < len(self.stages):
            return self.stages[index + 1]
        return None


DEFAULT_REVIEW_PATHS: dict[FicheType, ReviewPath] = {
    FicheType.PROJECT: ReviewPath(
        FicheType.PROJECT, (Stage.PROJECT_REFERENT, Stage.MANAGEMENT),
    ),
    FicheType.ANNUAL: ReviewPath(
        FicheType.ANNUAL, (Stage.HR_COACH, Stage.MANAGEMENT),
    ),
    FicheType.EVALUATION: ReviewPath(
        FicheType.EVALUATION, (Stage.HR_COACH,),
    ),
}


@dataclass(frozen=True)
class WorkflowRules:
    """Validated workflow configuration consumed by the kernel.

    Contract: frozen; ``review_paths`` has an entry for every FicheType.
    """

    review_paths: dict[FicheType, ReviewPath] = field(
        default_factory=lambda: dict(DEFAULT_REVIEW_PATHS)
    )
    rejection_reasons: frozenset[RejectionReason] = frozenset(RejectionReason)
    stale_review_days: int = 7
    overdue_days: int = 30
    on_time_days: int = 30
    expected_evaluations_per_year: int = 4

    def review_path(self, fiche_type: FicheType) -> ReviewPath:
        return self.review_paths[fiche_type]


DEFAULT_RULES = WorkflowRules()
