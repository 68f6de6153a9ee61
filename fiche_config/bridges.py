"""
Bridges from configuration to kernel inputs (``fiche_config.bridges``).

The kernel never imports ``fiche_config``; this module translates a
validated ``WorkflowConfiguration`` into the kernel's ``WorkflowRules``.
"""

from __future__ import annotations

from fiche_config.schema import WorkflowConfiguration
from fiche_kernel.domain.fiche import FicheType, RejectionReason, Stage
from fiche_kernel.domain.rules import ReviewPath, WorkflowRules


def build_workflow_rules(config: WorkflowConfiguration) -> WorkflowRules:
    """
    Build ``WorkflowRules`` from a validated configuration.

    Preconditions:
        - ``config`` has passed ``validate_configuration``.
    """
    review_paths = {
        FicheType(name): ReviewPath(
            FicheType(name), tuple(Stage(stage) for stage in stages),
        )
        for name, stages in config.review_paths
    }
    return WorkflowRules(
        review_paths=review_paths,
        rejection_reasons=frozenset(
            RejectionReason(reason) for reason in config.rejection_reasons
        ),
        stale_review_days=config.alerts.stale_review_days,
        overdue_days=config.alerts.overdue_days,
        on_time_days=config.reporting.on_time_days,
        expected_evaluations_per_year=config.reporting.expected_evaluations_per_year,
    )
