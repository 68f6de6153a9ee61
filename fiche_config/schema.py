"""
WorkflowConfiguration schema.

The human-authored, reviewable form of the workflow configuration.  YAML
is parsed into these types by the loader, checked by the validator and
translated into the kernel's ``WorkflowRules`` by ``bridges``.  Values stay
as the strings found in the YAML until validation has run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AlertThresholds:
    stale_review_days: Any = 7
    overdue_days: Any = 30


@dataclass(frozen=True)
class ReportingSettings:
    on_time_days: Any = 30
    expected_evaluations_per_year: Any = 4


@dataclass(frozen=True)
class WorkflowConfiguration:
    """Root configuration artifact.

    ``review_paths`` is a tuple of ``(fiche_type, stages)`` pairs in file
    order; ``checksum`` is the SHA-256 of the canonical source data.
    """

    config_id: str
    version: int
    review_paths: tuple[tuple[str, tuple[str, ...]], ...]
    rejection_reasons: tuple[str, ...]
    alerts: AlertThresholds = AlertThresholds()
    reporting: ReportingSettings = ReportingSettings()
    checksum: str = ""

    def stages_for(self, fiche_type: str) -> tuple[str, ...] | None:
        for name, stages in self.review_paths:
            if name == fiche_type:
                return stages
        return None
