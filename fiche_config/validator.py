"""
Configuration validator (``fiche_config.validator``).

Responsibility
--------------
Checks a ``WorkflowConfiguration`` before the kernel may use it.

Invariants enforced
-------------------
* Every fiche type has a review path; no unknown types.
* Each path is non-empty, lists only reviewer stages (never ``author``)
  and repeats none.
* Rejection reasons are non-empty, drawn from ``RejectionReason`` and
  unique.
* Thresholds are positive integers.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the configuration MUST NOT
  be used; ``get_active_config`` raises ``ConfigurationError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fiche_kernel.domain.fiche import FicheType, RejectionReason, Stage
from fiche_kernel.exceptions import FicheKernelError

_REVIEWER_STAGES = frozenset(stage.value for stage in Stage if stage != Stage.AUTHOR)


class ConfigurationError(FicheKernelError):
    """The workflow configuration is malformed or inconsistent."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)


def validate_configuration(config) -> ConfigValidationResult:
    """Validate a parsed ``WorkflowConfiguration``."""
    result = ConfigValidationResult()

    _validate_review_paths(config, result)
    _validate_rejection_reasons(config, result)
    _validate_thresholds(config, result)

    return result


def _validate_review_paths(config, result: ConfigValidationResult) -> None:
    known_types = {fiche_type.value for fiche_type in FicheType}
    declared = [name for name, _ in config.review_paths]

    for name in declared:
        if name not in known_types:
            result.add_error(f"Unknown fiche type in review_paths: {name!r}")
    for name in sorted(known_types - set(declared)):
        result.add_error(f"Missing review path for fiche type {name!r}")

    for name, stages in config.review_paths:
        if not stages:
            result.add_error(f"Review path for {name!r} is empty")
            continue
        for stage in stages:
            if stage not in _REVIEWER_STAGES:
                result.add_error(f"Review path for {name!r} has invalid stage {stage!r}")
        if len(set(stages)) != len(stages):
            result.add_error(f"Review path for {name!r} repeats a stage")


def _validate_rejection_reasons(config, result: ConfigValidationResult) -> None:
    known = {reason.value for reason in RejectionReason}
    if not config.rejection_reasons:
        result.add_error("At least one rejection reason is required")
    for reason in config.rejection_reasons:
        if reason not in known:
            result.add_error(f"Unknown rejection reason: {reason!r}")
    if len(set(config.rejection_reasons)) != len(config.rejection_reasons):
        result.add_error("Duplicate rejection reason")


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _validate_thresholds(config, result: ConfigValidationResult) -> None:
    thresholds = {
        "alerts.stale_review_days": config.alerts.stale_review_days,
        "alerts.overdue_days": config.alerts.overdue_days,
        "reporting.on_time_days": config.reporting.on_time_days,
        "reporting.expected_evaluations_per_year":
            config.reporting.expected_evaluations_per_year,
    }
    for key, value in thresholds.items():
        if not _positive_int(value):
            result.add_error(f"{key} must be a positive integer, got {value!r}")
