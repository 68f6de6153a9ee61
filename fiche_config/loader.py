"""
Configuration loader (``fiche_config.loader``).

Responsibility
--------------
Reads the workflow YAML file and converts the raw mapping into the
frozen ``fiche_config.schema`` dataclasses.

Invariants enforced
-------------------
* Only ``yaml.safe_load`` is used.
* The checksum is computed over the raw mapping, so identical files always
  produce identical checksums.

Failure modes
-------------
* Missing file      -> ``FileNotFoundError`` propagates.
* Malformed YAML    -> ``yaml.YAMLError`` propagates.
* Wrong top-level shape -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from fiche_config.schema import AlertThresholds, ReportingSettings, WorkflowConfiguration
from fiche_config.validator import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError([f"'{key}' must be a mapping"])
    return value


def parse_configuration(data: dict[str, Any]) -> WorkflowConfiguration:
    """Convert a raw YAML mapping into a ``WorkflowConfiguration``."""
    if not isinstance(data, dict):
        raise ConfigurationError(["configuration root must be a mapping"])

    review_paths = tuple(
        (str(fiche_type), tuple(str(stage) for stage in (stages or ())))
        for fiche_type, stages in _mapping(data, "review_paths").items()
    )
    reasons = data.get("rejection_reasons") or ()
    if not isinstance(reasons, (list, tuple)):
        raise ConfigurationError(["'rejection_reasons' must be a list"])

    alerts = _mapping(data, "alerts")
    reporting = _mapping(data, "reporting")

    return WorkflowConfiguration(
        config_id=str(data.get("config_id", "fiche-workflow")),
        version=data.get("version", 1),
        review_paths=review_paths,
        rejection_reasons=tuple(str(reason) for reason in reasons),
        alerts=AlertThresholds(
            stale_review_days=alerts.get("stale_review_days", 7),
            overdue_days=alerts.get("overdue_days", 30),
        ),
        reporting=ReportingSettings(
            on_time_days=reporting.get("on_time_days", 30),
            expected_evaluations_per_year=reporting.get(
                "expected_evaluations_per_year", 4,
            ),
        ),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> WorkflowConfiguration:
    return parse_configuration(load_yaml_file(path))
