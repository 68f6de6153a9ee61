"""
fiche_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain the workflow configuration at runtime
    through ``get_active_config()``.  ``bridges.build_workflow_rules``
    turns the result into the kernel's ``WorkflowRules``.

Architecture position:
    Configuration -- YAML-driven, validated before use.  This package sits
    above ``fiche_kernel``; the kernel MUST NEVER import from it.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- structural or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FICHE_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fiche_config.bridges import build_workflow_rules
from fiche_config.loader import load_configuration
from fiche_config.schema import WorkflowConfiguration
from fiche_config.validator import (
    ConfigurationError,
    ConfigValidationResult,
    validate_configuration,
)

_logger = logging.getLogger("fiche_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "workflow.yaml"


def get_active_config(path: Path | None = None) -> WorkflowConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a workflow YAML file.  Defaults to
            fiche_config/defaults/workflow.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the configuration fails validation.
    """
    config = load_configuration(Path(path) if path is not None else DEFAULT_CONFIG_PATH)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    _logger.info(
        "FICHE_CONFIG_TRACE",
        extra={
            "trace_type": "FICHE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "review_path_count": len(config.review_paths),
            "rejection_reason_count": len(config.rejection_reasons),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "build_workflow_rules",
    "validate_configuration",
    "ConfigurationError",
    "ConfigValidationResult",
    "WorkflowConfiguration",
    "DEFAULT_CONFIG_PATH",
]
