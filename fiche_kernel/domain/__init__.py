"""
Pure domain layer.

This module contains pure value objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock or an explicit ``now``.
"""

from fiche_kernel.domain.access_policy import (
    VisibilityScope,
    allowed_actions,
    is_visible,
    require,
    visibility_scope,
)
from fiche_kernel.domain.alerts import Alert, AlertKind, AlertSeverity, list_alerts
from fiche_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fiche_kernel.domain.fiche import (
    STAGE_ROLES,
    Actor,
    FicheAction,
    FicheRecord,
    FicheStatus,
    FicheType,
    FicheVersionRecord,
    JournalActionType,
    JournalEntryRecord,
    RejectionReason,
    Role,
    Stage,
)
from fiche_kernel.domain.reporting import (
    AnnualKpis,
    CreationPeriod,
    FicheFilter,
    annual_kpis,
    status_counts,
    type_counts,
)
from fiche_kernel.domain.rules import DEFAULT_RULES, ReviewPath, WorkflowRules
from fiche_kernel.domain.workflow import (
    StepProgress,
    StepState,
    Transition,
    Workflow,
    build_workflow,
    workflow_progress,
)

__all__ = [
    # Enumerations
    "FicheType",
    "FicheStatus",
    "Stage",
    "Role",
    "STAGE_ROLES",
    "FicheAction",
    "JournalActionType",
    "RejectionReason",
    # Records
    "Actor",
    "FicheRecord",
    "FicheVersionRecord",
    "JournalEntryRecord",
    # Rules
    "ReviewPath",
    "WorkflowRules",
    "DEFAULT_RULES",
    # Workflow
    "Transition",
    "Workflow",
    "build_workflow",
    "StepState",
    "StepProgress",
    "workflow_progress",
    # Access policy
    "VisibilityScope",
    "visibility_scope",
    "is_visible",
    "allowed_actions",
    "require",
    # Alerts
    "Alert",
    "AlertKind",
    "AlertSeverity",
    "list_alerts",
    # Reporting
    "AnnualKpis",
    "CreationPeriod",
    "FicheFilter",
    "annual_kpis",
    "status_counts",
    "type_counts",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
