"""Kernel services - the workflow engine and its persistence collaborators."""

from fiche_kernel.services.fiche_store import FicheStore
from fiche_kernel.services.journal_service import JournalService
from fiche_kernel.services.versioning_service import VersioningService
from fiche_kernel.services.workflow_engine import WorkflowEngine

__all__ = [
    "FicheStore",
    "JournalService",
    "VersioningService",
    "WorkflowEngine",
]
