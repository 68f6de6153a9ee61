"""ORM models for the fiche kernel."""

from fiche_kernel.models.fiche import FicheModel
from fiche_kernel.models.journal import JournalEntryModel
from fiche_kernel.models.version import FicheVersionModel

__all__ = [
    "FicheModel",
    "FicheVersionModel",
    "JournalEntryModel",
]
