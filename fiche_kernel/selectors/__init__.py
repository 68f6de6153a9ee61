"""Read-only selectors for the dashboard."""

from fiche_kernel.selectors.fiche_selector import (
    DashboardStatsDTO,
    FicheDetailDTO,
    FicheSelector,
)

__all__ = [
    "FicheSelector",
    "FicheDetailDTO",
    "DashboardStatsDTO",
]
