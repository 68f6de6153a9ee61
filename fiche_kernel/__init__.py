"""
Fiche Kernel - approval workflow core

A state-machine driven review engine for internal evaluation fiches with:
- Type-specific multi-stage review paths
- Immutable version snapshots on every submission
- Append-only action journal
- Optimistic concurrency (compare-and-swap on the fiche row)
- Derived, never-persisted alerting
"""

__version__ = "0.1.0"
