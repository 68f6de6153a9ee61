"""
BaseService -- abstract base for the kernel's persistence services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    store, versioning and journal services.  They receive a SQLAlchemy
    ``Session`` and persist through ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The WorkflowEngine (or the
    caller's ``session_scope``) owns commit/rollback, so a fiche update, its
    version snapshot and its journal entry commit together or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide dashboard read models -- those belong in
          ``fiche_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
