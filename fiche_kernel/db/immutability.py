"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHAT THIS COVERS
===============================================================================

Version snapshots and journal entries are the audit trail of a fiche; an
approved fiche is frozen.  Two layers enforce this:

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy ORM objects
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (database triggers)
    - Catches raw SQL and Core UPDATE statements
    - Fires AT the database level, independent of application code

The store's compare-and-swap is a Core UPDATE and never reaches these
listeners; it checks the approved-fiche lock itself before issuing the
statement (see services/fiche_store.py), and layer 2 backs it up.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                | Mutable Fields
--------------------|-------------------------------|---------------------------
FicheVersion        | ALWAYS (from creation)        | none
JournalEntry        | ALWAYS (from creation)        | none
Fiche               | After status = approved       | revision, journal_count

===============================================================================
HOW "WAS APPROVED" IS DETECTED
===============================================================================

The final approval itself must set status=approved, so the check looks at
the status the row had BEFORE this flush, using SQLAlchemy attribute
history.  The transition in_review -> approved is allowed; any change to a
locked field after that is blocked.

===============================================================================
USAGE
===============================================================================

    from fiche_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from fiche_kernel.exceptions import ImmutabilityViolationError
from fiche_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Fields of an approved fiche that may never change again.
LOCKED_FICHE_FIELDS = (
    "content",
    "status",
    "current_stage",
    "version",
    "fiche_type",
    "author_id",
)

_APPROVED = "approved"


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_version_immutability(mapper, connection, target):
    """Prevent any update to a FicheVersion row."""
    raise _blocked(
        "FicheVersion", target.id, "UPDATE",
        "Version snapshots are immutable and cannot be modified",
    )


def _check_version_delete(mapper, connection, target):
    raise _blocked(
        "FicheVersion", target.id, "DELETE",
        "Version snapshots cannot be deleted",
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """Prevent any update to a JournalEntry row."""
    raise _blocked(
        "JournalEntry", target.id, "UPDATE",
        "Journal entries are immutable and cannot be modified",
    )


def _check_journal_entry_delete(mapper, connection, target):
    raise _blocked(
        "JournalEntry", target.id, "DELETE",
        "Journal entries cannot be deleted",
    )


def _was_approved(target) -> bool:
    """Status the row had before the pending flush."""
    history = inspect(target).attrs.status.history
    if history.deleted:
        return history.deleted[0] == _APPROVED
    return target.status == _APPROVED and not history.added


def _check_fiche_immutability(mapper, connection, target):
    """Block changes to the locked fields of an approved fiche."""
    if not _was_approved(target):
        return

    state = inspect(target)
    changed = [
        name for name in LOCKED_FICHE_FIELDS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise _blocked(
            "Fiche", target.id, "UPDATE",
            f"Approved fiche is locked; cannot modify {', '.join(changed)}",
        )


def _check_fiche_delete(mapper, connection, target):
    if _was_approved(target):
        raise _blocked(
            "Fiche", target.id, "DELETE",
            "Approved fiches cannot be deleted",
        )


def _listeners():
    from fiche_kernel.models.fiche import FicheModel
    from fiche_kernel.models.journal import JournalEntryModel
    from fiche_kernel.models.version import FicheVersionModel

    return [
        (FicheVersionModel, "before_update", _check_version_immutability),
        (FicheVersionModel, "before_delete", _check_version_delete),
        (JournalEntryModel, "before_update", _check_journal_entry_immutability),
        (JournalEntryModel, "before_delete", _check_journal_entry_delete),
        (FicheModel, "before_update", _check_fiche_immutability),
        (FicheModel, "before_delete", _check_fiche_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after the models are importable and before any database
    operation begins.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring one that is not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to bypass the ORM layer to
    verify the database layer.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
