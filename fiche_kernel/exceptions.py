"""
Typed Exception Hierarchy for the Fiche Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The dashboard layer must react differently to a refused action, a stale
read, or a malformed request.  Parsing message strings for that is fragile,
so every failure the kernel can produce has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (fiche id, actor, status, ...)

Example - WRONG way to handle errors:
    try:
        engine.approve(fiche_id, actor)
    except Exception as e:
        if "stale" in str(e):  # FRAGILE - message might change
            reload_and_retry()

Example - RIGHT way (what this module enables):
    try:
        engine.approve(fiche_id, actor, expected_revision=rev)
    except ConflictError as e:
        reload_and_retry(e.fiche_id)
    except ForbiddenError as e:
        api_response(code=e.code, action=e.action)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FicheKernelError:

    FicheKernelError (base)
    |
    +-- WorkflowError
    |   +-- ForbiddenError
    |   +-- InvalidTransitionError
    |   +-- ValidationError
    |
    +-- FicheNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Workflow        | FORBIDDEN                   | Actor may not perform action in state
                | INVALID_TRANSITION          | State does not admit the action
                | VALIDATION_ERROR            | Empty comment, missing reason, ...
----------------|-----------------------------|-----------------------------------------
Lookup          | FICHE_NOT_FOUND             | Fiche ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONFLICT                    | Stale revision on compare-and-swap
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a version, journal entry or
                |                             | the locked fields of an approved fiche

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ForbiddenError / InvalidTransitionError: never retried, surfaced verbatim.
2. ValidationError: the caller corrects the input before retrying.
3. ConflictError: re-read the fiche and retry the operation.
4. FicheNotFoundError: not retried.

None of these is fatal to the process, and none leaves partial state.
"""


class FicheKernelError(Exception):
    """
    Base exception for all fiche kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FICHE_KERNEL_ERROR"


# Workflow-related exceptions


class WorkflowError(FicheKernelError):
    """Base exception for workflow action failures."""

    code: str = "WORKFLOW_ERROR"


class ForbiddenError(WorkflowError):
    """The actor's role or identity does not permit the action."""

    code: str = "FORBIDDEN"

    def __init__(self, fiche_id: str, action: str, actor_id: str, reason: str):
        self.fiche_id = fiche_id
        self.action = action
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not {action} fiche {fiche_id}: {reason}"
        )


class InvalidTransitionError(WorkflowError):
    """The fiche's current state does not admit the requested action."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, fiche_id: str, action: str, status: str):
        self.fiche_id = fiche_id
        self.action = action
        self.status = status
        super().__init__(
            f"Cannot {action} fiche {fiche_id} while it is {status}"
        )


class ValidationError(WorkflowError):
    """Malformed input for a workflow action."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Lookup exceptions


class FicheNotFoundError(FicheKernelError):
    """Fiche with given ID was not found."""

    code: str = "FICHE_NOT_FOUND"

    def __init__(self, fiche_id: str):
        self.fiche_id = fiche_id
        super().__init__(f"Fiche not found: {fiche_id}")


# Concurrency-related exceptions


class ConcurrencyError(FicheKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """Optimistic concurrency failure: the fiche changed since it was read."""

    code: str = "CONFLICT"

    def __init__(
        self,
        fiche_id: str,
        expected_revision: int,
        actual_revision: int | None = None,
    ):
        self.fiche_id = fiche_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Conflict on fiche {fiche_id}: expected revision "
            f"{expected_revision}, fiche was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(FicheKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Version snapshots and journal entries are immutable after insert;
    an approved fiche's content, status, stage and version are locked.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
