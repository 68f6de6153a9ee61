"""
WorkflowEngine -- the fiche approval workflow.

Responsibility:
    Entry point for every workflow intent: create, submit, approve, reject,
    comment and edit_content, plus the alert listing of the fiches an actor
    can see.  Each mutating call reads the fiche, checks it against the
    access policy and the type's state machine, writes the new state
    through the store's compare-and-swap and records its side effects
    (version snapshot, journal entry) in the same transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Calls the pure domain layer
    (access_policy, workflow, alerts) and the persistence services.

Invariants enforced:
    - Check order for every mutating call: FicheNotFoundError ->
      ConflictError (stale expected_revision) -> InvalidTransitionError ->
      ForbiddenError -> ValidationError.
    - All or nothing: the fiche update, its version row and its journal
      entry commit together.  With ``auto_commit=True`` (default) the engine
      commits on success and rolls back on any failure; with
      ``auto_commit=False`` it only flushes and the caller owns the
      transaction.
    - The engine never retries a ConflictError.

Failure modes:
    - FicheNotFoundError, ConflictError, InvalidTransitionError,
      ForbiddenError, ValidationError (see fiche_kernel.exceptions).
    - ImmutabilityViolationError if a write would alter an approved fiche.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from fiche_kernel.domain.access_policy import require, visibility_scope
from fiche_kernel.domain.alerts import Alert, list_alerts
from fiche_kernel.domain.clock import Clock, SystemClock
from fiche_kernel.domain.fiche import (
    Actor,
    FicheAction,
    FicheRecord,
    FicheStatus,
    FicheType,
    JournalActionType,
    RejectionReason,
    rejection_comment,
)
from fiche_kernel.domain.rules import DEFAULT_RULES, WorkflowRules
from fiche_kernel.domain.workflow import (
    Transition,
    Workflow,
    build_workflow,
    parse_state,
    state_key,
)
from fiche_kernel.exceptions import (
    ConflictError,
    FicheKernelError,
    InvalidTransitionError,
    ValidationError,
)
from fiche_kernel.logging_config import LogContext, get_logger
from fiche_kernel.services.fiche_store import FicheStore
from fiche_kernel.services.journal_service import JournalService
from fiche_kernel.services.versioning_service import VersioningService

logger = get_logger("services.workflow_engine")

T = TypeVar("T")


class WorkflowEngine:
    """Applies workflow intents to fiches.

    Set auto_commit=False to delegate transaction control to the caller
    (for example inside ``session_scope``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rules: WorkflowRules = DEFAULT_RULES,
        auto_commit: bool = True,
    ):
        """
        Args:
            session: SQLAlchemy session.
            clock: Clock for timestamps. Defaults to SystemClock.
            rules: Review paths, accepted rejection reasons and thresholds.
            auto_commit: If True (default), commits on success, rolls back on
                failure. If False, caller manages transaction.
        """
        self._session = session
        self._clock = clock or SystemClock()
        self._rules = rules
        self._auto_commit = auto_commit

        self._store = FicheStore(session)
        self._versions = VersioningService(session, self._store)
        self._journal = JournalService(session, self._store)
        self._workflows: dict[FicheType, Workflow] = {
            fiche_type: build_workflow(rules.review_path(fiche_type))
            for fiche_type in FicheType
        }

    @property
    def rules(self) -> WorkflowRules:
        return self._rules

    def workflow_for(self, fiche_type: FicheType) -> Workflow:
        return self._workflows[fiche_type]

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def create(
        self,
        fiche_type: FicheType | str,
        content: str,
        actor: Actor,
    ) -> FicheRecord:
        """Create a draft authored by ``actor``; writes the version-1 snapshot."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            action="create",
        ):
            try:
                try:
                    fiche_type = FicheType(fiche_type)
                except ValueError:
                    raise ValidationError(
                        "fiche_type", f"unknown fiche type {fiche_type!r}",
                    ) from None
                if not isinstance(content, str):
                    raise ValidationError("content", "content must be text")

                now = self._clock.now()
                fiche = self._store.insert_fiche(FicheRecord(
                    id=uuid4(),
                    fiche_type=fiche_type,
                    status=FicheStatus.DRAFT,
                    current_stage=None,
                    content=content,
                    author_id=actor.actor_id,
                    version=1,
                    revision=1,
                    journal_count=0,
                    created_at=now,
                    updated_at=now,
                ))
                self._versions.snapshot(fiche, now)
                self._finish()
            except Exception:
                self._fail()
                raise

            logger.info(
                "fiche_created",
                extra={"fiche_id": str(fiche.id), "fiche_type": fiche.fiche_type.value},
            )
            return fiche

    def submit(
        self,
        fiche_id: UUID,
        actor: Actor,
        expected_revision: int | None = None,
    ) -> FicheRecord:
        """Send a draft or rejected fiche to the first stage of its review path."""

        def apply(fiche: FicheRecord) -> FicheRecord:
            now = self._clock.now()
            transition = self._transition(fiche, FicheAction.SUBMIT)
            status, stage = parse_state(transition.to_state)
            values = {"status": status, "current_stage": stage, "updated_at": now}
            if transition.snapshots_version:
                values["version"] = fiche.version + 1
            updated = self._store.cas_update_fiche(fiche.id, fiche.revision, values)
            if transition.snapshots_version:
                self._versions.snapshot(updated, now)
            logger.info(
                "fiche_submitted",
                extra={"version": updated.version, "stage": stage.value},
            )
            return updated

        return self._execute(FicheAction.SUBMIT, fiche_id, actor, expected_revision, apply)

    def approve(
        self,
        fiche_id: UUID,
        actor: Actor,
        expected_revision: int | None = None,
    ) -> FicheRecord:
        """Approve the current stage; the last stage approves the fiche."""

        def apply(fiche: FicheRecord) -> FicheRecord:
            now = self._clock.now()
            transition = self._transition(fiche, FicheAction.APPROVE)
            status, stage = parse_state(transition.to_state)
            updated = self._store.cas_update_fiche(fiche.id, fiche.revision, {
                "status": status,
                "current_stage": stage,
                "journal_count": fiche.journal_count + 1,
                "updated_at": now,
            })
            self._journal.record(
                fiche.id, updated.journal_count, actor.actor_id,
                transition.journal_action, now,
            )
            logger.info(
                "fiche_approved",
                extra={
                    "from_stage": fiche.current_stage.value,
                    "status": status.value,
                    "stage": stage.value if stage else None,
                },
            )
            return updated

        return self._execute(FicheAction.APPROVE, fiche_id, actor, expected_revision, apply)

    def reject(
        self,
        fiche_id: UUID,
        actor: Actor,
        reason: RejectionReason | str | None,
        comment: str | None = None,
        expected_revision: int | None = None,
    ) -> FicheRecord:
        """Reject the fiche at its current stage with a closed-set reason."""

        def apply(fiche: FicheRecord) -> FicheRecord:
            checked_reason = self._check_reason(reason)
            note = comment.strip() if comment else None

            now = self._clock.now()
            transition = self._transition(fiche, FicheAction.REJECT)
            status, stage = parse_state(transition.to_state)
            updated = self._store.cas_update_fiche(fiche.id, fiche.revision, {
                "status": status,
                "current_stage": stage,
                "journal_count": fiche.journal_count + 1,
                "updated_at": now,
            })
            self._journal.record(
                fiche.id, updated.journal_count, actor.actor_id,
                transition.journal_action, now,
                reason=checked_reason,
                comment=rejection_comment(checked_reason, note),
            )
            logger.info(
                "fiche_rejected",
                extra={
                    "from_stage": fiche.current_stage.value,
                    "reason": checked_reason.value,
                },
            )
            return updated

        return self._execute(FicheAction.REJECT, fiche_id, actor, expected_revision, apply)

    def comment(
        self,
        fiche_id: UUID,
        actor: Actor,
        text: str,
        expected_revision: int | None = None,
    ) -> FicheRecord:
        """Journal a free-text comment; the fiche's status and content are untouched."""

        def apply(fiche: FicheRecord) -> FicheRecord:
            if not isinstance(text, str) or not text.strip():
                raise ValidationError("text", "comment must not be empty")

            now = self._clock.now()
            updated = self._store.cas_update_fiche(fiche.id, fiche.revision, {
                "journal_count": fiche.journal_count + 1,
            })
            self._journal.record(
                fiche.id, updated.journal_count, actor.actor_id,
                JournalActionType.COMMENT, now,
                comment=text.strip(),
            )
            logger.info("fiche_commented", extra={"status": fiche.status.value})
            return updated

        return self._execute(FicheAction.COMMENT, fiche_id, actor, expected_revision, apply)

    def edit_content(
        self,
        fiche_id: UUID,
        actor: Actor,
        content: str,
        expected_revision: int | None = None,
    ) -> FicheRecord:
        """Replace the content of a draft or rejected fiche (author only)."""

        def apply(fiche: FicheRecord) -> FicheRecord:
            if not isinstance(content, str):
                raise ValidationError("content", "content must be text")

            updated = self._store.cas_update_fiche(fiche.id, fiche.revision, {
                "content": content,
                "updated_at": self._clock.now(),
            })
            logger.info("fiche_content_edited", extra={"version": updated.version})
            return updated

        return self._execute(FicheAction.EDIT, fiche_id, actor, expected_revision, apply)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, fiche_id: UUID, actor: Actor) -> FicheRecord:
        """Read a fiche the actor is allowed to see."""
        fiche = self._store.get_fiche(fiche_id)
        require(FicheAction.READ, actor, fiche)
        return fiche

    def list_alerts(
        self,
        actor: Actor,
        now: datetime | None = None,
    ) -> tuple[Alert, ...]:
        """Alerts over the fiches visible to ``actor``.

        Computed from a plain read; never used for enforcement.
        """
        fiches = self._store.list_fiches(visibility_scope(actor))
        return list_alerts(fiches, now or self._clock.now(), self._rules)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(
        self,
        action: FicheAction,
        fiche_id: UUID,
        actor: Actor,
        expected_revision: int | None,
        apply: Callable[[FicheRecord], T],
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            fiche_id=str(fiche_id),
            action=action.value,
        ):
            try:
                fiche = self._store.get_fiche(fiche_id)
                if expected_revision is not None and fiche.revision != expected_revision:
                    raise ConflictError(str(fiche_id), expected_revision, fiche.revision)
                require(action, actor, fiche)
                result = apply(fiche)
                self._finish()
                return result

            except ConflictError as exc:
                self._fail()
                logger.warning(
                    "fiche_cas_conflict",
                    extra={
                        "expected_revision": exc.expected_revision,
                        "actual_revision": exc.actual_revision,
                    },
                )
                raise
            except FicheKernelError as exc:
                self._fail()
                logger.warning(
                    "fiche_action_refused",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                raise
            except Exception:
                self._fail()
                logger.error("fiche_action_failed", exc_info=True)
                raise

    def _transition(self, fiche: FicheRecord, action: FicheAction) -> Transition:
        workflow = self._workflows[fiche.fiche_type]
        transition = workflow.transition_for(
            state_key(fiche.status, fiche.current_stage), action,
        )
        if transition is None:
            raise InvalidTransitionError(str(fiche.id), action.value, fiche.status.value)
        return transition

    def _check_reason(self, reason: RejectionReason | str | None) -> RejectionReason:
        if reason is None or (isinstance(reason, str) and not reason.strip()):
            raise ValidationError("reason", "a rejection reason is required")
        try:
            checked = RejectionReason(reason)
        except ValueError:
            raise ValidationError("reason", f"unknown rejection reason {reason!r}") from None
        if checked not in self._rules.rejection_reasons:
            raise ValidationError("reason", f"rejection reason {checked.value!r} is not accepted")
        return checked

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()
        else:
            self._session.flush()

    def _fail(self) -> None:
        if self._auto_commit:
            self._session.rollback()
