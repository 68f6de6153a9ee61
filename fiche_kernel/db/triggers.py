"""
Module: fiche_kernel.db.triggers
Responsibility: Installing and removing database-level immutability
    triggers.  This is the database-level complement to the ORM-level
    listeners in db/immutability.py and to the store's compare-and-swap
    guard, which issues Core UPDATE statements the ORM never sees.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - fiche_versions rows: no UPDATE, no DELETE.
    - fiche_journal_entries rows: no UPDATE, no DELETE.
    - fiches rows in status 'approved': content, status, current_stage,
      version, fiche_type and author_id are frozen; the row cannot be
      deleted.  revision and journal_count still move so that comments on
      approved fiches can be journaled.

Failure modes:
    - The database raises on any violation; SQLAlchemy surfaces it as a
      DatabaseError subclass (IntegrityError on SQLite, InternalError on
      PostgreSQL).
    - ValueError for a dialect with no trigger definitions.
"""

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from fiche_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

ALL_TRIGGER_NAMES = [
    ("trg_fiche_version_immutability_update", "fiche_versions"),
    ("trg_fiche_version_immutability_delete", "fiche_versions"),
    ("trg_journal_entry_immutability_update", "fiche_journal_entries"),
    ("trg_journal_entry_immutability_delete", "fiche_journal_entries"),
    ("trg_fiche_approved_lock_update", "fiches"),
    ("trg_fiche_approved_lock_delete", "fiches"),
]

# Null-safe inequality; SQLite spells IS DISTINCT FROM as IS NOT.
_SQLITE_LOCKED_FIELDS_CHANGED = " OR ".join(
    f"NEW.{column} IS NOT OLD.{column}"
    for column in (
        "content", "status", "current_stage", "version", "fiche_type", "author_id",
    )
)

_SQLITE_STATEMENTS = [
    """
    CREATE TRIGGER IF NOT EXISTS trg_fiche_version_immutability_update
    BEFORE UPDATE ON fiche_versions
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: fiche versions are immutable');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_fiche_version_immutability_delete
    BEFORE DELETE ON fiche_versions
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: fiche versions cannot be deleted');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_journal_entry_immutability_update
    BEFORE UPDATE ON fiche_journal_entries
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: journal entries are immutable');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_journal_entry_immutability_delete
    BEFORE DELETE ON fiche_journal_entries
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: journal entries cannot be deleted');
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS trg_fiche_approved_lock_update
    BEFORE UPDATE ON fiches
    WHEN OLD.status = 'approved' AND ({_SQLITE_LOCKED_FIELDS_CHANGED})
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: approved fiche is locked');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_fiche_approved_lock_delete
    BEFORE DELETE ON fiches
    WHEN OLD.status = 'approved'
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: approved fiche cannot be deleted');
    END
    """,
]

_POSTGRES_STATEMENTS = [
    """
    CREATE OR REPLACE FUNCTION fiche_reject_modification() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: % rows are immutable', TG_TABLE_NAME;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE OR REPLACE FUNCTION fiche_approved_lock() RETURNS trigger AS $$
    BEGIN
        IF OLD.status = 'approved' THEN
            IF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: approved fiche cannot be deleted';
            END IF;
            IF NEW.content IS DISTINCT FROM OLD.content
               OR NEW.status IS DISTINCT FROM OLD.status
               OR NEW.current_stage IS DISTINCT FROM OLD.current_stage
               OR NEW.version IS DISTINCT FROM OLD.version
               OR NEW.fiche_type IS DISTINCT FROM OLD.fiche_type
               OR NEW.author_id IS DISTINCT FROM OLD.author_id THEN
                RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: approved fiche is locked';
            END IF;
        END IF;
        IF TG_OP = 'DELETE' THEN
            RETURN OLD;
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS trg_fiche_version_immutability_update ON fiche_versions",
    """
    CREATE TRIGGER trg_fiche_version_immutability_update
    BEFORE UPDATE ON fiche_versions
    FOR EACH ROW EXECUTE FUNCTION fiche_reject_modification()
    """,
    "DROP TRIGGER IF EXISTS trg_fiche_version_immutability_delete ON fiche_versions",
    """
    CREATE TRIGGER trg_fiche_version_immutability_delete
    BEFORE DELETE ON fiche_versions
    FOR EACH ROW EXECUTE FUNCTION fiche_reject_modification()
    """,
    "DROP TRIGGER IF EXISTS trg_journal_entry_immutability_update ON fiche_journal_entries",
    """
    CREATE TRIGGER trg_journal_entry_immutability_update
    BEFORE UPDATE ON fiche_journal_entries
    FOR EACH ROW EXECUTE FUNCTION fiche_reject_modification()
    """,
    "DROP TRIGGER IF EXISTS trg_journal_entry_immutability_delete ON fiche_journal_entries",
    """
    CREATE TRIGGER trg_journal_entry_immutability_delete
    BEFORE DELETE ON fiche_journal_entries
    FOR EACH ROW EXECUTE FUNCTION fiche_reject_modification()
    """,
    "DROP TRIGGER IF EXISTS trg_fiche_approved_lock_update ON fiches",
    """
    CREATE TRIGGER trg_fiche_approved_lock_update
    BEFORE UPDATE ON fiches
    FOR EACH ROW EXECUTE FUNCTION fiche_approved_lock()
    """,
    "DROP TRIGGER IF EXISTS trg_fiche_approved_lock_delete ON fiches",
    """
    CREATE TRIGGER trg_fiche_approved_lock_delete
    BEFORE DELETE ON fiches
    FOR EACH ROW EXECUTE FUNCTION fiche_approved_lock()
    """,
]


def _install_statements(dialect_name: str) -> list[str]:
    if dialect_name == "sqlite":
        return _SQLITE_STATEMENTS
    if dialect_name == "postgresql":
        return _POSTGRES_STATEMENTS
    raise ValueError(f"No immutability triggers defined for dialect {dialect_name!r}")


def _drop_statements(dialect_name: str, existing_tables: set[str]) -> list[str]:
    if dialect_name == "postgresql":
        statements = [
            f"DROP TRIGGER IF EXISTS {name} ON {table}"
            for name, table in ALL_TRIGGER_NAMES
            if table in existing_tables
        ]
        statements.append("DROP FUNCTION IF EXISTS fiche_reject_modification()")
        statements.append("DROP FUNCTION IF EXISTS fiche_approved_lock()")
        return statements
    return [f"DROP TRIGGER IF EXISTS {name}" for name, _ in ALL_TRIGGER_NAMES]


# =============================================================================
# Public API
# =============================================================================


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers (idempotent).

    Preconditions: Tables must exist (call after Base.metadata.create_all).
    """
    dialect_name = engine.dialect.name
    with engine.begin() as conn:
        for statement in _install_statements(dialect_name):
            conn.execute(text(statement))
    logger.info(
        "immutability_triggers_installed",
        extra={"dialect": dialect_name, "trigger_count": len(ALL_TRIGGER_NAMES)},
    )


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only use this for tests or migrations that must rewrite
    history.  Re-install the triggers immediately afterwards.
    """
    with engine.begin() as conn:
        existing_tables = set(inspect(conn).get_table_names())
        for statement in _drop_statements(engine.dialect.name, existing_tables):
            conn.execute(text(statement))


def installed_trigger_names(engine: Engine) -> set[str]:
    """Names of the fiche immutability triggers present in the database."""
    expected = {name for name, _ in ALL_TRIGGER_NAMES}
    if engine.dialect.name == "sqlite":
        query = text("SELECT name FROM sqlite_master WHERE type = 'trigger'")
    else:
        query = text("SELECT tgname FROM pg_trigger WHERE NOT tgisinternal")
    with engine.connect() as conn:
        present = {row[0] for row in conn.execute(query)}
    return expected & present
