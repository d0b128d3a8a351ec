"""
recall Database Infrastructure

Connection management, schema initialization, migrations and timestamp
helpers. All other core modules import from here for DB access.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _apply_pragmas(db: sqlite3.Connection):
    """Apply standard SQLite pragmas for safety and concurrency."""
    db.execute("PRAGMA journal_mode=WAL")
    db.execute("PRAGMA busy_timeout=5000")
    db.execute("PRAGMA foreign_keys=ON")


def _get_db_path():
    """Get the configured database path."""
    import recall
    return recall.get_config().db_path


def get_db() -> sqlite3.Connection:
    """Get a database connection.

    NOTE: Each call opens a new connection. Functions use the _db() context
    manager for auto-close, which also keeps connections thread-local for the
    embedding worker and the parallel legs of hybrid search.
    """
    db = sqlite3.connect(str(_get_db_path()))
    db.row_factory = sqlite3.Row
    _apply_pragmas(db)
    return db


@contextmanager
def _db():
    """Context manager for database connections, ensures close on exception."""
    db = get_db()
    try:
        yield db
    finally:
        db.close()


def _ensure_migration_table(db: sqlite3.Connection):
    """Create the schema_migrations tracking table if it doesn't exist."""
    db.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            description TEXT NOT NULL,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)
    db.commit()


def run_migration(db: sqlite3.Connection, version: int, description: str, migrate_fn: Callable[[sqlite3.Connection], None]):
    """
    Run a schema migration if it hasn't been applied yet.

    Checks schema_migrations for the version. If not present, runs migrate_fn
    inside a transaction and records the version. If already applied, skips silently.

    Args:
        db: Open database connection
        version: Integer migration version (must be unique, monotonically increasing)
        description: Human-readable description of what this migration does
        migrate_fn: Callable that takes a db connection and performs the migration
    """
    existing = db.execute(
        "SELECT version FROM schema_migrations WHERE version = ?", (version,)
    ).fetchone()
    if existing:
        return

    logger.info(f"Running migration {version}: {description}")
    try:
        migrate_fn(db)
        db.execute(
            "INSERT INTO schema_migrations (version, description) VALUES (?, ?)",
            (version, description)
        )
        db.commit()
        logger.info(f"Migration {version} applied successfully")
    except Exception:
        db.rollback()
        logger.error(f"Migration {version} failed, rolled back", exc_info=True)
        raise


def init_db():
    """Initialize database schema."""
    db = get_db()

    # Journal entries (owned by the host app; the retrieval core only
    # writes the embedding fields, searchable_text and ai_insights)
    db.execute("""
        CREATE TABLE IF NOT EXISTS entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT,
            content TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            privacy TEXT NOT NULL DEFAULT 'private'
                CHECK (privacy IN ('private', 'shared', 'public')),
            shared_with TEXT NOT NULL DEFAULT '[]',
            ai_insights TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # People a user can tag in their own entries
    db.execute("""
        CREATE TABLE IF NOT EXISTS people (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            first_name TEXT NOT NULL,
            last_name TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (user_id, first_name, last_name)
        )
    """)

    db.execute("""
        CREATE TABLE IF NOT EXISTS entry_person_tags (
            id TEXT PRIMARY KEY,
            entry_id TEXT NOT NULL,
            person_id TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (entry_id, person_id),
            FOREIGN KEY (entry_id) REFERENCES entries(id) ON DELETE CASCADE,
            FOREIGN KEY (person_id) REFERENCES people(id) ON DELETE CASCADE
        )
    """)

    # Engagement signals read by the feed ranker
    db.execute("""
        CREATE TABLE IF NOT EXISTS likes (
            id TEXT PRIMARY KEY,
            entry_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (entry_id, user_id),
            FOREIGN KEY (entry_id) REFERENCES entries(id) ON DELETE CASCADE
        )
    """)

    db.execute("""
        CREATE TABLE IF NOT EXISTS comments (
            id TEXT PRIMARY KEY,
            entry_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (entry_id) REFERENCES entries(id) ON DELETE CASCADE
        )
    """)

    db.execute("CREATE INDEX IF NOT EXISTS idx_entries_user_id ON entries(user_id)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_entries_created_at ON entries(created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_entries_privacy ON entries(privacy)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_entry_person_tags_entry ON entry_person_tags(entry_id)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_likes_entry ON likes(entry_id)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_comments_entry ON comments(entry_id)")

    db.commit()

    # --- Migration tracking and schema migrations ---
    _ensure_migration_table(db)

    run_migration(db, 0, "Baseline schema", lambda _db: None)

    # Version 1: Embedding tracking columns
    def _migrate_embeddings(db: sqlite3.Connection):
        db.execute("ALTER TABLE entries ADD COLUMN searchable_text TEXT DEFAULT NULL")
        db.execute("ALTER TABLE entries ADD COLUMN content_embedding TEXT DEFAULT NULL")
        db.execute("ALTER TABLE entries ADD COLUMN embedding_version TEXT DEFAULT NULL")
        db.execute("ALTER TABLE entries ADD COLUMN last_embedding_update TEXT DEFAULT NULL")

    run_migration(db, 1, "Embedding tracking columns", _migrate_embeddings)

    db.close()

    # SQLite stores data in plaintext, so restrict the file to its owner.
    import os
    db_path = _get_db_path()
    try:
        os.chmod(db_path, 0o600)
        for suffix in ("-wal", "-shm"):
            wal_path = str(db_path) + suffix
            if os.path.exists(wal_path):
                os.chmod(wal_path, 0o600)
    except OSError:
        logger.debug("Could not set restrictive permissions on database files")


# ============================================================================
# ROW / TIMESTAMP HELPERS
# ============================================================================

def format_timestamp(value: datetime) -> str:
    """Render a datetime as the UTC text form stored in the database."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime (None if unparseable)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_entry(row: sqlite3.Row) -> dict:
    """Decode an entries row: JSON columns become Python values."""
    entry = dict(row)
    for key in ("tags", "shared_with"):
        try:
            entry[key] = json.loads(entry.get(key) or "[]")
        except (json.JSONDecodeError, TypeError):
            entry[key] = []
    raw_insights = entry.get("ai_insights")
    if raw_insights:
        try:
            entry["ai_insights"] = json.loads(raw_insights)
        except (json.JSONDecodeError, TypeError):
            entry["ai_insights"] = None
    return entry

