"""Database connection management."""
import sqlite3
import os
from pathlib import Path
from contextlib import contextmanager
from typing import Generator
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger
from vibetrader.core.time import now_iso

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def _parse_db_url(url: str) -> str:
    """Parse DATABASE_URL to SQLite file path."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "")
    elif url.startswith("sqlite://"):
        return url.replace("sqlite://", "")
    else:
        return url


@contextmanager
def get_conn() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection context manager."""
    settings = get_settings()
    db_path = _parse_db_url(settings.database_url)

    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 30000")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _split_statements(migration_sql: str) -> list:
    """Strip -- comments and split a migration file into statements."""
    lines = []
    for line in migration_sql.split('\n'):
        if '--' in line:
            line = line[:line.index('--')]
        lines.append(line)
    cleaned_sql = '\n'.join(lines)
    return [s.strip() for s in cleaned_sql.split(';') if s.strip()]


def init_db():
    """Initialize database with migrations (idempotent).

    Raises RuntimeError if migrations directory is not found.
    """
    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(
            f"Migrations directory not found: {MIGRATIONS_DIR}. "
            "Cannot start without schema."
        )

    bootstrap_migration = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        filename TEXT NOT NULL UNIQUE,
        applied_at TEXT NOT NULL DEFAULT (datetime('now'))
    );
    """

    with get_conn() as conn:
        conn.executescript(bootstrap_migration)

        migration_files = sorted(f for f in os.listdir(MIGRATIONS_DIR) if f.endswith('.sql'))

        cursor = conn.cursor()
        cursor.execute("SELECT filename FROM schema_migrations")
        applied_migrations = {row["filename"] for row in cursor.fetchall()}

        for migration_file in migration_files:
            if migration_file in applied_migrations:
                logger.debug("Migration %s already applied, skipping", migration_file)
                continue

            with open(MIGRATIONS_DIR / migration_file, "r") as f:
                statements = _split_statements(f.read())

            skipped_count = 0
            for statement in statements:
                try:
                    conn.execute(statement)
                except sqlite3.OperationalError as e:
                    error_str = str(e).lower()
                    # Skip duplicate column/index errors (idempotency)
                    if "duplicate column" in error_str or "already exists" in error_str:
                        skipped_count += 1
                    else:
                        logger.error("Failed to apply migration %s: %s", migration_file, e)
                        raise

            cursor.execute(
                "INSERT INTO schema_migrations (filename, applied_at) VALUES (?, ?)",
                (migration_file, now_iso())
            )
            conn.commit()
            logger.info(
                "Applied migration: %s (%d statements, %d skipped)",
                migration_file, len(statements), skipped_count
            )

    settings = get_settings()
    logger.info(
        "DB: %s | Migrations: %d",
        os.path.abspath(_parse_db_url(settings.database_url)),
        len(migration_files),
    )
