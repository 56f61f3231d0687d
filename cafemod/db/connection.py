import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and row factory enabled."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def transaction(db_path: str) -> Iterator[sqlite3.Connection]:
    """Commit on success, roll back on error, always close."""
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def run_migrations(db_path: str) -> None:
    """Apply any unapplied SQL migration files, in filename order.

    Each file and its `_schema_migrations` row commit together; a failing
    file is rolled back and stays pending.
    """
    with transaction(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS _schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        applied = {
            row["filename"]
            for row in conn.execute("SELECT filename FROM _schema_migrations")
        }

    pending = [p for p in sorted(_MIGRATIONS_DIR.glob("*.sql")) if p.name not in applied]
    for migration_path in pending:
        logger.info("[db] applying migration | file=%s", migration_path.name)
        filename = migration_path.name.replace("'", "''")
        # executescript commits whatever is open, so the script brackets itself
        script = (
            "BEGIN;\n"
            f"{migration_path.read_text()}\n;\n"
            f"INSERT INTO _schema_migrations (filename) VALUES ('{filename}');\n"
            "COMMIT;\n"
        )
        with transaction(db_path) as conn:
            conn.executescript(script)
    if pending:
        logger.info("[db] migrations applied | count=%d | db=%s", len(pending), db_path)
