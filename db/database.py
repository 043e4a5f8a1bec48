import logging
import sqlite3
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .repository import load_cards
from .schema import SCHEMA_SQL, INDEXES_SQL, SCHEMA_VERSION, REQUIRED_CARD_COLUMNS

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".kioku"
DB_PATH = CONFIG_DIR / "kioku.db"
BACKUP_DIR = CONFIG_DIR / "backups"
BACKUP_KEEP = 7
SQLITE_HEADER = b"SQLite format 3\x00"

# Columns added after the first release, with the DDL used to backfill them
CARD_COLUMN_MIGRATIONS = {
    "repetitions": "INTEGER NOT NULL DEFAULT 0",
    "efactor": "REAL NOT NULL DEFAULT 2.5",
    "interval_minutes": "INTEGER NOT NULL DEFAULT 0",
    "next_review_date": "TEXT",
    "is_suspended": "INTEGER NOT NULL DEFAULT 0",
    "is_starred": "INTEGER NOT NULL DEFAULT 0",
    "total_mistakes": "INTEGER NOT NULL DEFAULT 0",
}


class SnapshotError(ValueError):
    """Raised when an uploaded database snapshot cannot replace the active store."""


def init_db():
    """Initialize the database by creating tables and indexes if they don't exist."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        ensure_card_columns(conn)
        conn.executescript(INDEXES_SQL)
        ensure_schema_version(conn)
        conn.commit()

def ensure_card_columns(conn: sqlite3.Connection) -> None:
    """Ensure cards table has every scheduling column for databases from older installs."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(cards)")
    columns = {row[1] for row in cursor.fetchall()}
    for column, ddl in CARD_COLUMN_MIGRATIONS.items():
        if column not in columns:
            cursor.execute(f"ALTER TABLE cards ADD COLUMN {column} {ddl}")

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        set_schema_version(conn, SCHEMA_VERSION)

def export_snapshot_bytes() -> bytes:
    """Return the raw bytes of the active database file."""
    if not DB_PATH.exists():
        raise FileNotFoundError("kioku.db not found")
    return DB_PATH.read_bytes()

def validate_snapshot(data: bytes) -> None:
    """Check that data is a SQLite file whose cards load after migration; raise SnapshotError otherwise.

    Migrations run on a throwaway copy, so the active database is never touched.
    """
    if not data:
        raise SnapshotError("Snapshot file is empty")
    if not data.startswith(SQLITE_HEADER):
        raise SnapshotError("File does not appear to be a valid SQLite database")
    with tempfile.TemporaryDirectory() as tmpdir:
        candidate = Path(tmpdir) / "candidate.db"
        candidate.write_bytes(data)
        conn = sqlite3.connect(candidate)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            if "cards" not in tables:
                found = ", ".join(sorted(tables)) or "none"
                raise SnapshotError(f"Invalid database: missing cards table. Found tables: {found}")
            columns = {row[1] for row in conn.execute("PRAGMA table_info(cards)")}
            missing = REQUIRED_CARD_COLUMNS - columns
            if missing:
                raise SnapshotError(f"Invalid database: cards table lacks columns {', '.join(sorted(missing))}")
            keys = [row[1] for row in conn.execute("PRAGMA table_info(cards)") if row[5]]
            if keys != ["question"]:
                raise SnapshotError("Invalid database: cards must be keyed by question")
            conn.row_factory = sqlite3.Row
            conn.executescript(SCHEMA_SQL)
            ensure_card_columns(conn)
            conn.commit()
            try:
                cards = load_cards(conn)
            except (ValueError, TypeError) as exc:
                raise SnapshotError(f"Invalid database: unreadable card row: {exc}") from exc
            logger.debug(f"Snapshot holds {len(cards)} valid cards")
        except sqlite3.DatabaseError as exc:
            raise SnapshotError(f"Corrupt database file: {exc}") from exc
        finally:
            conn.close()

def write_safety_snapshot() -> Optional[Path]:
    """Copy the active database into the backup directory and prune old copies."""
    if not DB_PATH.exists():
        return None
    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    safety_path = BACKUP_DIR / f"safety-{timestamp}.db"
    safety_path.write_bytes(DB_PATH.read_bytes())
    existing = sorted(BACKUP_DIR.glob("*.db"), key=lambda path: path.stat().st_mtime, reverse=True)
    for old_backup in existing[BACKUP_KEEP:]:
        old_backup.unlink(missing_ok=True)
    return safety_path

def import_snapshot_bytes(data: bytes) -> None:
    """Replace the active database with data after validating it."""
    try:
        validate_snapshot(data)
    except SnapshotError as exc:
        logger.warning(f"Rejected database snapshot: {exc}")
        raise
    safety_path = write_safety_snapshot()
    if safety_path:
        logger.info(f"Wrote safety snapshot to {safety_path}")
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    temp_path = DB_PATH.with_suffix(".import")
    temp_path.write_bytes(data)
    temp_path.replace(DB_PATH)
    init_db()
    logger.info(f"Imported database snapshot ({len(data)} bytes)")

@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
