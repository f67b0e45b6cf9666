from __future__ import annotations

import sqlite3
from pathlib import Path

MIGRATIONS_ROOT = Path(__file__).parent / "migrations"


def connect_db(db_path: Path, timeout_sec: float = 10.0) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # Subscriptions may be delivered from a worker thread; each repository still owns its connection.
    connection = sqlite3.connect(str(db_path), timeout=timeout_sec, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute("PRAGMA journal_mode = WAL")
    connection.execute(f"PRAGMA busy_timeout = {int(timeout_sec * 1000)}")
    return connection


def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            partition TEXT NOT NULL,
            filename TEXT NOT NULL,
            applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (partition, filename)
        )
        """
    )
    connection.commit()


def pending_migrations(connection: sqlite3.Connection, partition: str) -> list[Path]:
    _ensure_migrations_table(connection)
    applied = {
        row["filename"]
        for row in connection.execute(
            "SELECT filename FROM schema_migrations WHERE partition = ?",
            (partition,),
        )
    }
    return [path for path in sorted((MIGRATIONS_ROOT / partition).glob("*.sql")) if path.name not in applied]


def apply_migrations(connection: sqlite3.Connection, partition: str) -> list[str]:
    executed: list[str] = []
    for migration_file in pending_migrations(connection, partition):
        script = migration_file.read_text(encoding="utf-8")
        with connection:
            connection.executescript(script)
            connection.execute(
                "INSERT INTO schema_migrations (partition, filename) VALUES (?, ?)",
                (partition, migration_file.name),
            )
        executed.append(f"{partition}/{migration_file.name}")
    return executed
