from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from orderdesk.core.errors import StoreUnavailable

from .changes import ChangeFeed
from .migrations import apply_migrations, connect_db


class SqliteRepository:
    """One storage partition backed by its own sqlite connection."""

    partition = ""

    def __init__(self, db_path: Path, timeout_sec: float = 10.0):
        self.db_path = db_path
        try:
            self.connection = connect_db(db_path, timeout_sec=timeout_sec)
        except sqlite3.Error as exc:
            raise StoreUnavailable(
                f"Cannot open {self.partition} store at {db_path}: {exc}",
                partition=self.partition,
            ) from exc
        self.changes = ChangeFeed(self.connection)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self):  # noqa: ANN204
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def migrate(self) -> list[str]:
        with self._store_errors():
            return apply_migrations(self.connection, self.partition)

    @staticmethod
    def _to_json(payload: dict[str, Any] | list[Any] | None) -> str | None:
        if payload is None:
            return None
        return json.dumps(payload, ensure_ascii=False)

    @staticmethod
    def _from_json(raw: str | None) -> Any:
        if raw is None:
            return None
        return json.loads(raw)

    @contextmanager
    def _store_errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as exc:
            raise StoreUnavailable(f"{self.partition} store error: {exc}", partition=self.partition) from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._store_errors():
            with self.connection:
                yield self.connection

    def _fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._store_errors():
            return self.connection.execute(query, params).fetchone()

    def _fetchall(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._store_errors():
            return self.connection.execute(query, params).fetchall()
