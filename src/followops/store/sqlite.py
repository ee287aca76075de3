from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from followops.store import migrations


class SqliteSession:
    """One connection, one transaction; committed when the ``session()`` block exits cleanly."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, query: str, params: Iterable[Any] | None = None) -> None:
        self._conn.execute(query, params or [])

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        return self._conn.execute(query, params or []).fetchall()

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        return self._conn.execute(query, params or []).fetchone()


class SqliteStore:
    """Short-lived connection per call, so dispatcher workers can share one store."""

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    @contextmanager
    def connect(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def session(self):
        with self.connect() as conn:
            yield SqliteSession(conn)

    def apply_schema(self, schema_path: Path) -> int:
        with self.connect() as conn:
            # WAL lets readers proceed while a worker appends follow-up logs.
            conn.execute("PRAGMA journal_mode = WAL;")
            return migrations.apply_schema(conn, schema_path)

    def schema_version(self) -> int | None:
        with self.connect() as conn:
            return migrations.current_version(conn)

    def execute(self, query: str, params: Iterable[Any] | None = None) -> None:
        with self.session() as session:
            session.execute(query, params)

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        with self.session() as session:
            return session.fetch_all(query, params)

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        with self.session() as session:
            return session.fetch_one(query, params)
