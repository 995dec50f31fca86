"""Status storage — append-only ``servers`` table.

Two backends share one interface:
  * ``PostgresStatusStore`` — production; psycopg2 threaded connection pool.
  * ``SqliteStatusStore`` — single-file store for local runs and tests.

Driver exceptions are wrapped in ``StoreError`` so callers handle one type.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2.pool import ThreadedConnectionPool

from ..config import Settings
from .engine import StatusRecord

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(minutes=5)


class StoreError(RuntimeError):
    """Raised when the store cannot be reached, written, or queried."""


def _render_row(url: str, available: Any, observed_at: Any) -> dict[str, str]:
    """Shape one row for the refresh endpoint: every field as a string."""
    if isinstance(available, bool):
        available = "true" if available else "false"
    return {"Available": str(available), "Url": url, "Time": str(observed_at)}


class StatusStore:
    """Interface shared by the store backends."""

    #: Upper bound on concurrent inserts the backend can serve.
    max_connections: int = 1

    def ping(self) -> bool:
        raise NotImplementedError

    def insert(self, record: StatusRecord) -> int:
        raise NotImplementedError

    def recent(
        self, window: timedelta = DEFAULT_WINDOW, now: datetime | None = None,
    ) -> list[dict[str, str]]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


# ── PostgreSQL ───────────────────────────────────────────────────────────────


class PostgresStatusStore(StatusStore):
    """PostgreSQL-backed status storage with connection pooling."""

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS servers (
            id SERIAL PRIMARY KEY,
            url TEXT NOT NULL,
            available BOOLEAN NOT NULL,
            "time" TIMESTAMPTZ NOT NULL
        )
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        max_connections: int = 10,
    ) -> None:
        self.max_connections = max_connections
        try:
            self._pool: ThreadedConnectionPool | None = ThreadedConnectionPool(
                minconn=1,
                maxconn=max_connections,
                host=host,
                port=port,
                dbname=database,
                user=user,
                password=password,
            )
        except psycopg2.Error as e:
            raise StoreError(f"Connection error or '{database}' database doesn't exist: {e}") from e
        try:
            self._execute(self.SCHEMA)
        except StoreError:
            self.close()
            raise

    def _execute(self, sql: str, params: tuple[Any, ...] = (), fetch: str | None = None) -> Any:
        if self._pool is None:
            raise StoreError("Store is closed")
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as e:
            raise StoreError(str(e)) from e
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch == "one":
                    result = cur.fetchone()
                elif fetch == "all":
                    result = cur.fetchall()
                else:
                    result = None
            conn.commit()
            return result
        except psycopg2.Error as e:
            try:
                conn.rollback()
            except psycopg2.Error:
                # Connection is already gone; putconn below discards it
                pass
            raise StoreError(str(e)) from e
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))

    def ping(self) -> bool:
        try:
            self._execute("SELECT 1", fetch="one")
        except StoreError:
            return False
        return True

    def insert(self, record: StatusRecord) -> int:
        row = self._execute(
            'INSERT INTO servers (url, available, "time") VALUES (%s, %s, %s) RETURNING id',
            (record.url, record.available, record.observed_at),
            fetch="one",
        )
        return int(row[0])

    def recent(
        self, window: timedelta = DEFAULT_WINDOW, now: datetime | None = None,
    ) -> list[dict[str, str]]:
        cutoff = (now or datetime.now(timezone.utc)) - window
        rows = self._execute(
            'SELECT url, available::text, "time"::text FROM servers WHERE "time" > %s',
            (cutoff,),
            fetch="all",
        )
        return [_render_row(*r) for r in rows]

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None


# ── SQLite ───────────────────────────────────────────────────────────────────


class SqliteStatusStore(StatusStore):
    """SQLite-backed status storage. One shared connection, writes serialized."""

    def __init__(self, db_path: Path | str, max_connections: int = 4) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_connections = max_connections
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open {self._db_path}: {e}") from e
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS servers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    url TEXT NOT NULL,
                    available BOOLEAN NOT NULL,
                    time TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_servers_time ON servers (time);
            """)
            conn.commit()

    @staticmethod
    def _stamp(ts: datetime) -> str:
        return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")

    def ping(self) -> bool:
        try:
            with self._lock:
                self._get_conn().execute("SELECT 1").fetchone()
        except (sqlite3.Error, StoreError):
            return False
        return True

    def insert(self, record: StatusRecord) -> int:
        try:
            with self._lock:
                conn = self._get_conn()
                cur = conn.execute(
                    "INSERT INTO servers (url, available, time) VALUES (?, ?, ?)",
                    (record.url, int(record.available), self._stamp(record.observed_at)),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return int(cur.lastrowid)

    def recent(
        self, window: timedelta = DEFAULT_WINDOW, now: datetime | None = None,
    ) -> list[dict[str, str]]:
        cutoff = self._stamp((now or datetime.now(timezone.utc)) - window)
        try:
            with self._lock:
                rows = self._get_conn().execute(
                    "SELECT url, available, time FROM servers WHERE time > ?", (cutoff,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return [_render_row(url, bool(avail), ts) for url, avail, ts in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


def open_store(settings: Settings, pool_size: int = 10) -> StatusStore:
    """Open the backend named by ``settings.driver`` and verify it answers."""
    if settings.driver == "sqlite":
        store: StatusStore = SqliteStatusStore(settings.database, max_connections=pool_size)
    else:
        store = PostgresStatusStore(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
            password=settings.password,
            max_connections=pool_size,
        )

    if not store.ping():
        store.close()
        raise StoreError(f"Connection error or '{settings.database}' database doesn't exist")
    logger.info("Store ping OK (%s:%s)", settings.driver, settings.database)
    return store
