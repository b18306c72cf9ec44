"""SQLite persistence for the local certificate status cache."""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Final, TypeVar

from ..errors import StoreError
from ..models import CertificateRecord

__all__ = ["CertificateStore", "DEFAULT_DB_PATH"]

_log = logging.getLogger("hostcert.ssl.store")

DEFAULT_DB_PATH: Final[str] = "./data/sqlite/ssl_records.db"

_T = TypeVar("_T")


def _utcnow() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class CertificateStore:
    """Single-table store keyed by authority id with a unique hostname.

    The blocking sqlite calls run in a worker thread behind one lock, so
    awaiting callers never stall the event loop and statements never
    interleave on the shared connection.
    """

    _SCHEMA: Final[str] = """
    PRAGMA journal_mode=WAL;

    CREATE TABLE IF NOT EXISTS ssl_records (
        id TEXT PRIMARY KEY,
        hostname TEXT UNIQUE,
        status TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_ssl_records_created
        ON ssl_records(created_at);
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH, *, clock: Callable[[], str] = _utcnow) -> None:
        self._path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._clock = clock
        self._lock = asyncio.Lock()
        try:
            if isinstance(self._path, Path) and not self._path.parent.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._path, isolation_level=None, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(self._SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"cannot open certificate store at {db_path}: {exc}") from exc

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    async def _run(self, fn: Callable[..., _T], *args: Any) -> _T:
        async with self._lock:
            work = asyncio.ensure_future(asyncio.to_thread(fn, *args))
            try:
                return await asyncio.shield(work)
            except asyncio.CancelledError:
                # the statement keeps running in its thread; hold the connection until it ends
                await asyncio.wait([work])
                if not work.cancelled():
                    work.exception()
                raise
            except sqlite3.Error as exc:
                _log.error("certificate store failure op=%s error=%s", fn.__name__, exc)
                raise StoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # blocking primitives
    # ------------------------------------------------------------------
    def _upsert(self, record_id: str, hostname: str, status: str | None) -> sqlite3.Row:
        now = self._clock()
        # OR REPLACE also evicts another id holding the same hostname
        self._conn.execute(
            """
            INSERT OR REPLACE INTO ssl_records (id, hostname, status, created_at, updated_at)
            VALUES (?, ?, ?, COALESCE((SELECT created_at FROM ssl_records WHERE id = ?), ?), ?)
            """,
            (record_id, hostname, status, record_id, now, now),
        )
        return self._conn.execute("SELECT * FROM ssl_records WHERE id = ?", (record_id,)).fetchone()

    def _update_status(self, record_id: str, status: str | None) -> sqlite3.Row | None:
        cur = self._conn.execute(
            "UPDATE ssl_records SET status = ?, updated_at = ? WHERE id = ?",
            (status, self._clock(), record_id),
        )
        if cur.rowcount == 0:
            return None
        return self._conn.execute("SELECT * FROM ssl_records WHERE id = ?", (record_id,)).fetchone()

    def _fetch_one(self, column: str, value: str) -> sqlite3.Row | None:
        return self._conn.execute(f"SELECT * FROM ssl_records WHERE {column} = ?", (value,)).fetchone()

    def _delete(self, record_id: str) -> int:
        return self._conn.execute("DELETE FROM ssl_records WHERE id = ?", (record_id,)).rowcount

    def _list(self) -> list[sqlite3.Row]:
        return self._conn.execute("SELECT * FROM ssl_records ORDER BY created_at DESC, rowid DESC").fetchall()

    # ------------------------------------------------------------------
    # async API
    # ------------------------------------------------------------------
    async def upsert(self, record: CertificateRecord) -> CertificateRecord:
        row = await self._run(self._upsert, record.id, record.hostname, record.status)
        return CertificateRecord.from_row(row)

    async def update_status(self, record_id: str, status: str | None) -> CertificateRecord | None:
        """Refresh the status of an existing row; never inserts."""
        row = await self._run(self._update_status, record_id, status)
        return CertificateRecord.from_row(row) if row is not None else None

    async def get_by_hostname(self, hostname: str) -> CertificateRecord | None:
        row = await self._run(self._fetch_one, "hostname", hostname)
        return CertificateRecord.from_row(row) if row is not None else None

    async def get_by_id(self, record_id: str) -> CertificateRecord | None:
        row = await self._run(self._fetch_one, "id", record_id)
        return CertificateRecord.from_row(row) if row is not None else None

    async def delete_by_id(self, record_id: str) -> bool:
        return await self._run(self._delete, record_id) > 0

    async def list(self) -> list[CertificateRecord]:
        rows = await self._run(self._list)
        return [CertificateRecord.from_row(row) for row in rows]
