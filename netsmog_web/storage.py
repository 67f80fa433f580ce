"""Sample storage for submitted results (SQLite-backed SampleStore)."""

from __future__ import annotations

import sqlite3
import threading
from typing import Any, Dict, List, Optional, Sequence

from netsmog.errors import StorageError
from netsmog.util.time import utc_now_str

COLUMNS = ("worker", "value")


class SampleStore:
    """Append-only store of labelled latency samples.

    Every ``write_series`` call appends rows; identical submissions are stored
    twice, nothing is deduplicated.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        try:
            self.con = sqlite3.connect(path, timeout=30.0, check_same_thread=False)
            try:
                self.con.execute("PRAGMA journal_mode=WAL")
            except sqlite3.OperationalError:
                pass
            self.con.execute("PRAGMA busy_timeout=5000")
            self._init()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open sample store {path}: {exc}") from exc

    def _init(self) -> None:
        cur = self.con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS samples (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                series TEXT NOT NULL,
                worker TEXT NOT NULL,
                value REAL,
                received_utc TEXT NOT NULL
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS samples_series ON samples(series, id)")
        self.con.commit()

    def close(self) -> None:
        with self._lock:
            self.con.close()

    def write_series(self, name: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        """
        Append one series write: ``rows`` of ``[worker, value]``.

        A ``None`` value records a lost probe.

        Raises:
            StorageError: Unknown columns or a database failure.
        """
        if tuple(columns) != COLUMNS:
            raise StorageError(f"unsupported columns {list(columns)}; want {list(COLUMNS)}")
        ts = utc_now_str()
        params = [(name, str(worker), value, ts) for worker, value in rows]
        with self._lock:
            try:
                self.con.executemany(
                    "INSERT INTO samples(series, worker, value, received_utc) VALUES (?, ?, ?, ?)",
                    params,
                )
                self.con.commit()
            except sqlite3.Error as exc:
                self.con.rollback()
                raise StorageError(f"writing series {name}: {exc}") from exc
        return len(params)

    def list_series(self) -> List[Dict[str, Any]]:
        with self._lock:
            cur = self.con.execute(
                """
                SELECT series, COUNT(*) AS samples, MAX(received_utc) AS last_utc
                FROM samples GROUP BY series ORDER BY series
                """
            )
            rows = cur.fetchall()
        return [{"series": r[0], "samples": int(r[1]), "last_utc": r[2]} for r in rows]

    def fetch_series(self, name: str, limit: int = 1000, worker: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recent ``limit`` rows of a series, oldest first."""
        sql = "SELECT worker, value, received_utc FROM samples WHERE series = ?"
        params: List[Any] = [name]
        if worker:
            sql += " AND worker = ?"
            params.append(worker)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(int(limit))
        with self._lock:
            rows = self.con.execute(sql, params).fetchall()
        rows.reverse()
        return [{"worker": r[0], "value": r[1], "received_utc": r[2]} for r in rows]

    def count(self, name: Optional[str] = None) -> int:
        with self._lock:
            if name is None:
                row = self.con.execute("SELECT COUNT(*) FROM samples").fetchone()
            else:
                row = self.con.execute("SELECT COUNT(*) FROM samples WHERE series = ?", (name,)).fetchone()
        return int(row[0]) if row else 0
