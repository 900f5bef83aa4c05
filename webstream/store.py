# webstream/store.py
"""
Document store used for everything that must survive a restart.

Documents are JSON objects addressed by (collection, key). The SQLite backend
keeps them in a single ``documents`` table; ``MemoryStore`` is the same
contract over a dict and is what the tests run against.

Collections in use:
  • studentDetails  – one StudentRecord per registration number
  • activeSessions  – SessionRecord per token
  • users           – encrypted credential per registration number
  • cache           – static catalog snapshots
  • OD              – mirror of hour-wise attendance
"""
from __future__ import annotations

import copy
import json
import pathlib
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

STUDENT_DETAILS = "studentDetails"
ACTIVE_SESSIONS = "activeSessions"
USERS = "users"
CACHE = "cache"
OD = "OD"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    key        TEXT NOT NULL,
    data       TEXT NOT NULL,
    PRIMARY KEY (collection, key)
)
"""


class DocumentStore(ABC):
    @abstractmethod
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def set(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None: ...

    @abstractmethod
    def delete(self, collection: str, key: str) -> None: ...


class MemoryStore(DocumentStore):
    def __init__(self) -> None:
        self._docs: Dict[tuple, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, collection, key):
        with self._lock:
            doc = self._docs.get((collection, key))
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection, key, data, merge=False):
        with self._lock:
            base = self._docs.get((collection, key)) if merge else None
            merged = {**(base or {}), **copy.deepcopy(data)}
            self._docs[(collection, key)] = merged

    def delete(self, collection, key):
        with self._lock:
            self._docs.pop((collection, key), None)


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


_retry_locked = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception(_is_locked),
    reraise=True,
)


class SqliteStore(DocumentStore):
    """JSON documents in SQLite. Read-then-write merges are last-write-wins."""

    def __init__(self, db_path: pathlib.Path) -> None:
        self.db_path = pathlib.Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(SCHEMA)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5)
        conn.row_factory = sqlite3.Row
        return conn

    @_retry_locked
    def get(self, collection, key):
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND key = ?", (collection, key)
            ).fetchone()
        finally:
            conn.close()
        return json.loads(row["data"]) if row else None

    @_retry_locked
    def set(self, collection, key, data, merge=False):
        conn = self._connect()
        try:
            with conn:
                if merge:
                    row = conn.execute(
                        "SELECT data FROM documents WHERE collection = ? AND key = ?", (collection, key)
                    ).fetchone()
                    if row:
                        data = {**json.loads(row["data"]), **data}
                conn.execute(
                    "INSERT OR REPLACE INTO documents (collection, key, data) VALUES (?, ?, ?)",
                    (collection, key, json.dumps(data, ensure_ascii=False)),
                )
        finally:
            conn.close()

    @_retry_locked
    def delete(self, collection, key):
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM documents WHERE collection = ? AND key = ?", (collection, key))
        finally:
            conn.close()
