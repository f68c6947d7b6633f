# src/omniflow/storage/collections.py

from __future__ import annotations

"""
Whole-collection durable stores.

Both backends implement the CollectionStore port:
- read_all(name)  -> list of JSON records in stored order
- write_all(name, records) -> replace the collection

Domain stores (tasks, workflows, leads) hold their own lock around each
read-modify-write cycle; the backends only guarantee that a single write is
all-or-nothing.
"""

import contextlib
import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any

from ..core.ports import Record
from ..errors import StorageError

logger = logging.getLogger(__name__)


def _check_name(collection: str) -> str:
    name = (collection or "").strip()
    if not name or not name.replace("_", "").replace("-", "").isalnum():
        raise StorageError(f"Invalid collection name: {collection!r}")
    return name


class JsonCollectionStore:
    """
    One JSON file per collection: <root>/<name>.json holding a list of records.

    Writes go to a temp file first and are moved into place with os.replace,
    so readers never see a half-written collection.
    """

    def __init__(self, root: str | Path = ".local/omniflow") -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self._root}") from e
        logger.info("JsonCollectionStore ready root=%s", self._root)

    def path_for(self, collection: str) -> Path:
        return self._root / f"{_check_name(collection)}.json"

    def read_all(self, collection: str) -> list[Record]:
        path = self.path_for(collection)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text("utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read collection {collection!r}") from e

        if not isinstance(data, list):
            raise StorageError(f"Collection {collection!r} is not a list")
        return [r for r in data if isinstance(r, dict)]

    def write_all(self, collection: str, records: list[Record]) -> None:
        path = self.path_for(collection)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(list(records), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageError(f"Failed to write collection {collection!r}") from e
        logger.debug("Collection written name=%s records=%d", collection, len(records))


class SqliteCollectionStore:
    """
    SQLite collection store.

    Layout: one table of (collection, position, record JSON).
    write_all replaces a collection inside a single transaction.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "omniflow.sqlite3") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open SQLite store {self._db_path}") from e
        logger.info("SqliteCollectionStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    collection TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    record TEXT NOT NULL,
                    PRIMARY KEY (collection, position)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _decode(raw: str) -> dict[str, Any] | None:
        try:
            val = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable record")
            return None
        return val if isinstance(val, dict) else None

    # ---- public API ----

    def read_all(self, collection: str) -> list[Record]:
        name = _check_name(collection)
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    "SELECT record FROM records WHERE collection = ? ORDER BY position ASC",
                    (name,),
                )
                rows = cur.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read collection {collection!r}") from e

        out: list[Record] = []
        for row in rows:
            rec = self._decode(row["record"])
            if rec is not None:
                out.append(rec)
        return out

    def write_all(self, collection: str, records: list[Record]) -> None:
        name = _check_name(collection)
        try:
            payload = [
                (name, i, json.dumps(rec, ensure_ascii=False)) for i, rec in enumerate(records)
            ]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Collection {collection!r} is not JSON-serializable") from e

        try:
            conn = self._get_conn()
            try:
                with conn:
                    conn.execute("DELETE FROM records WHERE collection = ?", (name,))
                    conn.executemany(
                        "INSERT INTO records(collection, position, record) VALUES (?, ?, ?)",
                        payload,
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write collection {collection!r}") from e
        logger.debug("Collection written name=%s records=%d", name, len(payload))


def open_collection_store(settings) -> JsonCollectionStore | SqliteCollectionStore:
    """Pick the backend named by settings.storage_backend (json by default)."""
    backend = str(getattr(settings, "storage_backend", "json") or "json").lower()
    if backend == "sqlite":
        return SqliteCollectionStore(settings.sqlite_path)
    if backend != "json":
        logger.warning("Unknown storage backend %r, using json", backend)
    return JsonCollectionStore(settings.data_dir)
