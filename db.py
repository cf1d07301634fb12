from __future__ import annotations

import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)

COLLECTIONS = ("customers", "products", "tasks", "invoices")


class StoreError(RuntimeError):
    """A document store call failed."""


class RecordNotFoundError(StoreError):
    pass


def _resolve_db_path() -> Path:
    # Priority:
    # 1) CRM_DB_PATH (explicit db file path)
    # 2) CRM_DATA_DIR/solar_crm.db (persistent data directory)
    # 3) local default beside this file
    explicit = (os.getenv("CRM_DB_PATH", "") or "").strip()
    if explicit:
        db_path = Path(explicit).expanduser()
    else:
        data_dir = (os.getenv("CRM_DATA_DIR", "") or "").strip()
        if data_dir:
            db_path = Path(data_dir).expanduser() / "solar_crm.db"
        else:
            db_path = Path(__file__).with_name("solar_crm.db")

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def server_timestamp() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


def _check_collection(collection: str) -> str:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")
    return collection


def _row_to_document(row: sqlite3.Row) -> dict:
    data = json.loads(row["data"])
    return {"id": row["id"], **data}


class DocumentStore:
    """
    Collection/id keyed document store backed by a single SQLite file.

    Documents are JSON objects. `add` assigns the id and stamps `created_at`;
    `update` merges the given fields and stamps `updated_at`. Every call opens
    its own connection, so a store can be shared with worker threads.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path) if db_path else _resolve_db_path()
        self.init_db()

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _run(self, action: str, fn):
        try:
            conn = self.get_connection()
            try:
                with conn:
                    return fn(conn)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.exception("Error %s", action)
            raise StoreError(f"Error {action}: {exc}") from exc

    def init_db(self) -> None:
        self._run(
            "initialising document store",
            lambda conn: conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT,
                    PRIMARY KEY (collection, id)
                );

                CREATE INDEX IF NOT EXISTS idx_documents_collection_created
                    ON documents (collection, created_at);

                CREATE TABLE IF NOT EXISTS app_settings (
                    setting_key TEXT PRIMARY KEY,
                    setting_value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
                """
            ),
        )

    def get_all(self, collection: str) -> list[dict]:
        _check_collection(collection)
        rows = self._run(
            f"getting {collection}",
            lambda conn: conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? ORDER BY created_at, rowid",
                (collection,),
            ).fetchall(),
        )
        return [_row_to_document(row) for row in rows]

    def get_by_id(self, collection: str, doc_id: str) -> dict | None:
        _check_collection(collection)
        row = self._run(
            f"getting {collection} record",
            lambda conn: conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone(),
        )
        if row is None:
            return None
        return _row_to_document(row)

    def add(self, collection: str, document: dict) -> str:
        _check_collection(collection)
        doc_id = _new_id()
        stamped = {key: value for key, value in document.items() if key != "id"}
        stamped["created_at"] = server_timestamp()

        self._run(
            f"adding {collection} record",
            lambda conn: conn.execute(
                "INSERT INTO documents (collection, id, data, created_at) VALUES (?, ?, ?, ?)",
                (collection, doc_id, json.dumps(stamped), stamped["created_at"]),
            ),
        )
        return doc_id

    def update(self, collection: str, doc_id: str, changes: dict) -> dict:
        """Merge `changes` into the stored document and return the merged document."""
        _check_collection(collection)

        def _update(conn: sqlite3.Connection) -> dict | None:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                return None
            merged = json.loads(row["data"])
            merged.update({key: value for key, value in changes.items() if key != "id"})
            merged["updated_at"] = server_timestamp()
            conn.execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (json.dumps(merged), merged["updated_at"], collection, doc_id),
            )
            return merged

        merged = self._run(f"updating {collection} record", _update)
        if merged is None:
            logger.error("Error updating %s record: %s not found", collection, doc_id)
            raise RecordNotFoundError(f"No {collection} record with id {doc_id}.")
        return {"id": doc_id, **merged}

    def delete(self, collection: str, doc_id: str) -> None:
        _check_collection(collection)
        self._run(
            f"deleting {collection} record",
            lambda conn: conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ),
        )

    def batch_delete(self, collection: str, doc_ids: Iterable[str]) -> int:
        _check_collection(collection)
        ids = [str(doc_id) for doc_id in doc_ids]

        def _delete(conn: sqlite3.Connection) -> int:
            deleted = 0
            for doc_id in ids:
                cur = conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                )
                deleted += cur.rowcount
            return deleted

        return self._run(f"batch deleting {collection}", _delete)

    def batch_update(self, collection: str, updates: Iterable[tuple[str, dict]]) -> None:
        """Apply several merges in one transaction; a missing id rolls back all of them."""
        _check_collection(collection)
        pending = list(updates)
        missing: list[str] = []

        def _update_all(conn: sqlite3.Connection) -> None:
            stamp = server_timestamp()
            for doc_id, changes in pending:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
                if row is None:
                    missing.append(doc_id)
                    conn.rollback()
                    return
                merged = json.loads(row["data"])
                merged.update({key: value for key, value in changes.items() if key != "id"})
                merged["updated_at"] = stamp
                conn.execute(
                    "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                    (json.dumps(merged), stamp, collection, doc_id),
                )

        self._run(f"batch updating {collection}", _update_all)
        if missing:
            logger.error("Error batch updating %s: %s not found", collection, missing[0])
            raise RecordNotFoundError(f"No {collection} record with id {missing[0]}.")

    def get_setting(self, key: str, default: str = "") -> str:
        row = self._run(
            "reading setting",
            lambda conn: conn.execute(
                "SELECT setting_value FROM app_settings WHERE setting_key = ?",
                (key.strip(),),
            ).fetchone(),
        )
        if row is None:
            return default
        return str(row["setting_value"])

    def set_setting(self, key: str, value: str) -> None:
        setting_key = key.strip()
        if not setting_key:
            raise ValueError("Setting key is required.")
        self._run(
            "saving setting",
            lambda conn: conn.execute(
                """
                INSERT INTO app_settings (setting_key, setting_value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(setting_key) DO UPDATE SET
                    setting_value = excluded.setting_value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (setting_key, str(value)),
            ),
        )

    def counts(self) -> dict[str, int]:
        rows = self._run(
            "counting documents",
            lambda conn: conn.execute(
                "SELECT collection, COUNT(*) AS row_count FROM documents GROUP BY collection"
            ).fetchall(),
        )
        found = {row["collection"]: int(row["row_count"]) for row in rows}
        return {collection: found.get(collection, 0) for collection in COLLECTIONS}
