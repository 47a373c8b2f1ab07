"""SQLite key-value store for records, sources and API keys.

Every value is a JSON envelope ``{"schema_version": N, "data": ...}``.
Payloads written before versioning (bare lists, camelCase field names) are
migrated on load.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, List, Optional, Sequence

from superscraper.config import DB_PATH, STORAGE_SCHEMA_VERSION
from superscraper.logging_config import get_logger
from superscraper.models import RawProductRecord, SourceConfig

__all__ = [
    "DEFAULT_DB_PATH",
    "RESULTS_KEY",
    "SOURCES_KEY",
    "API_KEYS_KEY",
    "get_connection",
    "init_db",
    "get_value",
    "set_value",
    "delete_value",
    "save_records",
    "load_records",
    "clear_records",
    "save_sources",
    "load_sources",
    "save_api_keys",
    "load_api_keys",
]

logger = get_logger("storage")

DEFAULT_DB_PATH = DB_PATH

RESULTS_KEY = "results"
SOURCES_KEY = "sources"
API_KEYS_KEY = "api_keys"


@contextmanager
def get_connection(db_path: str = DEFAULT_DB_PATH) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()


def _unwrap(key: str, raw: str) -> Any:
    payload = json.loads(raw)
    if isinstance(payload, dict) and "schema_version" in payload and "data" in payload:
        version = payload["schema_version"]
        if not isinstance(version, int) or version > STORAGE_SCHEMA_VERSION:
            raise ValueError(
                f"Stored '{key}' has schema version {version!r}, "
                f"newer than supported version {STORAGE_SCHEMA_VERSION}"
            )
        return payload["data"]
    logger.info(f"Migrating unversioned '{key}' payload")
    return payload


def get_value(key: str, db_path: str = DEFAULT_DB_PATH) -> Optional[Any]:
    """Decoded data under ``key``, or None when absent.

    Raises:
        ValueError: If the stored schema version is newer than this build.
    """
    init_db(db_path)
    with get_connection(db_path) as conn:
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return _unwrap(key, row["value"])


def set_value(key: str, data: Any, db_path: str = DEFAULT_DB_PATH) -> None:
    init_db(db_path)
    envelope = {"schema_version": STORAGE_SCHEMA_VERSION, "data": data}
    with get_connection(db_path) as conn:
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (key, json.dumps(envelope, ensure_ascii=False)),
        )
        conn.commit()


def delete_value(key: str, db_path: str = DEFAULT_DB_PATH) -> None:
    init_db(db_path)
    with get_connection(db_path) as conn:
        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()


def save_records(records: Sequence[RawProductRecord], db_path: str = DEFAULT_DB_PATH) -> None:
    set_value(RESULTS_KEY, [r.to_dict() for r in records], db_path)


def load_records(db_path: str = DEFAULT_DB_PATH) -> List[RawProductRecord]:
    data = get_value(RESULTS_KEY, db_path) or []
    return [RawProductRecord.from_dict(item) for item in data if isinstance(item, dict)]


def clear_records(db_path: str = DEFAULT_DB_PATH) -> None:
    delete_value(RESULTS_KEY, db_path)


def save_sources(sources: Sequence[SourceConfig], db_path: str = DEFAULT_DB_PATH) -> None:
    set_value(SOURCES_KEY, [s.to_dict() for s in sources], db_path)


def load_sources(db_path: str = DEFAULT_DB_PATH) -> Optional[List[SourceConfig]]:
    """Saved sources, or None when none were saved yet."""
    data = get_value(SOURCES_KEY, db_path)
    if data is None:
        return None
    return [SourceConfig.from_dict(item) for item in data if isinstance(item, dict)]


def save_api_keys(raw: str, db_path: str = DEFAULT_DB_PATH) -> None:
    """Store the user-supplied key string as typed (parsed on use)."""
    set_value(API_KEYS_KEY, raw or "", db_path)


def load_api_keys(db_path: str = DEFAULT_DB_PATH) -> str:
    data = get_value(API_KEYS_KEY, db_path)
    return data if isinstance(data, str) else ""
