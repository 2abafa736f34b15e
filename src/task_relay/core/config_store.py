# Task Relay: Config Store
#
# Async key/value store the relay reads identity and task settings from
# and writes the ``enabled`` flag to. Two backends:
#
#   MemoryConfigStore  - dict-backed, for tests and embedding callers
#   SqliteConfigStore  - SQLite file (WAL mode), values JSON-encoded so
#                        booleans survive the round trip
#
# There is no transactional isolation across keys: concurrent dispatches
# and risk toggles may interleave, each upsert is atomic on its own.

import asyncio
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a key that has no stored value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class ConfigSnapshot(Mapping[str, Any]):
    """Read-only result of one ``ConfigStore.get`` call.

    Every requested key is present; absent ones map to ``MISSING``.
    """

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ConfigSnapshot({self._values!r})"

    def is_missing(self, key: str) -> bool:
        return self._values.get(key, MISSING) is MISSING

    def text(self, key: str) -> str:
        """Value as a string, ``""`` when missing or None."""
        value = self._values.get(key, MISSING)
        if value is MISSING or value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class ConfigStore(Protocol):
    """Async key/value contract consumed by the dispatcher and risk monitor."""

    async def get(self, keys: Iterable[str]) -> ConfigSnapshot:
        ...

    async def set(self, values: Mapping[str, Any]) -> None:
        ...


class MemoryConfigStore:
    """In-process store backed by a plain dict."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, keys: Iterable[str]) -> ConfigSnapshot:
        return ConfigSnapshot({k: self._data.get(k, MISSING) for k in keys})

    async def set(self, values: Mapping[str, Any]) -> None:
        self._data.update(values)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of everything stored (synchronous, for inspection)."""
        return dict(self._data)


class SqliteConfigStore:
    """SQLite-backed store.

    Blocking SQLite calls run in a worker thread so the event loop only
    suspends at the ``await`` boundary.

    Args:
        db_path: Path to SQLite file. Parent directories are created.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS relay_config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    # ── Sync primitives ──────────────────────────────────────────────

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT key, value FROM relay_config WHERE key IN ({placeholders})",
                keys,
            ).fetchall()
        found = {row["key"]: _decode(row["value"]) for row in rows}
        return {k: found.get(k, MISSING) for k in keys}

    def set_many(self, values: Mapping[str, Any]) -> None:
        now = datetime.utcnow().isoformat()
        with self._connect() as conn:
            conn.executemany(
                """INSERT INTO relay_config (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                [(k, json.dumps(v), now) for k, v in values.items()],
            )
            conn.commit()

    def get_all(self) -> Dict[str, Any]:
        """Return every stored key, sorted."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key, value FROM relay_config ORDER BY key"
            ).fetchall()
        return {row["key"]: _decode(row["value"]) for row in rows}

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM relay_config WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    # ── ConfigStore interface ────────────────────────────────────────

    async def get(self, keys: Iterable[str]) -> ConfigSnapshot:
        values = await asyncio.to_thread(self.get_many, list(keys))
        return ConfigSnapshot(values)

    async def set(self, values: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.set_many, dict(values))


def _decode(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        # Rows written by hand (sqlite3 shell) may hold bare strings
        logger.debug("Non-JSON config value, returning raw text")
        return raw
