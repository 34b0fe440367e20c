"""
Key-Value Store
Durable byte-valued key/value capability behind the local cache
"""

import logging
from typing import Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface: get/set raw bytes by key"""

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used by tests and the --memory CLI flag"""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class SQLKeyValueStore(KeyValueStore):
    """
    Key-value table in a SQL database

    Usage:
        store = SQLKeyValueStore("sqlite:///scratch_game.db")
        store.set("prize_catalog", b"[38, 58, 88]")
    """

    TABLE = "game_kv_store"

    def __init__(self, database_or_engine):
        if isinstance(database_or_engine, Engine):
            self.engine = database_or_engine
        else:
            database_url = database_or_engine
            if database_url.startswith('postgres://'):
                database_url = database_url.replace('postgres://', 'postgresql://', 1)
            self.engine = create_engine(database_url, pool_pre_ping=True)
        self.setup()

    def setup(self):
        """Create the backing table if it does not exist"""
        value_type = "BYTEA" if self.engine.dialect.name == "postgresql" else "BLOB"
        with self.engine.begin() as conn:
            conn.execute(text(f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    key TEXT PRIMARY KEY,
                    value {value_type} NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))

    def get(self, key: str) -> Optional[bytes]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT value FROM {self.TABLE} WHERE key = :key"),
                {'key': key}
            ).fetchone()
        if row is None:
            return None
        value = row[0]
        if isinstance(value, str):
            return value.encode('utf-8')
        return bytes(value)

    def set(self, key: str, value: bytes) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(f"""
                INSERT INTO {self.TABLE} (key, value, updated_at)
                VALUES (:key, :value, CURRENT_TIMESTAMP)
                ON CONFLICT (key) DO UPDATE SET
                    value = EXCLUDED.value,
                    updated_at = CURRENT_TIMESTAMP
            """), {'key': key, 'value': bytes(value)})

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {self.TABLE}")).scalar() or 0
