"""Persistence collaborators: key -> serialized blob"""

import logging
import sqlite3
from contextlib import closing
from typing import Dict, Optional

from .config import config

logger = logging.getLogger(__name__)


class Storage:
    """Interface the tracker persists through"""

    def load(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def save(self, key: str, blob: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class MemoryStorage(Storage):
    """Keeps blobs in a dict; used for tests and throwaway sessions"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def save(self, key: str, blob: str):
        self.blobs[key] = blob

    def delete(self, key: str):
        self.blobs.pop(key, None)


class SQLiteStorage(Storage):
    """Blobs in a single key/value table of a SQLite database"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        with closing(self._connect()) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS store_blobs (
                    key TEXT PRIMARY KEY,
                    blob TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()

    def load(self, key: str) -> Optional[str]:
        with closing(self._connect()) as conn:
            row = conn.execute('SELECT blob FROM store_blobs WHERE key = ?', (key,)).fetchone()
        return row['blob'] if row else None

    def save(self, key: str, blob: str):
        with closing(self._connect()) as conn:
            conn.execute(
                'INSERT INTO store_blobs (key, blob, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) '
                'ON CONFLICT(key) DO UPDATE SET blob = excluded.blob, updated_at = CURRENT_TIMESTAMP',
                (key, blob)
            )
            conn.commit()

    def delete(self, key: str):
        with closing(self._connect()) as conn:
            conn.execute('DELETE FROM store_blobs WHERE key = ?', (key,))
            conn.commit()


def create_storage(backend: Optional[str] = None, db_path: Optional[str] = None) -> Storage:
    """Build the storage backend named in the configuration"""
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == 'memory':
        return MemoryStorage()
    if backend == 'sqlite':
        path = db_path or config.DB_PATH
        logger.info("Using SQLite storage at %s", path)
        return SQLiteStorage(path)
    raise ValueError(f"Unknown storage backend: {backend}")
