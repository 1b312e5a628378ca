"""
Named storage slots for saved whiteboards.

A storage slot holds one serialized document under a string key, like the
browser's localStorage. Three backends share the same small interface:

  MemoryStorage   : process-local dict (default; used by tests)
  JsonFileStorage : one ``<key>.json`` file per slot, written atomically
  SqliteStorage   : a ``slots`` key/value table in a SQLite database
"""

import logging
import os
import re
import sqlite3
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .exceptions import StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r'^[A-Za-z0-9_.-]+$')


class StorageBackend(ABC):
    """Interface for named storage slots."""
    
    name = "abstract"
    
    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored text for a key, or None if the slot is empty."""
    
    @abstractmethod
    def write(self, key: str, value: str):
        """Store text under a key, overwriting any previous value."""
    
    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a slot. Returns False if it did not exist."""
    
    @abstractmethod
    def keys(self) -> List[str]:
        """List the occupied slot keys."""


class MemoryStorage(StorageBackend):
    """Slots held in a plain dict for the lifetime of the process."""
    
    name = "memory"
    
    def __init__(self):
        self._slots: Dict[str, str] = {}
    
    def read(self, key: str) -> Optional[str]:
        return self._slots.get(key)
    
    def write(self, key: str, value: str):
        self._slots[key] = value
    
    def delete(self, key: str) -> bool:
        return self._slots.pop(key, None) is not None
    
    def keys(self) -> List[str]:
        return sorted(self._slots)


class JsonFileStorage(StorageBackend):
    """One JSON file per slot inside a directory."""
    
    name = "file"
    
    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)
    
    def _path(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.directory, f"{key}.json")
    
    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as exc:
            raise StorageError(f"Failed to read slot {key}: {exc}", self.name) from exc
    
    def write(self, key: str, value: str):
        """Write to a temp file, then atomically rename over the slot."""
        path = self._path(key)
        tmp_path = path + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.error("Slot write failed for %s: %s", key, exc)
            raise StorageError(f"Failed to write slot {key}: {exc}", self.name) from exc
    
    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True
    
    def keys(self) -> List[str]:
        return sorted(
            name[:-len('.json')] for name in os.listdir(self.directory)
            if name.endswith('.json')
        )


class SqliteStorage(StorageBackend):
    """Slots stored as rows of a SQLite key/value table."""
    
    name = "sqlite"
    
    def __init__(self, db_path: str):
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = self._get_db()
        conn.close()
    
    def _get_db(self) -> sqlite3.Connection:
        """Return a connection, creating the slots table if needed."""
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute('PRAGMA journal_mode=WAL')
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS slots (
                    key           TEXT PRIMARY KEY,
                    value         TEXT NOT NULL,
                    updated_at    REAL NOT NULL
                );
            ''')
            conn.commit()
            return conn
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open {self.db_path}: {exc}", self.name) from exc
    
    def read(self, key: str) -> Optional[str]:
        conn = self._get_db()
        try:
            row = conn.execute('SELECT value FROM slots WHERE key = ?', (key,)).fetchone()
        finally:
            conn.close()
        return row['value'] if row else None
    
    def write(self, key: str, value: str):
        conn = self._get_db()
        try:
            conn.execute('''
                INSERT INTO slots (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value,
                       updated_at = excluded.updated_at
            ''', (key, value, time.time()))
            conn.commit()
        except sqlite3.Error as exc:
            logger.error("Slot write failed for %s: %s", key, exc)
            raise StorageError(f"Failed to write slot {key}: {exc}", self.name) from exc
        finally:
            conn.close()
    
    def delete(self, key: str) -> bool:
        conn = self._get_db()
        try:
            cursor = conn.execute('DELETE FROM slots WHERE key = ?', (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
    
    def keys(self) -> List[str]:
        conn = self._get_db()
        try:
            rows = conn.execute('SELECT key FROM slots ORDER BY key').fetchall()
        finally:
            conn.close()
        return [r['key'] for r in rows]
