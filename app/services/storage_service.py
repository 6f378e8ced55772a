"""
Key-value stores used to persist collection state across restarts.
"""

import logging
import threading
from contextlib import AbstractContextManager
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.storage import KeyValueEntry
from app.services.config_service import config_service
from app.services.errors import PersistenceError

logger = logging.getLogger("app.storage")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store; state is lost on restart."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)


class SqlKeyValueStore:
    """Store backed by the key_value_entries table."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager[Session]]):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                return bytes(entry.value) if entry is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read key {key}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    entry = KeyValueEntry(key=key, value=value)
                else:
                    entry.value = value
                entry.updated_at = config_service.now()
                db.add(entry)
                db.commit()
            logger.debug(f"Stored key {key} ({len(value)} bytes)")
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write key {key}: {e}") from e
