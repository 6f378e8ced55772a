"""
Bounded history of finalized collection runs.
"""

import json
import logging
import threading
from typing import List, Optional, Tuple

from pydantic import ValidationError

from app.models.collection import HISTORY_LIMIT, CollectionRun
from app.services.storage_service import KeyValueStore

logger = logging.getLogger("app.history")

LAST_RUN_KEY = "collection:last"
HISTORY_KEY = "collection:history"


class HistoryStore:
    """
    Newest-first log of finalized collection runs.

    The key-value store may be shared by several processes (the API and the
    Celery worker). Every append re-reads the stored history and merges it
    with the runs held in memory before writing, so runs recorded by another
    process are kept. When the store cannot be read, the in-memory list is used.
    """

    def __init__(self, store: KeyValueStore, limit: int = HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("History limit must be positive")
        self._store = store
        self._limit = limit
        self._runs: List[CollectionRun] = []
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def load(self) -> int:
        """
        Restore history persisted by this or another process.

        Returns:
            Number of runs loaded
        """
        stored = self._read_stored()
        if stored is None:
            return 0

        with self._lock:
            self._runs = stored[: self._limit]
            count = len(self._runs)

        logger.info(f"Loaded {count} collection runs from storage")
        return count

    def append(self, run: CollectionRun) -> None:
        """
        Prepend a finalized run, evicting the oldest entries over the limit.

        Raises:
            ValueError: if the run is still collecting
        """
        if not run.is_finalized:
            raise ValueError(f"Cannot record unfinished collection run {run.id}")

        stored = self._read_stored()
        with self._lock:
            if stored is not None:
                self._runs = _merge(stored, self._runs)
            self._runs = [item for item in self._runs if item.id != run.id]
            self._runs.insert(0, run)
            del self._runs[self._limit :]
            runs = list(self._runs)

        self._persist(run, runs)

    def latest(self) -> Optional[CollectionRun]:
        with self._lock:
            return self._runs[0] if self._runs else None

    def all(self) -> Tuple[CollectionRun, ...]:
        with self._lock:
            return tuple(self._runs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def _read_stored(self) -> Optional[List[CollectionRun]]:
        """Finalized runs from the store, or None when it is unreadable or empty."""
        try:
            payload = self._store.get(HISTORY_KEY)
        except Exception as e:
            logger.error(f"Failed to load collection history: {e}")
            return None

        if not payload:
            return None

        try:
            raw_runs = json.loads(payload)
            runs = [CollectionRun.model_validate(item) for item in raw_runs]
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Ignoring corrupt collection history: {e}")
            return None

        return [run for run in runs if run.is_finalized]

    def _persist(self, run: CollectionRun, runs: List[CollectionRun]) -> None:
        history_payload = json.dumps([item.model_dump(mode="json") for item in runs]).encode("utf-8")
        try:
            self._store.set(LAST_RUN_KEY, run.model_dump_json().encode("utf-8"))
            self._store.set(HISTORY_KEY, history_payload)
        except Exception as e:
            logger.error(f"Failed to persist collection run {run.id}: {e}")


def _merge(stored: List[CollectionRun], local: List[CollectionRun]) -> List[CollectionRun]:
    """Union of both newest-first lists by run id, newest first."""
    known = {run.id for run in stored}
    merged = stored + [run for run in local if run.id not in known]
    # Stable sort keeps stored order for runs with equal timestamps
    return sorted(merged, key=lambda run: run.timestamp, reverse=True)
