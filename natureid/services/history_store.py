"""
Volatile identification history, newest first, capped at `capacity` entries.

Lives for the process lifetime only. One instance is created by
services.api.create_app() and handed to the pipeline and the routes.
Sync routes run on FastAPI's threadpool, so every access goes through one lock.
"""
import threading
from typing import List, Optional

from natureid.orchestrator.contracts import HistoryEntry, HISTORY_FILTERS, MAX_HISTORY_ITEMS


class HistoryStore:
    def __init__(self, capacity: int = MAX_HISTORY_ITEMS):
        if capacity < 1:
            raise ValueError(f"history capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: List[HistoryEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, entry: HistoryEntry):
        with self._lock:
            self._items.insert(0, entry)
            if len(self._items) > self.capacity:
                del self._items[self.capacity:]

    def list(self, type_filter: str = "all") -> List[HistoryEntry]:
        """Snapshot copy in stored order. Entries themselves are frozen."""
        if type_filter not in HISTORY_FILTERS:
            raise ValueError(f"unknown history filter '{type_filter}' (expected one of {', '.join(HISTORY_FILTERS)})")
        with self._lock:
            if type_filter == "all":
                return list(self._items)
            return [e for e in self._items if e.type == type_filter]

    def clear(self):
        with self._lock:
            self._items = []

    def get_by_id(self, entry_id: str) -> Optional[HistoryEntry]:
        with self._lock:
            for e in self._items:
                if e.id == entry_id:
                    return e
        return None

    def delete_by_id(self, entry_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [e for e in self._items if e.id != entry_id]
            return len(self._items) != before
