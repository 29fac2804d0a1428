"""
History of opened items and per-path open counts.

Both stores are written only by the session's control thread. Background
query jobs read an immutable snapshot taken when the job starts, so later
writes never leak into a running job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from ..errors import StorageError
from ..models.items import HistoryEntry, IndexedItem
from .storage import HistoryFile, LookupCountFile


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistorySnapshot:
    """Read-only view of the history at one point in time."""
    entries: Tuple[HistoryEntry, ...] = ()
    latest_by_query: Mapping[str, HistoryEntry] = field(default_factory=dict)

    def find_exact(self, query_text: str) -> Optional[HistoryEntry]:
        return self.latest_by_query.get(query_text)

    def __len__(self) -> int:
        return len(self.entries)


class HistoryStore:
    """
    Ordered log of (query, opened item) pairs.

    Entries are kept in insertion order; entry_at() walks them newest first.
    While incognito is on, record() does nothing.

    Args:
        entries: Entries loaded from storage, oldest first
        storage: Optional file the store appends to on every record
    """

    def __init__(self, entries: Optional[List[HistoryEntry]] = None, storage: Optional[HistoryFile] = None):
        self._entries: List[HistoryEntry] = []
        self._latest_by_query: Dict[str, HistoryEntry] = {}
        self.storage = storage
        self.incognito = False
        for entry in entries or []:
            self._append(entry)

    @classmethod
    def load(cls, storage: HistoryFile) -> 'HistoryStore':
        """Build a store from its file. Raises StorageError on read failure."""
        return cls(storage.load(), storage=storage)

    def _append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)
        self._latest_by_query[entry.query_text] = entry

    def record(self, query_text: str, item: IndexedItem,
               timestamp: Optional[datetime] = None) -> Optional[HistoryEntry]:
        """
        Append an entry for an opened item.

        Returns:
            The new entry, or None while incognito
        """
        if self.incognito:
            logger.debug(f"Incognito, not recording open of {item.full_path}")
            return None

        entry = HistoryEntry(
            timestamp=timestamp or datetime.now(),
            query_text=query_text,
            selected_full_path=item.full_path,
            selected_name=item.name,
        )
        self._append(entry)

        if self.storage is not None:
            try:
                self.storage.append(entry)
            except StorageError as e:
                logger.error(f"History entry kept in memory only: {e}")

        return entry

    def toggle_incognito(self) -> bool:
        """Flip incognito mode and return the new value."""
        self.incognito = not self.incognito
        logger.info(f"Incognito {'on' if self.incognito else 'off'}")
        return self.incognito

    def find_exact(self, query_text: str) -> Optional[HistoryEntry]:
        """Most recent entry recorded for exactly this query text."""
        return self._latest_by_query.get(query_text)

    def entry_at(self, offset: int) -> Optional[HistoryEntry]:
        """Entry at offset from the newest (0 is the newest)."""
        if offset < 0 or offset >= len(self._entries):
            return None
        return self._entries[len(self._entries) - 1 - offset]

    def newest_first(self) -> List[HistoryEntry]:
        return list(reversed(self._entries))

    def snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            entries=tuple(self._entries),
            latest_by_query=MappingProxyType(dict(self._latest_by_query)),
        )

    def __len__(self) -> int:
        return len(self._entries)


class LookupCounter:
    """
    Open counts keyed by full path.

    Counts only grow, by exactly one per open; entries are never removed.

    Args:
        counts: Counts loaded from storage
        storage: Optional file rewritten after every increment
    """

    def __init__(self, counts: Optional[Dict[str, int]] = None, storage: Optional[LookupCountFile] = None):
        self._counts: Dict[str, int] = dict(counts or {})
        self.storage = storage

    @classmethod
    def load(cls, storage: LookupCountFile) -> 'LookupCounter':
        """Build a counter from its file. Raises StorageError on read failure."""
        return cls(storage.load(), storage=storage)

    def increment(self, full_path: str) -> int:
        """Add one open to a path and return the new count."""
        count = self._counts.get(full_path, 0) + 1
        self._counts[full_path] = count

        if self.storage is not None:
            try:
                self.storage.save(self._counts)
            except StorageError as e:
                logger.error(f"Lookup count kept in memory only: {e}")

        return count

    def get(self, full_path: str) -> int:
        return self._counts.get(full_path, 0)

    def snapshot(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self._counts))

    def __len__(self) -> int:
        return len(self._counts)
