"""
Failed Chunk Queue

In-memory record of chunks that could not be embedded or stored during an
ingestion pass, kept so a later retry pass can pick them up.

Design choices
--------------
- In-memory only (no persistence across process restarts).
- Entries grouped by file name, insertion order preserved.
- Thread-safe access using a re-entrant lock; ``drain`` is atomic.
- Copy-on-read semantics (callers cannot mutate internal state).
- Owned by the ingestion pipeline rather than living as a bare module global,
  so tests can build isolated instances.
"""

from __future__ import annotations

from threading import RLock
from typing import Dict, Iterable, List, Optional

from ..models import FailedChunk


class FailedChunkQueue:
    """
    Ordered store of FailedChunk entries keyed by file name.
    """

    def __init__(self) -> None:
        self._store: Dict[str, List[FailedChunk]] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def add(self, entry: FailedChunk) -> None:
        """
        Append one failed chunk to its file's list.
        """
        with self._lock:
            self._store.setdefault(entry.file_name, []).append(entry)

    def extend(self, entries: Iterable[FailedChunk]) -> None:
        with self._lock:
            for entry in entries:
                self.add(entry)

    def drain(self, file_name: Optional[str] = None) -> List[FailedChunk]:
        """
        Remove and return queued entries.

        Parameters
        ----------
        file_name : Optional[str]
            If given, only that file's entries are removed. Otherwise the
            whole queue is emptied.

        Returns
        -------
        List[FailedChunk]
            The removed entries, grouped by file in first-failure order.
        """
        with self._lock:
            if file_name is not None:
                return self._store.pop(file_name, [])

            drained = [entry for entries in self._store.values() for entry in entries]
            self._store.clear()
            return drained

    def snapshot(self, file_name: Optional[str] = None) -> List[FailedChunk]:
        """
        Return a copy of queued entries without removing them.
        """
        with self._lock:
            if file_name is not None:
                return list(self._store.get(file_name, []))
            return [entry for entries in self._store.values() for entry in entries]

    # ------------------------------------------------------------------
    # Utility operations
    # ------------------------------------------------------------------

    def count(self, file_name: Optional[str] = None) -> int:
        with self._lock:
            if file_name is not None:
                return len(self._store.get(file_name, []))
            return sum(len(entries) for entries in self._store.values())

    def counts_by_file(self) -> Dict[str, int]:
        """
        Return a mapping of file name to number of queued chunks.
        """
        with self._lock:
            return {name: len(entries) for name, entries in self._store.items()}

    def clear(self) -> None:
        """
        Drop every entry. Intended for test setup/teardown.
        """
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return self.count()
