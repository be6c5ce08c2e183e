"""Read-through cache over the history store.

The cache holds the last list read from (or written to) the store together
with the store's modification time. One lock guards both, so a reader never
sees new data paired with an old timestamp or the reverse. Mutations write
through synchronously and refresh the cached pair inside the same critical
section, which keeps them visible to the next ``get()`` even when the file
system's timestamp granularity would hide the change.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import threading
from typing import TYPE_CHECKING

from formula_ocr.core.exceptions import HistoryError

if TYPE_CHECKING:
    from formula_ocr.core.models import HistoryRecord
    from formula_ocr.history.store import HistoryStore

log = logging.getLogger(__name__)


class HistoryCache:
    """Thread-safe, mtime-invalidated view of the history list."""

    def __init__(self, store: HistoryStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._records: list[HistoryRecord] = []
        self._mtime: int | None = None

    @property
    def store(self) -> HistoryStore:
        return self._store

    def get(self) -> list[HistoryRecord]:
        """Return a private copy of the history list, newest first.

        The store is re-read only when its modification time differs from
        the cached one.
        """
        with self._lock:
            mtime = self._store.mtime()
            if self._mtime is not None and self._mtime == mtime:
                return _detached(self._records)
            records = self._store.read()
            self._records = records
            self._mtime = mtime
            log.debug("History cache refreshed (%d records)", len(records))
            return _detached(records)

    def find(self, record_id: str) -> HistoryRecord | None:
        return next((r for r in self.get() if r.id == record_id), None)

    def append(self, record: HistoryRecord) -> None:
        """Insert a record at the head of the list."""

        def _insert(records: list[HistoryRecord]) -> list[HistoryRecord]:
            return [record, *records]

        self._mutate(_insert)

    def update_title(self, record_id: str, title: str) -> None:
        self._mutate(_replacing(record_id, title=title))

    def update_favorite(self, record_id: str, is_favorite: bool) -> None:
        self._mutate(_replacing(record_id, is_favorite=is_favorite))

    def delete(self, record_id: str) -> None:
        def _remove(records: list[HistoryRecord]) -> list[HistoryRecord]:
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                raise _not_found(record_id)
            return kept

        self._mutate(_remove)

    def _mutate(
        self, change: Callable[[list[HistoryRecord]], list[HistoryRecord]]
    ) -> None:
        with self._lock:
            records = change(self._store.read())
            self._store.write(records)
            self._records = records
            self._mtime = self._store.mtime()


def _not_found(record_id: str) -> HistoryError:
    return HistoryError(f"Item with ID '{record_id}' not found")


def _replacing(
    record_id: str, **update: object
) -> Callable[[list[HistoryRecord]], list[HistoryRecord]]:
    def _apply(records: list[HistoryRecord]) -> list[HistoryRecord]:
        for i, record in enumerate(records):
            if record.id == record_id:
                updated = list(records)
                updated[i] = record.model_copy(update=update)
                return updated
        raise _not_found(record_id)

    return _apply


def _detached(records: list[HistoryRecord]) -> list[HistoryRecord]:
    # Nested analysis and verification models are mutable.
    return [r.model_copy(deep=True) for r in records]
