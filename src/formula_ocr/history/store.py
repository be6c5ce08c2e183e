from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import TypeAdapter, ValidationError

from formula_ocr.core.exceptions import HistoryError
from formula_ocr.core.models import HistoryRecord

if TYPE_CHECKING:
    import os

log = logging.getLogger(__name__)

_RECORDS = TypeAdapter(list[HistoryRecord])


class HistoryStore(Protocol):
    def read(self) -> list[HistoryRecord]: ...

    def write(self, records: list[HistoryRecord]) -> None: ...

    def mtime(self) -> int: ...


class JSONHistoryStore:
    """History list persisted as one pretty-printed JSON array.

    Uses copy-on-write: write to a temp file and rename for atomicity.
    Records are stored newest first with camelCase keys:
      [{"id": ..., "latex": ..., "title": ..., "analysis": {...},
        "isFavorite": false, "createdAt": ..., "confidenceScore": ..., ...}]
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[HistoryRecord]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise HistoryError(f"Failed to read {self._path.name}: {e}") from e
        try:
            return _RECORDS.validate_json(raw)
        except ValidationError as e:
            raise HistoryError(
                f"Failed to deserialize {self._path.name}: {e}"
            ) from e

    def write(self, records: list[HistoryRecord]) -> None:
        data = [record.to_json_dict() for record in records]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(
                json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            Path.replace(tmp, self._path)
        except OSError as e:
            raise HistoryError(f"Failed to write {self._path.name}: {e}") from e
        log.debug("Wrote %d history records to %s", len(records), self._path)

    def mtime(self) -> int:
        """Modification time in nanoseconds; 0 when the file does not exist."""
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return 0
