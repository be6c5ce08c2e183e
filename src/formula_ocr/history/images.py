from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from formula_ocr.core.exceptions import HistoryError

if TYPE_CHECKING:
    import os

log = logging.getLogger(__name__)

_MIME_BY_SUFFIX = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}


def mime_for_path(path: str | os.PathLike[str]) -> str:
    """Guess the image MIME type from the file extension (PNG by default)."""
    return _MIME_BY_SUFFIX.get(Path(path).suffix.lower(), "image/png")


class ImageStore:
    """Directory of source images saved alongside the history file."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def save_png(self, stem: str, data: bytes) -> Path:
        """Write ``<stem>.png`` and return its path."""
        path = self._directory / f"{stem}.png"
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise HistoryError(f"Failed to save image {path.name}: {e}") from e
        log.debug("Saved image %s (%d bytes)", path, len(data))
        return path

    def read_data_url(self, path: str | os.PathLike[str]) -> str:
        """Return a ``data:<mime>;base64,...`` URL for a saved image."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise HistoryError(f"Failed to read image {path}: {e}") from e
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_for_path(path)};base64,{encoded}"
