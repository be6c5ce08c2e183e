"""Image sources feeding the recognition orchestrator.

Every entry point (a file on disk, raw bytes from a capture, a base64
payload handed over by a UI) only has to produce a base64 string; the
orchestrator does the rest. Sources load lazily and blocking file reads
run off the event loop thread.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from formula_ocr.core.exceptions import ImageSourceError
from formula_ocr.core.types import _require

_DATA_URL_MARKER = ";base64,"


@runtime_checkable
class ImageSource(Protocol):
    """Anything that can produce a base64-encoded image payload."""

    async def load(self) -> str: ...


@dataclass(frozen=True, slots=True)
class Base64ImageSource:
    """An already encoded payload; a ``data:`` URL prefix is stripped."""

    payload: str

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.payload, str) and self.payload.strip() != "",
            message="must be a non-empty str",
            field_name="payload",
            exc=ImageSourceError,
        )

    async def load(self) -> str:
        payload = self.payload.strip()
        if payload.startswith("data:") and _DATA_URL_MARKER in payload:
            return payload.split(_DATA_URL_MARKER, 1)[1]
        return payload


@dataclass(frozen=True, slots=True)
class BytesImageSource:
    """Raw image bytes, e.g. PNG output of a screen capture."""

    data: bytes

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.data, bytes) and len(self.data) > 0,
            message="must be non-empty bytes",
            field_name="data",
            exc=ImageSourceError,
        )

    async def load(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True, slots=True)
class FileImageSource:
    """An image file on the local filesystem."""

    path: Path

    @classmethod
    def from_path(cls, path: str | Path) -> FileImageSource:
        return cls(Path(path))

    async def load(self) -> str:
        try:
            data = await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise ImageSourceError(f"Failed to read image {self.path}: {e}") from e
        if not data:
            raise ImageSourceError(f"Image file is empty: {self.path}")
        return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """Decode a base64 payload strictly.

    Raises:
        ImageSourceError: If the payload is empty or not valid base64.
    """
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise ImageSourceError(f"Image payload is not valid base64: {e}") from e
    if not data:
        raise ImageSourceError("Image payload is empty")
    return data
