"""Persistent recognition history: JSON store, read-through cache, images."""

from .cache import HistoryCache
from .images import ImageStore, mime_for_path
from .store import HistoryStore, JSONHistoryStore

__all__ = [
    "HistoryCache",
    "HistoryStore",
    "ImageStore",
    "JSONHistoryStore",
    "mime_for_path",
]
