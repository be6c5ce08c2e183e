import json
import os
import threading

import pytest

from formula_ocr.core.exceptions import HistoryError
from formula_ocr.core.models import Analysis, HistoryRecord
from formula_ocr.history import HistoryCache, ImageStore, JSONHistoryStore, mime_for_path

pytestmark = pytest.mark.unit


def _record(record_id: str, **overrides) -> HistoryRecord:
    base = {
        "id": record_id,
        "latex": "x^2",
        "title": f"Formula {record_id}",
        "analysis": Analysis(summary="square"),
        "created_at": "2024-05-06T07:08:09+00:00",
        "confidence_score": 80,
        "original_image": f"/pictures/{record_id}.png",
    }
    return HistoryRecord(**{**base, **overrides})


class CountingStore(JSONHistoryStore):
    def __init__(self, path) -> None:
        super().__init__(path)
        self.reads = 0

    def read(self):
        self.reads += 1
        return super().read()


@pytest.fixture
def store(tmp_path) -> CountingStore:
    return CountingStore(tmp_path / "history.json")


def test_missing_file_reads_as_empty(store):
    assert store.read() == []
    assert store.mtime() == 0


def test_malformed_file_raises(store):
    store.path.write_text("{not json", encoding="utf-8")
    with pytest.raises(HistoryError, match="deserialize"):
        store.read()


def test_records_are_stored_with_camel_case_keys(store):
    store.write([_record("a", model_name="gemini-2.5-flash")])

    (raw,) = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["isFavorite"] is False
    assert raw["createdAt"] == "2024-05-06T07:08:09+00:00"
    assert raw["confidenceScore"] == 80
    assert raw["originalImage"] == "/pictures/a.png"
    assert raw["modelName"] == "gemini-2.5-flash"
    assert store.read() == [_record("a", model_name="gemini-2.5-flash")]


def test_write_leaves_no_temp_file(store):
    store.write([_record("a")])
    assert sorted(p.name for p in store.path.parent.iterdir()) == ["history.json"]


def test_get_without_change_does_not_reread(store):
    store.write([_record("a")])
    cache = HistoryCache(store)

    first = cache.get()
    second = cache.get()

    assert first == second == [_record("a")]
    assert store.reads == 1


def test_get_rereads_after_external_change(store):
    store.write([_record("a")])
    cache = HistoryCache(store)
    cache.get()

    store.write([_record("b"), _record("a")])
    stat = store.path.stat()
    os.utime(store.path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert [r.id for r in cache.get()] == ["b", "a"]
    assert store.reads == 2


def test_append_is_visible_immediately(store):
    cache = HistoryCache(store)
    cache.get()

    cache.append(_record("a"))
    cache.append(_record("b"))

    reads_before = store.reads
    assert [r.id for r in cache.get()] == ["b", "a"]
    assert store.reads == reads_before


def test_get_returns_a_copy(store):
    cache = HistoryCache(store)
    cache.append(_record("a"))
    cache.get().clear()
    assert len(cache.get()) == 1


def test_nested_models_cannot_alter_cached_history(store):
    cache = HistoryCache(store)
    cache.append(_record("a"))
    reads_before = store.reads

    record = cache.get()[0]
    record.analysis.summary = "tampered"
    record.analysis.variables.append(None)

    (cached,) = cache.get()
    assert store.reads == reads_before
    assert cached.analysis.summary == "square"
    assert cached.analysis.variables == []
    assert cache.find("a").analysis.summary == "square"
    assert store.read()[0].analysis.summary == "square"


def test_update_title_and_favorite(store):
    cache = HistoryCache(store)
    cache.append(_record("a"))
    cache.append(_record("b"))

    cache.update_title("a", "Renamed")
    cache.update_favorite("a", True)

    updated = cache.find("a")
    assert updated is not None
    assert (updated.title, updated.is_favorite) == ("Renamed", True)
    assert [r.id for r in store.read()] == ["b", "a"]
    assert store.read()[1].title == "Renamed"


def test_delete(store):
    cache = HistoryCache(store)
    cache.append(_record("a"))
    cache.append(_record("b"))

    cache.delete("a")

    assert [r.id for r in cache.get()] == ["b"]
    assert cache.find("a") is None


@pytest.mark.parametrize(
    "operation",
    [
        lambda cache: cache.update_title("missing", "t"),
        lambda cache: cache.update_favorite("missing", True),
        lambda cache: cache.delete("missing"),
    ],
)
def test_unknown_id_raises(store, operation):
    cache = HistoryCache(store)
    cache.append(_record("a"))

    with pytest.raises(HistoryError, match="Item with ID 'missing' not found"):
        operation(cache)
    assert [r.id for r in cache.get()] == ["a"]


def test_concurrent_appends_are_serialized(store):
    cache = HistoryCache(store)
    threads = [
        threading.Thread(target=cache.append, args=(_record(str(i)),)) for i in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.id for r in store.read()) == sorted(str(i) for i in range(20))


def test_image_store_round_trip(tmp_path):
    images = ImageStore(tmp_path / "pictures")
    path = images.save_png("20240506_070809_abc", b"\x89PNG data")

    assert path == tmp_path / "pictures" / "20240506_070809_abc.png"
    assert images.read_data_url(path) == "data:image/png;base64,iVBORyBkYXRh"


@pytest.mark.parametrize(
    ("name", "mime"),
    [
        ("a.jpg", "image/jpeg"),
        ("a.JPEG", "image/jpeg"),
        ("a.gif", "image/gif"),
        ("a.png", "image/png"),
        ("a.webp", "image/png"),
    ],
)
def test_mime_for_path(name, mime):
    assert mime_for_path(name) == mime


def test_read_missing_image_raises(tmp_path):
    with pytest.raises(HistoryError):
        ImageStore(tmp_path).read_data_url(tmp_path / "nope.png")
