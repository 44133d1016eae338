"""Tests for PreviewCache in-memory and persistent modes."""

import json

from netlify_published_date.cache import (
    CachedNotFound,
    CachedPreviewResponse,
    PreviewCache,
)
from netlify_published_date.cache.preview_cache import PREVIEW_NAMESPACE

URL = "https://d1--example-site.netlify.app/index.html"


class TestInMemoryCache:
    """Without a cache directory entries live only in the instance."""

    def test_set_get_delete(self):
        cache = PreviewCache()
        entry = CachedPreviewResponse(body=b"<p>hi</p>", published="2019-01-01T00:00:00Z")

        assert cache.get(URL) is None
        cache.set(URL, entry)
        assert cache.get(URL) == entry
        assert cache.has(URL)

        cache.delete(URL)
        assert cache.get(URL) is None

    def test_save_is_noop(self, tmp_path):
        cache = PreviewCache()
        cache.set(URL, CachedNotFound())

        cache.save()

        assert not cache.is_persistent
        assert list(tmp_path.iterdir()) == []

    def test_clear(self):
        cache = PreviewCache()
        cache.set(URL, CachedNotFound())
        cache.clear()
        assert not cache.has(URL)


class TestPersistentCache:
    """With a cache directory entries survive across instances after save()."""

    def test_entries_persist_after_save(self, tmp_path):
        body = b"\x00\x01binary\xff"
        cache = PreviewCache(tmp_path)
        cache.set(URL, CachedPreviewResponse(body=body, published="2019-01-02T00:00:00Z"))
        cache.set(URL + "?missing", CachedNotFound())
        cache.save()

        reloaded = PreviewCache(tmp_path)

        assert reloaded.get(URL) == CachedPreviewResponse(
            body=body, published="2019-01-02T00:00:00Z"
        )
        assert reloaded.get(URL + "?missing") == CachedNotFound()

    def test_nothing_is_written_before_save(self, tmp_path):
        cache = PreviewCache(tmp_path)
        cache.set(URL, CachedNotFound())

        assert not (tmp_path / PREVIEW_NAMESPACE).exists()
        assert PreviewCache(tmp_path).get(URL) is None

    def test_document_layout(self, tmp_path):
        cache = PreviewCache(tmp_path)
        cache.set(URL, CachedPreviewResponse(body=b"abc", published="p"))
        cache.save()

        document = json.loads((tmp_path / PREVIEW_NAMESPACE).read_text(encoding="utf-8"))

        assert document == {
            URL: {
                "body": {"type": "Buffer", "data": "abc", "encoding": "utf-8"},
                "published": "p",
            }
        }

    def test_corrupt_entry_is_a_miss(self, tmp_path, caplog):
        cache_path = tmp_path / PREVIEW_NAMESPACE
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text(
            json.dumps(
                {
                    URL: {"body": {"type": "Buffer", "data": "%%%", "encoding": "base64"}, "published": "p"},
                    "other": {"body": "not tagged"},
                }
            ),
            encoding="utf-8",
        )

        cache = PreviewCache(tmp_path)

        assert cache.get(URL) is None
        assert cache.get("other") is None
        assert "corrupt cache entry" in caplog.text

    def test_unreadable_file_is_discarded(self, tmp_path, caplog):
        cache_path = tmp_path / PREVIEW_NAMESPACE
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text("{not json", encoding="utf-8")

        cache = PreviewCache(tmp_path)
        assert cache.get(URL) is None
        assert "Discarding unreadable preview cache" in caplog.text

        cache.set(URL, CachedNotFound())
        cache.save()
        assert PreviewCache(tmp_path).get(URL) == CachedNotFound()
