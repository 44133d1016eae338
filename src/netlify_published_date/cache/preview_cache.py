"""Preview page cache.

Historical preview pages never change, so a fetched body (or a 404) can be
reused by every later run. Entries are keyed by the literal URL fetched.

With a cache directory the entries live in one JSON document at
``<cache_dir>/<package name>/preview``, read on construction and written by
``save()`` only. Without one the cache is an in-process dict.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .. import PACKAGE_NAME
from .buffer_json import bytes_to_json, json_to_bytes

logger = logging.getLogger(__name__)

PREVIEW_NAMESPACE = f"{PACKAGE_NAME}/preview"


@dataclass(frozen=True)
class CachedPreviewResponse:
    """A cached preview body and the published date it was stored with."""

    body: bytes
    published: str


@dataclass(frozen=True)
class CachedNotFound:
    """The preview URL returned 404 Not Found."""

    published: str = ""


CacheEntry = Union[CachedPreviewResponse, CachedNotFound]


class PreviewCache:
    """Map of preview URL to cached response, optionally persisted."""

    def __init__(self, cache_dir: Optional[Path] = None):
        self.cache_path: Optional[Path] = (
            Path(cache_dir) / PREVIEW_NAMESPACE if cache_dir else None
        )
        self._memory: Dict[str, CacheEntry] = {}
        self._documents: Dict[str, Any] = {}
        if self.cache_path is not None:
            self._documents = self._load_documents(self.cache_path)

    @property
    def is_persistent(self) -> bool:
        return self.cache_path is not None

    def get(self, url: str) -> Optional[CacheEntry]:
        if self.cache_path is None:
            return self._memory.get(url)

        document = self._documents.get(url)
        if document is None:
            return None
        entry = self._document_to_entry(document)
        if entry is None:
            logger.warning(f"Ignoring corrupt cache entry for {url}")
        return entry

    def has(self, url: str) -> bool:
        return self.get(url) is not None

    def set(self, url: str, entry: CacheEntry) -> None:
        if self.cache_path is None:
            self._memory[url] = entry
        else:
            self._documents[url] = self._entry_to_document(entry)

    def delete(self, url: str) -> None:
        self._memory.pop(url, None)
        self._documents.pop(url, None)

    def clear(self) -> None:
        self._memory.clear()
        self._documents.clear()

    def save(self) -> None:
        """Write the cache document atomically; no-op for an in-memory cache."""
        if self.cache_path is None:
            return

        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.cache_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._documents, f)
            temp_path.replace(self.cache_path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise
        logger.debug(f"Saved {len(self._documents)} cache entries to {self.cache_path}")

    @staticmethod
    def _load_documents(cache_path: Path) -> Dict[str, Any]:
        if not cache_path.exists():
            return {}
        try:
            with open(cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Discarding unreadable preview cache {cache_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Discarding malformed preview cache {cache_path}")
            return {}
        return data

    @staticmethod
    def _entry_to_document(entry: CacheEntry) -> Dict[str, Any]:
        if isinstance(entry, CachedNotFound):
            return {"notFound": True, "published": entry.published}
        return {"body": bytes_to_json(entry.body), "published": entry.published}

    @staticmethod
    def _document_to_entry(document: Any) -> Optional[CacheEntry]:
        if not isinstance(document, dict):
            return None
        published = document.get("published")
        if not isinstance(published, str):
            return None
        if document.get("notFound") is True:
            return CachedNotFound(published)
        body = json_to_bytes(document.get("body"))
        if body is None:
            return None
        return CachedPreviewResponse(body=body, published=published)
