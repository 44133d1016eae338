"""Preview response caching."""

from .preview_cache import (
    CachedNotFound,
    CachedPreviewResponse,
    CacheEntry,
    PreviewCache,
)

__all__ = ["CachedNotFound", "CachedPreviewResponse", "CacheEntry", "PreviewCache"]
