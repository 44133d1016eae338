"""URL helpers for preview pages."""

import posixpath
import re
from typing import Iterable, Optional
from urllib.parse import quote, unquote, urlsplit


def join_url(root_url: str, url_path: str) -> str:
    """Append ``url_path`` to ``root_url`` with exactly one slash between them."""
    if url_path == "":
        return root_url
    return re.sub(r"/*$", "/", root_url, count=1) + re.sub(r"^/*", "", url_path, count=1)


def path_to_url(path: str) -> str:
    """Percent-encode each segment of a relative file path (RFC 3986)."""
    return "/".join(quote(segment, safe="") for segment in re.split(r"[\\/]", path))


def _normalize(path: str) -> str:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return "" if normalized == "." else normalized.lstrip("/")


def preview_url_to_filename(
    preview_url: str,
    filenames: Iterable[str],
) -> Optional[str]:
    """Find the build output file that is served at ``preview_url``.

    Tries the URL path as a file, then as a directory containing
    ``index.html``.
    """
    url_path = unquote(urlsplit(preview_url).path)
    candidates = [
        _normalize(url_path.lstrip("/")),
        _normalize(re.sub(r"/*$", "/index.html", url_path, count=1).lstrip("/")),
    ]
    by_path = {}
    for filename in filenames:
        by_path.setdefault(_normalize(filename), filename)

    for candidate in candidates:
        if candidate in by_path:
            return by_path[candidate]
    return None
