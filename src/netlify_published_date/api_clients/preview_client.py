"""Client for pages served by historical deploy previews."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..exceptions import PreviewFetchError
from .base_client import BaseHTTPClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResponse:
    """Outcome of fetching one preview page.

    ``body`` is None when the page did not exist at that deploy (404).
    ``fetched_urls`` lists the requested URL and every redirect target.
    """

    url: str
    body: Optional[bytes]
    fetched_urls: List[str] = field(default_factory=list)
    response: Optional[httpx.Response] = None

    @property
    def not_found(self) -> bool:
        return self.body is None


class PreviewClient(BaseHTTPClient):
    """Fetches preview pages; no credentials are sent to preview hosts."""

    error_class = PreviewFetchError
    error_prefix = "Fetching preview page on Netlify failed."

    async def fetch(self, url: str) -> PreviewResponse:
        """GET a preview page.

        Raises:
            PreviewFetchError: On error statuses other than 404
            NetworkError: On transport failures
        """
        response = await self._request("GET", url, allowed_statuses=(404,))
        fetched_urls = _unique(
            [url] + [str(r.url) for r in response.history] + [str(response.url)]
        )

        if response.status_code == 404:
            logger.debug(f"preview page not found / {url}")
            return PreviewResponse(
                url=url, body=None, fetched_urls=fetched_urls, response=response
            )

        logger.debug(f"fetch is successful / {url}")
        return PreviewResponse(
            url=url,
            body=response.content,
            fetched_urls=fetched_urls,
            response=response,
        )


def _unique(urls: List[str]) -> List[str]:
    return list(dict.fromkeys(urls))
