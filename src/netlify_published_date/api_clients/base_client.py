"""Base HTTP client.

Provides the shared httpx session, request rate limiting and error
classification used by the deploy list and preview page clients.
"""

import asyncio
import logging
from typing import Any, Collection, Dict, Optional, Type

import httpx

from ..config import HttpConfig
from ..exceptions import APIClientError
from .network_error_handler import NetworkErrorHandler, RetryConfig

logger = logging.getLogger(__name__)


class BaseHTTPClient:
    """Base client with session management and common request handling."""

    error_class: Type[APIClientError] = APIClientError
    error_prefix = "Request failed."

    def __init__(
        self,
        http_config: Optional[HttpConfig] = None,
        session: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize base client.

        Args:
            http_config: Timeouts, limits and retry settings
            session: Existing session to share; it is not closed by this client
            transport: Transport for a session created by this client
        """
        self.http_config = http_config or HttpConfig()
        self._session = session
        self._owns_session = session is None
        self._transport = transport

        self._request_semaphore = asyncio.Semaphore(
            self.http_config.max_concurrent_requests
        )
        self._network_error_handler = NetworkErrorHandler()
        self._retry_config = RetryConfig(
            max_retries=self.http_config.max_retries,
            initial_delay=self.http_config.retry_delay,
            max_delay=self.http_config.max_retry_delay,
        )

    @property
    def session(self) -> httpx.AsyncClient:
        """Get or create the HTTP session."""
        if self._session is None or self._session.is_closed:
            self._session = create_session(self.http_config, self._transport)
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        url: str,
        allowed_statuses: Collection[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        """Make a request, retrying only when rate limited.

        Args:
            method: HTTP method
            url: Absolute URL
            allowed_statuses: Error statuses returned to the caller instead of raised
            **kwargs: Additional arguments for httpx request

        Returns:
            HTTP response with a 2xx status or one of ``allowed_statuses``

        Raises:
            NetworkError: On transport failures, 5xx and exhausted 429 retries
            APIClientError: On other error statuses (as ``error_class``)
        """

        async def send() -> httpx.Response:
            logger.debug(f"{method} {url}")
            try:
                response = await self.session.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                error = self._network_error_handler.classify_network_error(e, url)
                logger.error(f"{self.error_prefix} {error}")
                raise error from e

            logger.debug(f"HTTP {response.status_code} {response.reason_phrase} / {url}")
            if response.is_error and response.status_code not in allowed_statuses:
                logger.debug(f"headers of {url} / {dict(response.headers)}")
                raise self._network_error_handler.classify_status(
                    response, self.error_class, self.error_prefix
                )
            return response

        async with self._request_semaphore:
            response: httpx.Response = await self._network_error_handler.retry_with_backoff(
                send, self._retry_config
            )
            return response

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.is_closed:
            await self._session.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


def create_session(
    http_config: HttpConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an HTTP session configured from ``http_config``."""
    timeouts = httpx.Timeout(
        connect=http_config.connect_timeout,
        read=http_config.timeout,
        write=10.0,
        pool=5.0,
    )
    limits = httpx.Limits(
        max_connections=http_config.max_connections,
        max_keepalive_connections=http_config.max_keepalive_connections,
        keepalive_expiry=30.0,
    )
    kwargs: Dict[str, Any] = {}
    if transport is not None:
        kwargs["transport"] = transport

    return httpx.AsyncClient(
        timeout=timeouts,
        limits=limits,
        follow_redirects=http_config.follow_redirects,
        max_redirects=http_config.max_redirects,
        verify=True,
        **kwargs,
    )
