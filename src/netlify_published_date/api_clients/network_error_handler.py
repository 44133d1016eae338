"""Network error handling for hosting API and preview requests.

Classifies httpx transport failures and HTTP error statuses into specific
exceptions, and retries rate-limited requests with exponential backoff.
Everything except rate limiting is fatal for a resolution run.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Type

import httpx

from ..exceptions import APIClientError

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry logic with exponential backoff."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_enabled: bool = True


class NetworkError(APIClientError):
    """Base exception for transport-level and classified HTTP failures."""

    pass


class NetworkConnectionError(NetworkError):
    """Exception raised for connection-related network failures."""

    pass


class NetworkTimeoutError(NetworkError):
    """Exception raised for timeout-related network failures."""

    pass


class DNSResolutionError(NetworkError):
    """Exception raised for DNS resolution failures."""

    pass


class SSLCertificateError(NetworkError):
    """Exception raised for SSL certificate verification failures."""

    pass


class ServerError(NetworkError):
    """Exception raised for server-side errors (5xx responses)."""

    pass


class RateLimitError(NetworkError):
    """Exception raised for rate limiting errors (429 responses)."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = 429,
        url: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code, url=url)
        self.retry_after = retry_after
        self.is_retryable = True


class NetworkErrorHandler:
    """Handles network error classification and retry logic."""

    def __init__(self):
        self._dns_error_patterns = [
            r"name.*resolution.*failed",
            r"name.*or.*service.*not.*known",
            r"nodename.*nor.*servname.*provided",
            r"temporary.*failure.*in.*name.*resolution",
        ]
        self._ssl_error_patterns = [
            r"ssl.*certificate.*verification.*failed",
            r"certificate.*verify.*failed",
            r"ssl.*handshake.*failed",
            r"bad.*certificate",
        ]

    def classify_network_error(self, error: Exception, url: str) -> NetworkError:
        """Map an httpx transport exception to a specific network error.

        Args:
            error: The original httpx exception
            url: URL of the failed request

        Returns:
            The classified exception, ready to be raised from ``error``
        """
        error_message = str(error).lower()

        if isinstance(error, httpx.ConnectError):
            if any(re.search(p, error_message) for p in self._dns_error_patterns):
                return DNSResolutionError(
                    f"Cannot resolve host address: {url} ; {error}", url=url
                )
            if any(re.search(p, error_message) for p in self._ssl_error_patterns):
                return SSLCertificateError(
                    f"SSL certificate verification failed: {url} ; {error}", url=url
                )
            return NetworkConnectionError(f"Connection failed: {url} ; {error}", url=url)
        if isinstance(error, httpx.TimeoutException):
            if isinstance(error, httpx.ConnectTimeout):
                return NetworkTimeoutError(f"Connection timed out: {url}", url=url)
            return NetworkTimeoutError(f"Request timed out: {url}", url=url)
        if isinstance(error, httpx.TooManyRedirects):
            return NetworkConnectionError(f"Too many redirects: {url}", url=url)
        return NetworkConnectionError(f"Network error: {url} ; {error}", url=url)

    def classify_status(
        self,
        response: httpx.Response,
        error_cls: Type[APIClientError],
        prefix: str,
    ) -> APIClientError:
        """Map an HTTP error response to an exception.

        Rate limiting and server errors get their own classes; any other
        status becomes ``error_cls``.
        """
        status_code = response.status_code
        url = str(response.url)
        detail = (
            f"{prefix} HTTP response status is: "
            f"{status_code} {response.reason_phrase} ; {url}"
        )

        if status_code == 429:
            retry_after: Optional[float] = None
            if "Retry-After" in response.headers:
                try:
                    retry_after = float(response.headers["Retry-After"])
                except ValueError:
                    retry_after = 60.0
            return RateLimitError(detail, retry_after=retry_after, url=url)
        if 500 <= status_code < 600:
            return ServerError(detail, status_code=status_code, url=url)
        return error_cls(detail, status_code=status_code, url=url)

    def is_error_retryable(self, error: Exception) -> bool:
        """Only rate limiting is retried; other failures abort the run."""
        return isinstance(error, RateLimitError)

    async def retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[Any]],
        config: RetryConfig,
    ) -> Any:
        """Execute operation with retry logic and exponential backoff.

        Args:
            operation: Async function to execute
            config: Retry configuration

        Returns:
            Result of successful operation

        Raises:
            Original exception if it is not retryable or retries are exhausted
        """
        for attempt in range(config.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_error_retryable(e) or attempt == config.max_retries:
                    raise

                delay = min(
                    config.initial_delay * (config.backoff_multiplier**attempt),
                    config.max_delay,
                )
                retry_after = getattr(e, "retry_after", None)
                if retry_after is not None:
                    delay = min(max(delay, retry_after), config.max_delay)
                if config.jitter_enabled:
                    delay = delay + delay * 0.1 * random.random()

                logger.warning(
                    f"Rate limited, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries}): {e}"
                )
                await asyncio.sleep(delay)

        raise RuntimeError("retry loop exited without result")
