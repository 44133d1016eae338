"""HTTP clients for the Netlify API and deploy preview pages."""

from .base_client import BaseHTTPClient, create_session
from .deploys_client import DeployListScan, DeploysAPIClient
from .network_error_handler import (
    DNSResolutionError,
    NetworkConnectionError,
    NetworkError,
    NetworkErrorHandler,
    NetworkTimeoutError,
    RateLimitError,
    RetryConfig,
    ServerError,
    SSLCertificateError,
)
from .preview_client import PreviewClient, PreviewResponse

__all__ = [
    "BaseHTTPClient",
    "create_session",
    "DeployListScan",
    "DeploysAPIClient",
    "DNSResolutionError",
    "NetworkConnectionError",
    "NetworkError",
    "NetworkErrorHandler",
    "NetworkTimeoutError",
    "RateLimitError",
    "RetryConfig",
    "ServerError",
    "SSLCertificateError",
    "PreviewClient",
    "PreviewResponse",
]
