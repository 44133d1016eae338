"""Exception classes for published/modified date resolution."""

from typing import Optional


class PublishedDateError(Exception):
    """Base exception for date resolution errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(PublishedDateError):
    """Exception raised when a configuration file cannot be loaded."""

    pass


class OptionError(PublishedDateError, TypeError):
    """Exception raised when a caller option has the wrong type or shape."""

    def __init__(self, option: str, message: str, details: Optional[str] = None):
        super().__init__(message, details)
        self.option = option


class HookError(PublishedDateError):
    """Exception raised when a caller-supplied hook fails.

    The message names the option the hook was configured under and the file
    being processed when it failed.
    """

    def __init__(
        self,
        option: str,
        filename: Optional[str],
        message: str,
        details: Optional[str] = None,
    ):
        target = f" for file {filename!r}" if filename is not None else ""
        super().__init__(f'Option "{option}" failed{target}: {message}', details)
        self.option = option
        self.filename = filename


class APIClientError(PublishedDateError):
    """Exception raised when a remote request returns an error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.is_retryable: bool = False


class DeployHistoryError(APIClientError):
    """Exception raised when the hosting API deploy list cannot be fetched."""

    pass


class PreviewFetchError(APIClientError):
    """Exception raised when a historical preview page cannot be fetched."""

    pass


class BuildPipelineError(PublishedDateError):
    """Exception raised when a transform stage of the build pipeline fails."""

    def __init__(self, stage: str, message: str, details: Optional[str] = None):
        super().__init__(f"Stage {stage} failed: {message}", details)
        self.stage = stage
