"""
netlify-published-date - page published/modified dates from Netlify deploy history.

Walks a site's previous deploys from newest to oldest, fetches each page as
it was served at that deploy, and compares it with the current build to find
when the page first appeared and when its content last changed.
"""

__version__ = "0.1.0"

PACKAGE_NAME = "netlify-published-date"

from .cache import PreviewCache  # noqa: E402
from .config import ConfigManager, HttpConfig, PublishedDateConfig  # noqa: E402
from .exceptions import (  # noqa: E402
    APIClientError,
    BuildPipelineError,
    ConfigurationError,
    DeployHistoryError,
    HookError,
    OptionError,
    PreviewFetchError,
    PublishedDateError,
)
from .lookup import DateResolver  # noqa: E402
from .models import Deploy, FileDates, PreviewTarget  # noqa: E402
from .options import HookContext, PublishedDateOptions  # noqa: E402
from .pipeline import BuildPipeline  # noqa: E402
from .plugin import PublishedDatePlugin, create_plugin  # noqa: E402

__all__ = [
    "APIClientError",
    "BuildPipeline",
    "BuildPipelineError",
    "ConfigManager",
    "ConfigurationError",
    "DateResolver",
    "Deploy",
    "DeployHistoryError",
    "FileDates",
    "HookContext",
    "HookError",
    "HttpConfig",
    "OptionError",
    "PreviewCache",
    "PreviewFetchError",
    "PreviewTarget",
    "PublishedDateConfig",
    "PublishedDateError",
    "PublishedDateOptions",
    "PublishedDatePlugin",
    "create_plugin",
]
