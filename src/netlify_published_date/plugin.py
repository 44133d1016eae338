"""Build stage that sets ``published`` and ``modified`` metadata on pages."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from .api_clients import DeploysAPIClient, PreviewClient
from .cache import PreviewCache
from .config import PublishedDateConfig
from .git_log import get_first_parent_commits_async
from .lookup import DateResolver, date_to_value
from .models import Commit, PreviewTarget
from .options import HookContext, PublishedDateOptions
from .pipeline import BuildPipeline, Files, is_file, match_files
from .utils.url import path_to_url

logger = logging.getLogger(__name__)

CommitLog = Callable[[], Awaitable[List[Commit]]]


class PublishedDatePlugin:
    """Resolves dates for every matched page of a file map.

    An instance is itself a stage: ``await plugin(files)`` writes
    ``published`` and ``modified`` (aware datetimes, or the ``default_date``
    value) into each matched file and then runs the configured stages once
    over the real file map.
    """

    def __init__(
        self,
        config: Optional[PublishedDateConfig] = None,
        options: Optional[PublishedDateOptions] = None,
        cache: Optional[PreviewCache] = None,
        commit_log: Optional[CommitLog] = None,
        cwd: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the plugin.

        Args:
            config: Site, credentials, cache and HTTP settings
            options: Normalized caller hooks and stages
            cache: Preview cache; by default one for ``config.cache_dir``
            commit_log: Returns the first-parent commits used to select
                deploys; by default ``git log`` run in ``cwd``
            cwd: Repository directory for the default commit log
            transport: httpx transport shared by the API and preview clients
        """
        self.config = config or PublishedDateConfig()
        self.options = options or PublishedDateOptions()
        self.cache = cache or PreviewCache(self.config.cache_dir)
        self.commit_log = commit_log or (
            lambda: get_first_parent_commits_async(cwd)
        )
        self.transport = transport

    async def __call__(self, files: Files) -> Files:
        now = datetime.now(timezone.utc)
        filenames = match_files(
            [filename for filename, data in files.items() if is_file(data)],
            self.config.pattern,
        )
        logger.debug(f"Matched {len(filenames)} files: {filenames}")

        targets = []
        for filename in filenames:
            context = HookContext(
                files=files, filename=filename, file_data=files[filename]
            )
            url_path = await self.options.filename_to_url_path(filename, context)
            targets.append(
                PreviewTarget(filename=filename, url_path=path_to_url(url_path))
            )

        commits = await self.commit_log()
        logger.debug(f"got {len(commits)} commit hashes from git")

        async with DeploysAPIClient(
            self.config, transport=self.transport
        ) as deploys_client, PreviewClient(
            self.config.http, transport=self.transport
        ) as preview_client:
            resolver = DateResolver(
                deploys_client=deploys_client,
                preview_client=preview_client,
                cache=self.cache,
                options=self.options,
                now=now,
            )
            resolved = await resolver.resolve(
                targets, files, commit_hashes=[commit.hash for commit in commits]
            )

        for filename in filenames:
            dates = resolved[filename]
            file_data = files[filename]
            context = HookContext(files=files, filename=filename, file_data=file_data)
            file_data["published"] = await date_to_value(
                dates.published, self.options, context, now
            )
            file_data["modified"] = await date_to_value(
                dates.modified, self.options, context, now
            )
            logger.debug(
                f"{filename} / published: {file_data['published']} / "
                f"modified: {file_data['modified']}"
            )

        return await BuildPipeline(self.options.plugins).run(files)


def create_plugin(
    config: Union[PublishedDateConfig, Dict[str, Any], None] = None,
    **options: Any,
) -> PublishedDatePlugin:
    """Create the stage from a config (or config mapping) and hook options.

    Raises:
        OptionError: If a hook option has the wrong type or shape
        pydantic.ValidationError: If the config mapping is invalid
    """
    if config is None or isinstance(config, dict):
        config = PublishedDateConfig(**(config or {}))
    return PublishedDatePlugin(
        config=config, options=PublishedDateOptions.from_mapping(options)
    )
