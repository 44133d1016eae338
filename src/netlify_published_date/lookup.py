"""
Resolution of published and modified dates from deploy history.

Deploys are scanned newest to oldest. At each deploy the preview page of
every unresolved file is fetched (or read from the cache); the build
pipeline then renders a snapshot of the site as that deploy would have
rendered it, and the local output is compared against the preview. Each
file carries two ``DateState`` cells that advance to older deploy dates
until a 404 or a content difference establishes them.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    DefaultDict,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from .api_clients import DeploysAPIClient, PreviewClient
from .cache import CachedNotFound, CachedPreviewResponse, PreviewCache
from .date_state import (
    FileDateState,
    all_established,
    all_modified_established,
    new_date_state_map,
)
from .models import Deploy, FileDates, PreviewTarget, parse_date
from .options import HookContext, PublishedDateOptions
from .pipeline import BuildPipeline, Files, is_file
from .utils.url import join_url, preview_url_to_filename

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _gather_or_cancel(coros: Iterable[Awaitable[T]]) -> List[T]:
    """Run ``coros`` concurrently; the first failure cancels the rest.

    Siblings are awaited after cancellation so none of them outlives the
    call or keeps writing to shared state.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


@dataclass
class PreviewObservation:
    """A preview page that existed at the deploy being scanned."""

    target: PreviewTarget
    preview_url: str
    body: bytes
    published: str
    modified: Optional[str]
    cached_response: Optional[CachedPreviewResponse] = None

    @property
    def from_cache(self) -> bool:
        return self.cached_response is not None


async def date_to_value(
    value: Optional[str],
    options: PublishedDateOptions,
    context: HookContext,
    now: datetime,
) -> Any:
    """The metadata value for a resolved date string.

    Unresolved dates fall back to ``default_date`` and then to ``now``.
    """
    parsed = parse_date(value)
    if parsed is not None:
        return parsed
    default_date = options.default_date
    if default_date is None:
        return now
    if isinstance(default_date, datetime):
        return default_date
    return await default_date(context)


class DateResolver:
    """Resolves ``FileDates`` for a set of preview targets."""

    def __init__(
        self,
        deploys_client: DeploysAPIClient,
        preview_client: PreviewClient,
        cache: PreviewCache,
        options: Optional[PublishedDateOptions] = None,
        pipeline: Optional[BuildPipeline] = None,
        now: Optional[datetime] = None,
    ):
        self.deploys_client = deploys_client
        self.preview_client = preview_client
        self.cache = cache
        self.options = options or PublishedDateOptions()
        self.pipeline = pipeline or BuildPipeline(self.options.plugins)
        self.now = now or datetime.now(timezone.utc)

    async def resolve(
        self,
        targets: Sequence[PreviewTarget],
        files: Files,
        commit_hashes: Optional[Iterable[str]] = None,
        default: Optional[str] = None,
    ) -> Dict[str, FileDates]:
        """Scan the deploy history and resolve dates for ``targets``.

        Args:
            targets: Files to resolve and their URL paths
            files: The build's file map; it is never modified
            commit_hashes: First-parent commit hashes used to select deploys;
                None keeps every ready deploy
            default: Value of cells that no deploy ever set

        Returns:
            Map of filename to resolved date strings

        Raises:
            APIClientError: If the deploy list or a preview page returns an
                error status other than 404
            HookError: If a caller hook fails
            BuildPipelineError: If a transform stage fails
        """
        deploys = await self.deploys_client.list_deploys(commit_hashes)
        working: Files = dict(files)
        states = new_date_state_map(default, (target.filename for target in targets))
        cache_queue: DefaultDict[str, Dict[str, bytes]] = defaultdict(dict)
        not_found_urls: List[str] = []

        for deploy in deploys:
            active = [
                target
                for target in targets
                if target.filename in working
                and not states[target.filename].established
            ]
            if not active:
                break

            results = await _gather_or_cancel(
                self._fetch(
                    target, deploy, states[target.filename], cache_queue, not_found_urls
                )
                for target in active
            )
            for target, observation in zip(active, results):
                if observation is None:
                    working.pop(target.filename, None)

            compared = [
                observation
                for observation in results
                if observation is not None
                and not states[observation.target.filename].modified.established
            ]
            if compared:
                await self._compare(compared, working, targets, states, deploy)

            if all_modified_established(states.values()):
                logger.info(
                    f"All modified dates are established at deploy {deploy.id}; "
                    "skipping older deploys"
                )
                break
        else:
            logger.debug("Scanned the whole deploy history")

        self._store_cache(cache_queue, not_found_urls, states)

        resolved = {
            filename: FileDates(
                published=state.published.value, modified=state.modified.value
            )
            for filename, state in states.items()
        }
        if all_established(states.values()):
            logger.debug("Every date is established")
        return resolved

    async def _fetch(
        self,
        target: PreviewTarget,
        deploy: Deploy,
        state: FileDateState,
        cache_queue: DefaultDict[str, Dict[str, bytes]],
        not_found_urls: List[str],
    ) -> Optional[PreviewObservation]:
        """Fetch one preview page and advance ``published``.

        Returns None when the page did not exist at ``deploy``.
        """
        filename = target.filename
        preview_url = join_url(deploy.deploy_absolute_url, target.url_path)

        entry = self.cache.get(preview_url)
        if isinstance(entry, CachedNotFound):
            logger.debug(f"not found (cached) / {preview_url}")
            self._mark_not_found(filename, state)
            return None

        if isinstance(entry, CachedPreviewResponse):
            logger.debug(f"fetch from cache / {preview_url}")
            if not state.published.established:
                state.published = state.published.establish(entry.published)
                logger.debug(
                    f"{filename} / published date is established: {entry.published}"
                )
            return PreviewObservation(
                target=target,
                preview_url=preview_url,
                body=entry.body,
                published=entry.published,
                modified=state.modified.value,
                cached_response=entry,
            )

        logger.debug(f"GET {preview_url}")
        response = await self.preview_client.fetch(preview_url)
        if response.not_found:
            not_found_urls.extend(response.fetched_urls)
            self._mark_not_found(filename, state)
            return None

        body = response.body or b""
        for url in response.fetched_urls:
            cache_queue[filename][url] = body
            logger.debug(f"enqueue to queue / {url}")

        date = deploy.published_date
        state.published = state.published.set(date)
        # Both candidates are the deploy date; only the comparison decides modified
        return PreviewObservation(
            target=target,
            preview_url=preview_url,
            body=body,
            published=date,
            modified=date,
        )

    @staticmethod
    def _mark_not_found(filename: str, state: FileDateState) -> None:
        if not state.published.established:
            logger.debug(
                f"{filename} / published date and modified date is established: "
                f"{state.published.value} / {state.modified.value}"
            )
        state.establish_all()
        state.not_found_detected = True

    async def _compare(
        self,
        observations: List[PreviewObservation],
        working: Files,
        targets: Sequence[PreviewTarget],
        states: Dict[str, FileDateState],
        deploy: Deploy,
    ) -> None:
        """Render the site as of ``deploy`` and compare it with the previews."""
        snapshot = copy.deepcopy(working)

        for target in targets:
            if target.filename not in snapshot:
                continue
            state = states[target.filename]
            await self._set_metadata(
                snapshot, target.filename, state.published.value, state.modified.value
            )

        for observation in observations:
            filename = observation.target.filename
            file_data = snapshot.get(filename)
            if file_data is None:
                continue
            await self._set_metadata(
                snapshot, filename, observation.published, observation.modified
            )
            await self.options.metadata_updater(
                observation.body,
                file_data,
                self._preview_context(snapshot, observation, deploy, file_data),
            )

        built = await self.pipeline.run(snapshot)
        logger.debug(
            "generated files to compare to the preview pages of "
            f"{deploy.deploy_absolute_url}"
        )

        await _gather_or_cancel(
            self._compare_one(
                observation, built, states[observation.target.filename], deploy
            )
            for observation in observations
        )

    async def _compare_one(
        self,
        observation: PreviewObservation,
        built: Files,
        state: FileDateState,
        deploy: Deploy,
    ) -> None:
        filename = observation.target.filename
        output_filename = preview_url_to_filename(observation.preview_url, built.keys())
        if output_filename is None or not is_file(built[output_filename]):
            logger.warning(
                f"{filename} / no generated file corresponds to "
                f"{observation.preview_url}; skipping comparison at deploy {deploy.id}"
            )
            return

        file_data = built[output_filename]
        local_context = HookContext(
            files=built,
            filename=output_filename,
            file_data=file_data,
            deploy=deploy,
            preview_url=observation.preview_url,
            from_cache=observation.from_cache,
            cached_response=observation.cached_response,
        )
        preview_context = self._preview_context(built, observation, deploy, None)

        file_contents = await self.options.contents_converter(
            file_data["contents"], local_context
        )
        preview_contents = await self.options.contents_converter(
            observation.body, preview_context
        )

        equals = await self.options.contents_equals(
            file_contents, preview_contents, local_context
        )
        if equals:
            logger.debug(
                f"{filename} / matched the content of preview {observation.preview_url}"
            )
            state.modified = state.modified.set(deploy.published_date)
        else:
            logger.debug(
                f"{filename} / did not match the content of preview "
                f"{observation.preview_url}"
            )
            state.modified = state.modified.establish()
            logger.debug(
                f"{filename} / modified date is established: {state.modified.value}"
            )

    async def _set_metadata(
        self,
        files: Files,
        filename: str,
        published: Optional[str],
        modified: Optional[str],
    ) -> None:
        file_data = files[filename]
        context = HookContext(files=files, filename=filename, file_data=file_data)
        file_data["published"] = await date_to_value(
            published, self.options, context, self.now
        )
        file_data["modified"] = await date_to_value(
            modified, self.options, context, self.now
        )

    @staticmethod
    def _preview_context(
        files: Files,
        observation: PreviewObservation,
        deploy: Deploy,
        file_data: Optional[Dict[str, Any]],
    ) -> HookContext:
        return HookContext(
            files=files,
            filename=observation.target.filename,
            file_data=file_data,
            deploy=deploy,
            preview_url=observation.preview_url,
            from_cache=observation.from_cache,
            cached_response=observation.cached_response,
        )

    def _store_cache(
        self,
        cache_queue: Dict[str, Dict[str, bytes]],
        not_found_urls: List[str],
        states: Dict[str, FileDateState],
    ) -> None:
        """Write queued previews labelled with final published dates, then save."""
        for url in not_found_urls:
            self.cache.set(url, CachedNotFound())
            logger.debug(f"stored not found marker in cache / {url}")

        for filename, bodies in cache_queue.items():
            published = states[filename].published.value
            if not published:
                continue
            for url, body in bodies.items():
                self.cache.set(
                    url, CachedPreviewResponse(body=body, published=published)
                )
                logger.debug(f"stored in cache / {url}")

        self.cache.save()
        logger.info("Saved preview cache")

