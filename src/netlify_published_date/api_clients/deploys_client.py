"""Deploy list client for the Netlify API.

Pages through ``GET {api_root}/sites/{site_id}/deploys``, keeps the ready
deploys that belong to the current branch's history, and always includes
the site's initial deploy.

See https://docs.netlify.com/api/get-started/#deploys
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Set, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from ..config import PublishedDateConfig
from ..exceptions import DeployHistoryError
from ..models import Deploy, parse_date
from .base_client import BaseHTTPClient

logger = logging.getLogger(__name__)


@dataclass
class DeployListScan:
    """State of one pass over the paginated deploy list.

    The scan is ``Scanning(url)`` while ``url`` is set and ``Done`` once it is
    None. A page is never fetched twice, however its URL is spelled.
    """

    url: Optional[str]
    commit_hashes: Optional[Set[str]] = None
    visited: Set[str] = field(default_factory=set)
    last_url: Optional[str] = None
    initial_deploy: Optional[Deploy] = None
    matched: List[Deploy] = field(default_factory=list)
    matched_ids: Set[str] = field(default_factory=set)

    @property
    def done(self) -> bool:
        return self.url is None

    def visit(self, url: str) -> None:
        self.visited.add(page_key(url))

    def is_visited(self, url: str) -> bool:
        return page_key(url) in self.visited

    def advance(self, next_url: Optional[str]) -> None:
        """Pick the page to fetch after the current one."""
        if next_url and (self.commit_hashes is None or self.commit_hashes):
            candidate: Optional[str] = next_url
        elif self.last_url and self.initial_deploy is None:
            # Jump straight to the last page to find the initial deploy
            candidate = self.last_url
        else:
            candidate = None

        if candidate is not None and self.is_visited(candidate):
            candidate = None
        self.url = candidate

    def match(self, deploy: Deploy) -> bool:
        """Whether a ready deploy belongs to the build, consuming its commit."""
        if not deploy.is_ready or deploy.id in self.matched_ids:
            return False
        if self.commit_hashes is not None:
            if deploy.commit_ref is None or deploy.commit_ref not in self.commit_hashes:
                return False
            self.commit_hashes.discard(deploy.commit_ref)
        self.matched_ids.add(deploy.id)
        return True


class DeploysAPIClient(BaseHTTPClient):
    """Client for the Netlify deploy list."""

    error_class = DeployHistoryError
    error_prefix = "Request to Netlify API failed."

    def __init__(self, config: PublishedDateConfig, **kwargs: Any):
        super().__init__(config.http, **kwargs)
        self.config = config

    def deploys_url(self, site_id: Optional[str] = None) -> str:
        site = quote(site_id if site_id is not None else self.config.site_id, safe="")
        return f"{self.config.api_root}sites/{site}/deploys"

    async def list_deploys(
        self,
        commit_hashes: Optional[Iterable[str]] = None,
        site_id: Optional[str] = None,
    ) -> List[Deploy]:
        """Fetch the ready deploys relevant to this build, newest first.

        Args:
            commit_hashes: Restrict to deploys of these commits; None keeps
                every ready deploy
            site_id: Overrides the configured site ID

        Returns:
            Matched deploys sorted by ``created_at`` descending, followed by
            the initial deploy if it was not matched itself

        Raises:
            DeployHistoryError: If the API returns an error status other than 404
            NetworkError: On transport failures
        """
        scan = DeployListScan(
            url=self.deploys_url(site_id),
            commit_hashes=set(commit_hashes) if commit_hashes is not None else None,
        )
        logger.debug(f"start fetching first page: {scan.url}")

        while scan.url is not None:
            url = scan.url
            body, links = await self._fetch_page(url)
            scan.visit(url)

            previous_last_url = scan.last_url
            next_url = links.get("next")
            if links.get("last"):
                scan.last_url = links["last"]

            if isinstance(body, list):
                deploys = self._validate_records(body, url)
                matched = [deploy for deploy in deploys if scan.match(deploy)]
                logger.debug(
                    f"deploy list count: {len(deploys)} / matched: {len(matched)} / {url}"
                )
                scan.matched.extend(matched)

                is_last_page = not next_url or any(
                    last_url is not None and page_key(last_url) == page_key(url)
                    for last_url in (previous_last_url, scan.last_url)
                )
                if is_last_page and deploys:
                    last_deploy = deploys[-1]
                    if last_deploy.commit_ref is None and last_deploy.is_ready:
                        logger.debug(f"found the initial deploy {last_deploy.id} / {url}")
                        scan.initial_deploy = last_deploy
            else:
                if body is not None:
                    logger.warning(
                        f"Response body is not an array, treating page as empty: {url}"
                    )
                next_url = None

            scan.advance(next_url)
            if not scan.done:
                logger.debug(f"start fetching next page: {scan.url}")

        deploys = sorted(scan.matched, key=_created_at_key, reverse=True)
        if scan.initial_deploy is not None and all(
            deploy.id != scan.initial_deploy.id for deploy in deploys
        ):
            deploys.append(scan.initial_deploy)

        logger.info(f"Fetched {len(deploys)} deploys from {len(scan.visited)} pages")
        return deploys

    async def _fetch_page(self, url: str) -> Tuple[Any, dict]:
        headers = {}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"

        response = await self._request("GET", url, allowed_statuses=(404,), headers=headers)
        if response.status_code == 404:
            logger.warning(f"Deploy list page not found, treating page as empty: {url}")
            return None, {}

        try:
            body = response.json()
        except ValueError as e:
            raise DeployHistoryError(
                f"Netlify API returned invalid JSON from: {url}",
                status_code=response.status_code,
                url=url,
            ) from e

        return body, self._pagination_links(response, url)

    @staticmethod
    def _pagination_links(response: httpx.Response, url: str) -> dict:
        """Absolute ``next``/``last`` URLs from the ``Link`` header."""
        links = {}
        for rel in ("next", "last"):
            link = response.links.get(rel)
            if link and link.get("url"):
                links[rel] = urljoin(url, link["url"])
        if "link" not in response.headers:
            logger.debug(f'"Link" header not found in headers / {url}')
        else:
            logger.debug(f"pagination of {url} / {links}")
        return links

    @staticmethod
    def _validate_records(records: List[Any], url: str) -> List[Deploy]:
        deploys = []
        invalid = 0
        for record in records:
            try:
                deploys.append(Deploy.model_validate(record))
            except ValidationError:
                invalid += 1
        if invalid:
            logger.warning(f"Dropped {invalid} malformed deploy records from {url}")
        return deploys


def page_key(url: str) -> str:
    """``url`` normalized so every spelling of one page compares equal.

    The first page has no ``page`` parameter but ``Link`` headers name it
    ``page=1``; query parameters are sorted and the fragment is dropped.
    """
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.setdefault("page", "1")
    return urlunsplit(parts._replace(query=urlencode(sorted(query.items())), fragment=""))


def _created_at_key(deploy: Deploy) -> datetime:
    created = parse_date(deploy.created_at)
    if created is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return created
