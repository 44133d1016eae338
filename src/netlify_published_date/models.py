"""
Data models for deploy history and resolved dates.

Deploy records are validated with pydantic because they come straight from
the Netlify API; everything produced locally is a plain dataclass.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

logger = logging.getLogger(__name__)

# https://<id or label>--<site name>.netlify.(com|app)
_DEPLOY_URL_PATTERN = re.compile(
    r"^(https?://)(?:(?!--)[^.])+(--)([^.]+)(\.netlify\.(?:com|app))/?$"
)


@dataclass(frozen=True)
class Commit:
    """A commit from the first-parent log, newest first."""

    hash: str
    author_date: datetime
    commit_date: datetime


class Deploy(BaseModel):
    """A Netlify deploy record.

    See https://github.com/netlify/open-api/blob/v0.11.4/swagger.yml#L1723-L1793
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictStr = Field(..., description="Deploy ID")
    state: StrictStr = Field(..., description="Deploy state, e.g. 'ready'")
    name: StrictStr = Field(..., description="Site name")
    deploy_ssl_url: StrictStr = Field(..., description="HTTPS preview URL")
    created_at: StrictStr = Field(..., description="Creation timestamp")
    updated_at: StrictStr = Field(..., description="Last update timestamp")
    # Null for uploads without a commit, such as the very first deploy
    commit_ref: Optional[StrictStr] = Field(..., description="Git commit hash")
    # Null for branch deploys that were never published
    published_at: Optional[StrictStr] = Field(..., description="Publish timestamp")

    @property
    def is_ready(self) -> bool:
        return self.state == "ready"

    @property
    def deploy_absolute_url(self) -> str:
        """Preview root URL pinned to this deploy's own ID.

        ``deploy_ssl_url`` sometimes carries another deploy's ID (or a label
        such as ``deploy-preview-42``); the ID segment is rewritten only when
        the site name segment matches this deploy's name.
        """

        def replace(match: "re.Match[str]") -> str:
            scheme, hyphen, name, domain = match.groups()
            if name != self.name:
                return match.group(0)
            return f"{scheme}{self.id}{hyphen}{name}{domain}"

        return _DEPLOY_URL_PATTERN.sub(replace, self.deploy_ssl_url)

    @property
    def published_date(self) -> str:
        return published_date(self)


def published_date(deploy: Deploy) -> str:
    """Date a deploy went live: ``published_at``, else ``created_at``."""
    return deploy.published_at or deploy.created_at


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp into an aware datetime (UTC when unqualified)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparsable date: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class PreviewTarget:
    """A file whose dates should be resolved, and its URL path on the site."""

    filename: str
    url_path: str


@dataclass(frozen=True)
class FileDates:
    """Resolved date strings for one file.

    ``None`` means the page was never observed in any deploy; the caller's
    default ("now") applies.
    """

    published: Optional[str]
    modified: Optional[str]
