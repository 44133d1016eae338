"""
Shared pytest fixtures for netlify-published-date tests.

Provides the in-process Netlify mock, configurations pointing at it, and
clients that talk to it through ``httpx.ASGITransport``.
"""

import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import pytest
import pytest_asyncio

from netlify_published_date.api_clients import DeploysAPIClient, PreviewClient
from netlify_published_date.config import HttpConfig, PublishedDateConfig
from netlify_published_date.models import Commit

from tests.infrastructure.netlify_mock_server import NetlifyMockServer


@pytest.fixture
def netlify() -> NetlifyMockServer:
    """Fresh Netlify mock with no deploys."""
    return NetlifyMockServer()


@pytest.fixture
def fast_http_config() -> HttpConfig:
    """HTTP settings with near-zero retry delays."""
    return HttpConfig(retry_delay=0.01, max_retry_delay=0.05, max_retries=2)


@pytest.fixture
def config(netlify: NetlifyMockServer, fast_http_config: HttpConfig) -> PublishedDateConfig:
    return PublishedDateConfig(
        site_id=netlify.site_id,
        access_token="test-token",
        api_root=netlify.api_root,
        http=fast_http_config,
    )


@pytest_asyncio.fixture
async def deploys_client(netlify, config):
    client = DeploysAPIClient(config, transport=netlify.transport())
    yield client
    await client.close()


@pytest_asyncio.fixture
async def preview_client(netlify, fast_http_config):
    client = PreviewClient(fast_http_config, transport=netlify.transport())
    yield client
    await client.close()


@pytest.fixture
def commit_log_for() -> Callable[[List[str]], Callable]:
    """Build a commit log callable returning the given hashes."""

    def build(hashes: List[str]) -> Callable:
        now = datetime.now(timezone.utc)
        commits = [Commit(hash=h, author_date=now, commit_date=now) for h in hashes]

        async def commit_log() -> List[Commit]:
            return commits

        return commit_log

    return build


def git_available() -> bool:
    return shutil.which("git") is not None


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Temporary git repository with identity configured."""
    if not git_available():
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    for cmd in (
        ["git", "init", "-q"],
        ["git", "config", "user.email", "test@example.com"],
        ["git", "config", "user.name", "Test User"],
        ["git", "config", "commit.gpgsign", "false"],
    ):
        subprocess.run(cmd, cwd=repo, check=True, capture_output=True)
    return repo


@pytest.fixture
def make_commit(git_repo: Path) -> Callable[[str, int], str]:
    """Create an empty commit at a Unix timestamp and return its hash."""

    def commit(message: str, timestamp: int) -> str:
        return git_commit(git_repo, message, timestamp)

    return commit


def git_commit(repo: Path, message: str, timestamp: int) -> str:
    env_date = f"{timestamp} +0000"
    subprocess.run(
        ["git", "commit", "-q", "--allow-empty", "-m", message],
        cwd=repo,
        check=True,
        capture_output=True,
        env={
            **os.environ,
            "GIT_AUTHOR_DATE": env_date,
            "GIT_COMMITTER_DATE": env_date,
        },
    )
    result = subprocess.run(
        ["git", "rev-parse", "HEAD"],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()
