"""First-parent commit log of the repository being built."""

import asyncio
import logging
import re
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import Commit
from .utils.git_runner import run_git_command

logger = logging.getLogger(__name__)

_LOG_LINE = re.compile(r"^([0-9a-f]+) +([0-9]+) +([0-9]+)$", re.IGNORECASE)


def parse_commit_log(output: str) -> List[Commit]:
    """Parse ``git log --format='%H %at %ct'`` output, skipping other lines."""
    commits = []
    for line in output.splitlines():
        match = _LOG_LINE.match(line.strip())
        if not match:
            continue
        hash_, author_time, commit_time = match.groups()
        commits.append(
            Commit(
                hash=hash_,
                author_date=datetime.fromtimestamp(int(author_time), tz=timezone.utc),
                commit_date=datetime.fromtimestamp(int(commit_time), tz=timezone.utc),
            )
        )
    return commits


def get_first_parent_commits(cwd: Optional[Path] = None) -> List[Commit]:
    """Commits reachable through first parents from HEAD, newest first.

    Raises:
        subprocess.CalledProcessError: If git fails, e.g. outside a repository
    """
    result = run_git_command(
        ["git", "log", "--first-parent", "--format=%H %at %ct"],
        cwd=cwd or Path.cwd(),
    )
    commits = parse_commit_log(result.stdout)
    logger.debug(f"Read {len(commits)} first-parent commits")
    return commits


async def get_first_parent_commits_async(cwd: Optional[Path] = None) -> List[Commit]:
    """``get_first_parent_commits`` without blocking the event loop."""
    try:
        return await asyncio.to_thread(get_first_parent_commits, cwd)
    except subprocess.CalledProcessError as e:
        logger.error(f"git log failed: {e.stderr or e}")
        raise
