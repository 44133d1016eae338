"""
Git command runner with dubious ownership handling.

CI checkouts are frequently owned by a different user than the one running
the build, which makes git refuse to read the repository. Commands run here
mark the working directory as a safe directory first.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Existing ``GIT_CONFIG_KEY_n``/``GIT_CONFIG_VALUE_n`` pairs are shifted up by
    one so that ``safe.directory`` can take index 0.

    Args:
        project_dir: Path to the project directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    env["GIT_CONFIG_COUNT"] = "1"
    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())

    config_count = 1
    for key in os.environ:
        if not key.startswith("GIT_CONFIG_KEY_"):
            continue
        idx = key.replace("GIT_CONFIG_KEY_", "")
        if idx.isdigit():
            new_idx = int(idx) + 1
            env[f"GIT_CONFIG_KEY_{new_idx}"] = os.environ[key]
            if f"GIT_CONFIG_VALUE_{idx}" in os.environ:
                env[f"GIT_CONFIG_VALUE_{new_idx}"] = os.environ[f"GIT_CONFIG_VALUE_{idx}"]
            config_count = max(config_count, new_idx + 1)

    env["GIT_CONFIG_COUNT"] = str(config_count)

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Run a git command with proper environment handling for dubious ownership.

    Args:
        cmd: Git command as a list (e.g., ["git", "log"])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess instance with text stdout/stderr

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    logger.debug(f"Running {' '.join(cmd)} in {cwd}")
    return subprocess.run(
        cmd,
        cwd=cwd,
        check=check,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=get_git_environment(cwd),
    )
