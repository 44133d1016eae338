"""
Build pipeline collaborator.

A file map is ``{filename: file_data}`` where ``file_data`` is a dict holding
the rendered ``contents`` (bytes) plus arbitrary metadata. A stage is a
callable taking the file map; it may mutate the map in place and return None,
or return a replacement map. Stages may be coroutine functions.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union

import pathspec

from .exceptions import BuildPipelineError, PublishedDateError

logger = logging.getLogger(__name__)

FileData = Dict[str, Any]
Files = Dict[str, FileData]
Stage = Callable[[Files], Union[None, Files, Awaitable[Optional[Files]]]]


def is_file(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("contents"), bytes)


def match_files(files: Iterable[str], patterns: Optional[Sequence[str]]) -> List[str]:
    """Filenames matching gitwildmatch ``patterns``; ``!pattern`` excludes.

    With no patterns every filename matches.
    """
    filenames = list(files)
    if not patterns:
        return filenames
    path_spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    return [filename for filename in filenames if path_spec.match_file(filename)]


def stage_name(stage: Stage) -> str:
    return getattr(stage, "__qualname__", None) or repr(stage)


class BuildPipeline:
    """Runs transform stages over a file map, in order."""

    def __init__(self, stages: Sequence[Stage] = ()):
        self.stages: List[Stage] = list(stages)

    async def run(self, files: Files) -> Files:
        """Run every stage and return the transformed map.

        Raises:
            BuildPipelineError: If a stage raises or returns something other
                than None or a dict
        """
        for stage in self.stages:
            name = stage_name(stage)
            try:
                result = stage(files)
                if inspect.isawaitable(result):
                    result = await result
            except PublishedDateError:
                raise
            except Exception as e:
                raise BuildPipelineError(name, str(e)) from e

            if result is None:
                continue
            if not isinstance(result, dict):
                raise BuildPipelineError(
                    name, f"returned {type(result).__name__} instead of a file map"
                )
            files = result

        logger.debug(f"Ran {len(self.stages)} stages over {len(files)} files")
        return files
