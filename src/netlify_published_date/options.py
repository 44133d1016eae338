"""
Normalization of caller-supplied hooks.

Every hook accepts several forms (a callable, an import string such as
``"mysite.dates:to_url"`` or ``"./hooks.py:to_url"``, and for some options a
declarative mapping) and is normalized into an async callable. Normalized
hooks check their return type and wrap any failure in ``HookError`` naming
the option and the file being processed.
"""

import importlib
import importlib.util
import inspect
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, Union

from .cache import CachedPreviewResponse
from .exceptions import HookError, OptionError, PublishedDateError
from .models import Deploy
from .pipeline import FileData, Files, Stage

logger = logging.getLogger(__name__)


@dataclass
class HookContext:
    """What a hook knows about the file and deploy it is called for.

    ``deploy`` and the preview fields are set only when the call concerns a
    page fetched from a historical deploy.
    """

    files: Files
    filename: Optional[str] = None
    file_data: Optional[FileData] = None
    deploy: Optional[Deploy] = None
    preview_url: Optional[str] = None
    from_cache: bool = False
    cached_response: Optional[CachedPreviewResponse] = None


UrlPathHook = Callable[[str, HookContext], Awaitable[str]]
ConverterHook = Callable[[bytes, HookContext], Awaitable[bytes]]
EqualsHook = Callable[[bytes, bytes, HookContext], Awaitable[bool]]
MetadataUpdaterHook = Callable[[bytes, FileData, HookContext], Awaitable[None]]
DefaultDate = Union[None, datetime, Callable[[HookContext], Any]]


def _default_filename_to_url_path(filename: str, context: HookContext) -> str:
    return filename


def _default_contents_converter(contents: bytes, context: HookContext) -> bytes:
    return contents


def _default_contents_equals(
    file: bytes, preview_page: bytes, context: HookContext
) -> bool:
    return file == preview_page


def _default_metadata_updater(
    preview_contents: bytes, file_data: FileData, context: HookContext
) -> None:
    return None


def import_object(target: str, option: str) -> Any:
    """Import ``"package.module:attr"`` or ``"path/to/file.py:attr"``."""
    if target == "":
        raise OptionError(option, f'"{option}" option must be a non-empty string')
    module_name, sep, attr = target.partition(":")
    if not sep or not attr:
        raise OptionError(
            option,
            f'Import string "{target}" specified in option "{option}" '
            'must have the form "module:attribute"',
        )

    try:
        if module_name.endswith(".py"):
            path = Path(module_name).resolve()
            module_spec = importlib.util.spec_from_file_location(path.stem, path)
            if module_spec is None or module_spec.loader is None:
                raise ImportError(f"cannot load {path}")
            module = importlib.util.module_from_spec(module_spec)
            module_spec.loader.exec_module(module)
        else:
            module = importlib.import_module(module_name)
    except Exception as e:
        raise OptionError(
            option,
            f'Failed to import module "{module_name}" specified in option "{option}"',
            str(e),
        ) from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise OptionError(
            option,
            f'Module "{module_name}" specified in option "{option}" '
            f'has no attribute "{attr}"',
        ) from e


def _resolve_callable(value: Any, option: str) -> Callable:
    if isinstance(value, str):
        func = import_object(value, option)
        if not callable(func):
            raise OptionError(
                option,
                f'"{value}" specified in option "{option}" is not callable: '
                f"{type(func).__name__}",
            )
        return func
    if callable(value):
        return value
    raise OptionError(
        option,
        f'The value of option "{option}" must be either a callable, or an '
        f"import string: {type(value).__name__}",
    )


def wrap_hook(
    option: str,
    func: Callable,
    returns: Optional[Union[Type, Tuple[Type, ...]]] = None,
) -> Callable[..., Awaitable[Any]]:
    """Make ``func`` async, type-checked and failure-wrapped.

    The last positional argument of every hook is its ``HookContext``.
    """

    async def hook(*args: Any) -> Any:
        context = args[-1]
        filename = getattr(context, "filename", None)
        try:
            value = func(*args)
            if inspect.isawaitable(value):
                value = await value
        except PublishedDateError:
            raise
        except Exception as e:
            raise HookError(option, filename, f"{type(e).__name__}: {e}") from e

        if returns is not None and not isinstance(value, returns):
            expected = (
                " or ".join(t.__name__ for t in returns)
                if isinstance(returns, tuple)
                else returns.__name__
            )
            raise HookError(
                option,
                filename,
                f"did not return {expected}: {type(value).__name__}",
            )
        return value

    hook.__wrapped__ = func  # type: ignore[attr-defined]
    return hook


def _url_path_from_metadata(schema: Any, option: str) -> Callable[[str, HookContext], str]:
    """
    ``{"metadata": "canonical"}`` or ``{"metadata": ["canonical", "path"]}``:
    use the first metadata field holding a string.
    """
    if isinstance(schema, str):
        field_names = [schema]
    elif isinstance(schema, list):
        if not schema:
            raise OptionError(
                option,
                f'The value of the "metadata" field specified in option "{option}" '
                "is an empty array",
            )
        if not all(isinstance(name, str) for name in schema):
            types = ", ".join(type(name).__name__ for name in schema)
            raise OptionError(
                option,
                f'The value of the "metadata" field specified in option "{option}" '
                f"is not an array of strings: [{types}]",
            )
        field_names = schema
    else:
        raise OptionError(
            option,
            f'The value of the "metadata" field specified in option "{option}" '
            f"is neither a string nor an array: {type(schema).__name__}",
        )

    def from_metadata(filename: str, context: HookContext) -> str:
        file_data = context.file_data or {}
        for name in field_names:
            value = file_data.get(name)
            if isinstance(value, str):
                return value
        raise ValueError(
            f"None of the metadata fields {', '.join(field_names)} "
            f'of file "{filename}" holds a string'
        )

    return from_metadata


def _url_path_from_replace(schema: Any, option: str) -> Callable[[str, HookContext], str]:
    """
    ``{"replace": {"fromRegExp": "\\.md$", "to": ".html"}}`` or
    ``{"replace": {"fromStr": "/index.html", "to": "/"}}``: rewrite the
    filename (first occurrence only).
    """
    if not isinstance(schema, dict):
        raise OptionError(
            option,
            f'The value of the "replace" field specified in option "{option}" '
            f"is not a mapping: {type(schema).__name__}",
        )
    if "fromRegExp" in schema and "fromStr" in schema:
        raise OptionError(
            option,
            f'The "replace" field of option "{option}" can not contain both '
            '"fromRegExp" and "fromStr"',
        )
    if "fromRegExp" not in schema and "fromStr" not in schema:
        raise OptionError(
            option,
            f'The "replace" field of option "{option}" must contain '
            '"fromRegExp" or "fromStr"',
        )
    to = schema.get("to")
    if not isinstance(to, str):
        raise OptionError(
            option,
            f'The "to" property of the "replace" field of option "{option}" '
            f"is not a string: {type(to).__name__}",
        )

    if "fromRegExp" in schema:
        source = schema["fromRegExp"]
        if not isinstance(source, str):
            raise OptionError(
                option,
                f'The "fromRegExp" property of the "replace" field of option '
                f'"{option}" is not a string: {type(source).__name__}',
            )
        try:
            pattern = re.compile(source)
        except re.error as e:
            raise OptionError(
                option,
                f'The "fromRegExp" property of the "replace" field of option '
                f'"{option}" is an invalid regular expression',
                str(e),
            ) from e
        return lambda filename, context: pattern.sub(to, filename, count=1)

    source = schema["fromStr"]
    if not isinstance(source, str):
        raise OptionError(
            option,
            f'The "fromStr" property of the "replace" field of option "{option}" '
            f"is not a string: {type(source).__name__}",
        )
    return lambda filename, context: filename.replace(source, to, 1)


def normalize_filename_to_url_path(value: Any) -> UrlPathHook:
    option = "filename_to_url_path"
    if value is None:
        return wrap_hook(option, _default_filename_to_url_path, str)
    if isinstance(value, dict):
        if "metadata" in value and "replace" in value:
            raise OptionError(
                option,
                f'Mapping of option "{option}" must not contain both '
                '"metadata" and "replace"',
            )
        if "metadata" in value:
            return wrap_hook(option, _url_path_from_metadata(value["metadata"], option), str)
        if "replace" in value:
            return wrap_hook(option, _url_path_from_replace(value["replace"], option), str)
        raise OptionError(
            option, f'Mapping of option "{option}" must contain "metadata" or "replace"'
        )
    return wrap_hook(option, _resolve_callable(value, option), str)


def normalize_contents_converter(value: Any) -> ConverterHook:
    option = "contents_converter"
    func = _default_contents_converter if value is None else _resolve_callable(value, option)
    return wrap_hook(option, func, bytes)


def normalize_contents_equals(value: Any) -> EqualsHook:
    option = "contents_equals"
    func = _default_contents_equals if value is None else _resolve_callable(value, option)
    return wrap_hook(option, func, bool)


def normalize_metadata_updater(value: Any) -> MetadataUpdaterHook:
    option = "metadata_updater"
    func = _default_metadata_updater if value is None else _resolve_callable(value, option)
    return wrap_hook(option, func, type(None))


def normalize_default_date(value: Any) -> DefaultDate:
    option = "default_date"
    if value is None or isinstance(value, datetime):
        return value
    return wrap_hook(option, _resolve_callable(value, option))


def normalize_plugins(value: Any) -> List[Stage]:
    """Stages from callables, import strings, or ``{import_string: options}``.

    Import strings name a stage factory; it is called with the options (or
    with no arguments for a bare string) and must return the stage.
    """
    option = "plugins"
    if value is None:
        return []
    if isinstance(value, dict):
        entries: List[Any] = [{name: opts} for name, opts in value.items()]
    elif isinstance(value, (list, tuple)):
        entries = list(value)
    else:
        raise OptionError(
            option,
            f'"{option}" option value must be a mapping or a list: '
            f"{type(value).__name__}",
        )

    stages: List[Stage] = []
    for entry in entries:
        if isinstance(entry, dict):
            for name, opts in entry.items():
                stages.append(_build_stage(name, option, opts, with_options=True))
        elif isinstance(entry, str):
            stages.append(_build_stage(entry, option, None, with_options=False))
        elif callable(entry):
            stages.append(entry)
        else:
            raise OptionError(
                option,
                f'Items of option "{option}" must be callables, import strings '
                f"or mappings: {type(entry).__name__}",
            )
    return stages


def _build_stage(name: str, option: str, opts: Any, with_options: bool) -> Stage:
    factory = _resolve_callable(name, option)
    try:
        stage = factory(opts) if with_options else factory()
    except Exception as e:
        raise OptionError(
            option, f'Plugin "{name}" specified in option "{option}" failed', str(e)
        ) from e
    if not callable(stage):
        raise OptionError(
            option,
            f'Plugin "{name}" specified in option "{option}" did not return '
            f"a callable: {type(stage).__name__}",
        )
    return stage


@dataclass
class PublishedDateOptions:
    """Normalized caller hooks."""

    filename_to_url_path: UrlPathHook = field(
        default_factory=lambda: normalize_filename_to_url_path(None)
    )
    contents_converter: ConverterHook = field(
        default_factory=lambda: normalize_contents_converter(None)
    )
    contents_equals: EqualsHook = field(
        default_factory=lambda: normalize_contents_equals(None)
    )
    metadata_updater: MetadataUpdaterHook = field(
        default_factory=lambda: normalize_metadata_updater(None)
    )
    default_date: DefaultDate = None
    plugins: List[Stage] = field(default_factory=list)

    @classmethod
    def from_raw(
        cls,
        filename_to_url_path: Any = None,
        contents_converter: Any = None,
        contents_equals: Any = None,
        metadata_updater: Any = None,
        default_date: Any = None,
        plugins: Any = None,
    ) -> "PublishedDateOptions":
        """Normalize every option; raises ``OptionError`` on the first bad one."""
        return cls(
            filename_to_url_path=normalize_filename_to_url_path(filename_to_url_path),
            contents_converter=normalize_contents_converter(contents_converter),
            contents_equals=normalize_contents_equals(contents_equals),
            metadata_updater=normalize_metadata_updater(metadata_updater),
            default_date=normalize_default_date(default_date),
            plugins=normalize_plugins(plugins),
        )

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "PublishedDateOptions":
        unknown = set(raw) - {
            "filename_to_url_path",
            "contents_converter",
            "contents_equals",
            "metadata_updater",
            "default_date",
            "plugins",
        }
        if unknown:
            raise OptionError(
                ", ".join(sorted(unknown)), f"Unknown options: {', '.join(sorted(unknown))}"
            )
        return cls.from_raw(**raw)
