"""Per-file date cells for the deploy scan.

A cell is either ``Pending`` (its value may still move to an older deploy's
date) or ``Established`` (final). Transitions return new cells, and every
transition on an ``Established`` cell returns the cell itself, so a frozen
value can never be overwritten.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import ClassVar, DefaultDict, Iterable, Optional, Union


@dataclass(frozen=True)
class Pending:
    value: Optional[str] = None
    established: ClassVar[bool] = False

    def set(self, value: Optional[str]) -> "DateState":
        return Pending(value)

    def establish(self, value: Optional[str] = None) -> "DateState":
        return Established(self.value if value is None else value)


@dataclass(frozen=True)
class Established:
    value: Optional[str]
    established: ClassVar[bool] = True

    def set(self, value: Optional[str]) -> "DateState":
        return self

    def establish(self, value: Optional[str] = None) -> "DateState":
        return self


DateState = Union[Pending, Established]


@dataclass
class FileDateState:
    """The ``published`` and ``modified`` cells of one file."""

    published: DateState = field(default_factory=Pending)
    modified: DateState = field(default_factory=Pending)
    not_found_detected: bool = False

    @property
    def established(self) -> bool:
        return self.published.established and self.modified.established

    def establish_all(self) -> None:
        self.published = self.published.establish()
        self.modified = self.modified.establish()


def new_date_state_map(
    default: Optional[str] = None,
    filenames: Iterable[str] = (),
) -> DefaultDict[str, FileDateState]:
    """Map of filename to state, creating cells on first reference.

    Cells for ``filenames`` exist from the start, so files no deploy ever
    serves still resolve to ``default``.
    """

    def new_state() -> FileDateState:
        return FileDateState(published=Pending(default), modified=Pending(default))

    states: DefaultDict[str, FileDateState] = defaultdict(new_state)
    for filename in filenames:
        states[filename] = new_state()
    return states


def all_modified_established(states: Iterable[FileDateState]) -> bool:
    return all(state.modified.established for state in states)


def all_established(states: Iterable[FileDateState]) -> bool:
    return all(state.established for state in states)
