"""Resolution of latest, explicit, and interactively chosen entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from pfrog.errors import InvalidSelectionError, NotFoundError
from pfrog.metadata import format_timestamp
from pfrog.models import Choice, EntryRef
from pfrog.store.repository import EntryRepository

Chooser = Callable[[list[Choice]], str]


@dataclass(frozen=True)
class Latest:
    pass


@dataclass(frozen=True)
class ByVersion:
    version: int


@dataclass(frozen=True)
class Interactive:
    chooser: Chooser


Selector = Union[Latest, ByVersion, Interactive]


def build_choices(repository: EntryRepository, entries: list[EntryRef]) -> list[Choice]:
    choices: list[Choice] = []
    for index, entry in enumerate(entries, start=1):
        metadata = repository.read_metadata(entry.board, entry.part, entry.version)
        timestamp = None
        tag = None
        if metadata is not None:
            timestamp = format_timestamp(metadata.timestamp) if metadata.timestamp is not None else None
            tag = metadata.tag
        choices.append(Choice(index=index, name=entry.name, timestamp=timestamp, tag=tag))
    return choices


def parse_selection(reply: str, count: int) -> int:
    """Turn a 1-based reply into a list offset."""
    stripped = (reply or "").strip()
    if not (stripped.isascii() and stripped.isdigit()):
        raise InvalidSelectionError(f"invalid selection: {reply!r}")
    selected = int(stripped)
    if selected < 1 or selected > count:
        raise InvalidSelectionError(f"selection {selected} out of range 1-{count}")
    return selected - 1


def _entries_or_raise(repository: EntryRepository, board: str, part: str) -> list[EntryRef]:
    if not repository.part_exists(board, part):
        raise NotFoundError(f"'{board}/{part}' not found")
    entries = repository.list_entries(board, part)
    if not entries:
        raise NotFoundError(f"no artifacts found in '{board}/{part}'")
    return entries


def resolve(repository: EntryRepository, board: str, part: str, selector: Selector) -> EntryRef:
    entries = _entries_or_raise(repository, board, part)
    if isinstance(selector, Latest):
        return max(entries, key=lambda entry: entry.version)
    if isinstance(selector, ByVersion):
        for entry in entries:
            if entry.version == int(selector.version):
                return entry
        raise NotFoundError(f"version {selector.version} not found in '{board}/{part}'")
    if isinstance(selector, Interactive):
        choices = build_choices(repository, entries)
        reply = selector.chooser(choices)
        return entries[parse_selection(reply, len(entries))]
    raise TypeError(f"unsupported selector: {selector!r}")
