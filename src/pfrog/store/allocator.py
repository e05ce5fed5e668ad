"""Version allocation for new content within a part."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from pfrog.models import EntryRef


@dataclass(frozen=True)
class Allocation:
    version: int
    existing: EntryRef | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.existing is not None


def allocate(entries: Iterable[EntryRef], content_hash: str) -> Allocation:
    """Decide where ``content_hash`` lands among the part's current entries.

    Known content maps back to its existing entry. New content gets one more
    than the highest version seen, so versions are never reused even if files
    were removed out of band.
    """
    max_version = 0
    existing: EntryRef | None = None
    for entry in entries:
        if entry.content_hash == content_hash and (existing is None or entry.version < existing.version):
            existing = entry
        max_version = max(max_version, entry.version)
    if existing is not None:
        return Allocation(version=existing.version, existing=existing)
    return Allocation(version=max_version + 1)
