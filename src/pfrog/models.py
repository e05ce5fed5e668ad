"""Shared typed models for store entries, provenance, and operation results."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

ARCHIVE_SUFFIX = ".tar.gz"
META_PREFIX = "md5"
META_SUFFIX = ".meta"
LOCK_NAME = ".lock"

ENTRY_NAME_RE = re.compile(r"^([0-9a-f]{32})_([1-9][0-9]*)" + re.escape(ARCHIVE_SUFFIX) + r"$")


@dataclass(frozen=True)
class EntryRef:
    board: str
    part: str
    content_hash: str
    version: int

    @property
    def name(self) -> str:
        return entry_name(self.content_hash, self.version)

    @property
    def meta_name(self) -> str:
        return meta_name(self.version)


@dataclass(frozen=True)
class Metadata:
    timestamp: datetime | None
    user: str
    tag: str | None = None
    commit: str | None = None


@dataclass(frozen=True)
class PushResult:
    entry: EntryRef
    created: bool
    dry_run: bool = False

    @property
    def name(self) -> str:
        return self.entry.name


@dataclass(frozen=True)
class PullResult:
    entry: EntryRef
    destination: Path
    mode: str
    delivered: bool
    integrity_ok: bool
    actual_hash: str


@dataclass(frozen=True)
class Choice:
    index: int
    name: str
    timestamp: str | None = None
    tag: str | None = None


class Staleness(str, Enum):
    SOURCE_NEWER = "source_newer"
    ARTIFACT_NEWER = "artifact_newer"
    IN_SYNC = "in_sync"


def entry_name(content_hash: str, version: int) -> str:
    return f"{content_hash}_{int(version)}{ARCHIVE_SUFFIX}"


def meta_name(version: int) -> str:
    return f"{META_PREFIX}_{int(version)}{META_SUFFIX}"


def parse_entry_name(board: str, part: str, name: str) -> EntryRef | None:
    """Return the entry encoded by an archive file name, or None for foreign files."""
    match = ENTRY_NAME_RE.match(name)
    if match is None:
        return None
    return EntryRef(
        board=board,
        part=part,
        content_hash=match.group(1),
        version=int(match.group(2)),
    )
