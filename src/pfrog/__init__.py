"""Versioned, content-addressed build artifact store over a shared directory."""

from pfrog.errors import (
    ConcurrentWriteRace,
    CorruptArchiveError,
    InputError,
    IntegrityWarning,
    InvalidSelectionError,
    NotFoundError,
    PfrogError,
    StoreUnavailableError,
)
from pfrog.models import Choice, EntryRef, Metadata, PullResult, PushResult, Staleness
from pfrog.selector import ByVersion, Interactive, Latest
from pfrog.service import ArtifactStore

__all__ = [
    "ArtifactStore",
    "ByVersion",
    "Choice",
    "ConcurrentWriteRace",
    "CorruptArchiveError",
    "EntryRef",
    "InputError",
    "IntegrityWarning",
    "Interactive",
    "InvalidSelectionError",
    "Latest",
    "Metadata",
    "NotFoundError",
    "PfrogError",
    "PullResult",
    "PushResult",
    "Staleness",
    "StoreUnavailableError",
]
