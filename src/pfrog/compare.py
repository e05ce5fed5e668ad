"""Modification-time staleness check between a source directory and a stored archive.

The archive's mtime is forced to the source directory's mtime when it is
pushed, so comparing the two tells whether the directory was touched after
the snapshot was captured. It is a whole-second heuristic: clock skew or a
manual ``touch`` changes the answer, and equal mtimes say nothing about equal
contents.
"""

from __future__ import annotations

import os
from pathlib import Path

from pfrog.errors import InputError
from pfrog.models import Staleness

EXIT_CODES = {
    Staleness.IN_SYNC: 0,
    Staleness.SOURCE_NEWER: 1,
    Staleness.ARTIFACT_NEWER: 2,
}


def compare(source_mtime: float, artifact_mtime: float) -> Staleness:
    source_seconds = int(source_mtime)
    artifact_seconds = int(artifact_mtime)
    if source_seconds > artifact_seconds:
        return Staleness.SOURCE_NEWER
    if artifact_seconds > source_seconds:
        return Staleness.ARTIFACT_NEWER
    return Staleness.IN_SYNC


def source_mtime(path: Path) -> float:
    """Return the directory entry's own mtime, not the newest file below it."""
    if not path.is_dir():
        raise InputError(f"not a directory: {path}")
    try:
        return os.stat(path).st_mtime
    except OSError as exc:
        raise InputError(f"cannot stat {path}: {exc}") from exc
