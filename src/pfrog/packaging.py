"""Directory <-> tar.gz conversion used by push and extract-mode pull."""

from __future__ import annotations

import gzip
import io
import logging
import os
import tarfile
import zlib
from pathlib import Path
from typing import BinaryIO

from pfrog.errors import CorruptArchiveError, InputError

logger = logging.getLogger(__name__)


def validate_source_dir(source_dir: Path) -> Path:
    resolved = source_dir.expanduser()
    if not resolved.exists():
        raise InputError(f"'{source_dir}' does not exist")
    if not resolved.is_dir():
        raise InputError(f"'{source_dir}' is not a directory")
    if not os.access(resolved, os.R_OK | os.X_OK):
        raise InputError(f"'{source_dir}' is not readable")
    return resolved


def pack_directory(source_dir: Path) -> bytes:
    """Archive the contents of ``source_dir`` rooted at ``.``.

    Members are added in sorted order and the gzip header carries no
    timestamp, so an untouched directory always yields the same bytes.
    """
    resolved = validate_source_dir(source_dir)
    buffer = io.BytesIO()
    try:
        with gzip.GzipFile(filename="", mode="wb", fileobj=buffer, mtime=0) as compressed:
            with tarfile.open(fileobj=compressed, mode="w") as archive:
                archive.add(str(resolved), arcname=".")
    except OSError as exc:
        raise InputError(f"cannot read '{source_dir}': {exc}") from exc
    data = buffer.getvalue()
    logger.debug("Packed %s into %d bytes", resolved, len(data))
    return data


def extract_archive(stream: BinaryIO, destination: Path) -> None:
    """Unpack a tar.gz stream into ``destination``.

    A truncated or otherwise unreadable archive raises ``CorruptArchiveError``;
    members unpacked before the damage was hit stay in place.
    """
    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as archive:
            if hasattr(tarfile, "data_filter"):
                archive.extractall(destination, filter="data")
            else:
                archive.extractall(destination)
    except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile) as exc:
        raise CorruptArchiveError(f"cannot extract archive into {destination}: {exc}") from exc
    logger.debug("Extracted archive into %s", destination)
