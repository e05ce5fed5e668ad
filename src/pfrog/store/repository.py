"""Entry repository protocol and its directory-of-files backend."""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import AbstractContextManager
from pathlib import Path
from typing import BinaryIO, Protocol

from pfrog.errors import ConcurrentWriteRace, InputError, NotFoundError, StoreUnavailableError
from pfrog.metadata import format_metadata, parse_metadata
from pfrog.models import ARCHIVE_SUFFIX, LOCK_NAME, EntryRef, Metadata, meta_name, parse_entry_name
from pfrog.store.lock import part_lock

logger = logging.getLogger(__name__)


def validate_namespace(kind: str, value: str) -> str:
    """Check that a board or part name is a single plain path component."""
    if not isinstance(value, str) or not value.strip():
        raise InputError(f"{kind} name must not be empty")
    if value != value.strip():
        raise InputError(f"{kind} name must not have surrounding whitespace: {value!r}")
    if "/" in value or "\\" in value or "\0" in value:
        raise InputError(f"{kind} name must not contain path separators: {value!r}")
    if value.startswith("."):
        raise InputError(f"{kind} name must not start with '.': {value!r}")
    return value


class EntryRepository(Protocol):
    def ensure_part(self, board: str, part: str) -> None:
        ...

    def part_exists(self, board: str, part: str) -> bool:
        ...

    def list_boards(self) -> set[str]:
        ...

    def list_parts(self, board: str) -> set[str]:
        ...

    def list_entries(self, board: str, part: str) -> list[EntryRef]:
        ...

    def lock(self, board: str, part: str) -> AbstractContextManager[None]:
        ...

    def put_if_absent(self, entry: EntryRef, data: bytes, mtime: float | None = None) -> None:
        ...

    def open_entry(self, entry: EntryRef) -> BinaryIO:
        ...

    def read_entry(self, entry: EntryRef) -> bytes:
        ...

    def entry_mtime(self, entry: EntryRef) -> float:
        ...

    def entry_path(self, entry: EntryRef) -> Path | None:
        ...

    def read_metadata(self, board: str, part: str, version: int) -> Metadata | None:
        ...

    def write_metadata(
        self,
        board: str,
        part: str,
        version: int,
        metadata: Metadata,
        mtime: float | None = None,
    ) -> None:
        ...


def _write_atomic(target: Path, data: bytes, mtime: float | None, *, exclusive: bool) -> None:
    fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if mtime is not None:
            os.utime(tmp_path, (mtime, mtime))
        if exclusive and target.exists():
            raise ConcurrentWriteRace(f"entry already present: {target}")
        os.replace(tmp_path, str(target))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class DirectoryEntryRepository:
    """Entries laid out as ``<root>/<board>/<part>/<hash>_<version>.tar.gz``.

    The directory listing is the only index. Archives and metadata files are
    committed by writing a hidden temporary file in the part directory and
    renaming it onto the final name, so a concurrent reader either sees the
    complete file or nothing.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()

    def _board_dir(self, board: str) -> Path:
        return self.root / validate_namespace("board", board)

    def _part_dir(self, board: str, part: str) -> Path:
        return self._board_dir(board) / validate_namespace("part", part)

    def _entry_file(self, entry: EntryRef) -> Path:
        return self._part_dir(entry.board, entry.part) / entry.name

    def ensure_part(self, board: str, part: str) -> None:
        directory = self._part_dir(board, part)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(f"cannot create {directory}: {exc}") from exc

    def part_exists(self, board: str, part: str) -> bool:
        return self._part_dir(board, part).is_dir()

    def _child_dirs(self, directory: Path) -> set[str]:
        if not directory.is_dir():
            return set()
        try:
            children = list(directory.iterdir())
        except OSError as exc:
            raise StoreUnavailableError(f"cannot list {directory}: {exc}") from exc
        return {child.name for child in children if child.is_dir() and not child.name.startswith(".")}

    def list_boards(self) -> set[str]:
        if not self.root.is_dir():
            raise StoreUnavailableError(f"store root is not a directory: {self.root}")
        return self._child_dirs(self.root)

    def list_parts(self, board: str) -> set[str]:
        board_dir = self._board_dir(board)
        if not board_dir.is_dir():
            raise NotFoundError(f"board '{board}' not found")
        return self._child_dirs(board_dir)

    def list_entries(self, board: str, part: str) -> list[EntryRef]:
        directory = self._part_dir(board, part)
        if not directory.is_dir():
            return []
        try:
            names = os.listdir(directory)
        except OSError as exc:
            raise StoreUnavailableError(f"cannot list {directory}: {exc}") from exc
        entries: list[EntryRef] = []
        for name in names:
            if not name.endswith(ARCHIVE_SUFFIX):
                continue
            entry = parse_entry_name(board, part, name)
            if entry is not None:
                entries.append(entry)
        entries.sort(key=lambda item: (item.version, item.content_hash))
        return entries

    def lock(self, board: str, part: str) -> AbstractContextManager[None]:
        return part_lock(self._part_dir(board, part) / LOCK_NAME)

    def put_if_absent(self, entry: EntryRef, data: bytes, mtime: float | None = None) -> None:
        target = self._entry_file(entry)
        try:
            _write_atomic(target, data, mtime, exclusive=True)
        except OSError as exc:
            raise StoreUnavailableError(f"cannot write {target}: {exc}") from exc
        logger.debug("Committed %s (%d bytes)", target, len(data))

    def open_entry(self, entry: EntryRef) -> BinaryIO:
        target = self._entry_file(entry)
        try:
            return target.open("rb")
        except FileNotFoundError as exc:
            raise NotFoundError(f"entry not found: {entry.board}/{entry.part}/{entry.name}") from exc

    def read_entry(self, entry: EntryRef) -> bytes:
        with self.open_entry(entry) as handle:
            return handle.read()

    def entry_mtime(self, entry: EntryRef) -> float:
        target = self._entry_file(entry)
        try:
            return target.stat().st_mtime
        except FileNotFoundError as exc:
            raise NotFoundError(f"entry not found: {entry.board}/{entry.part}/{entry.name}") from exc

    def entry_path(self, entry: EntryRef) -> Path | None:
        return self._entry_file(entry)

    def read_metadata(self, board: str, part: str, version: int) -> Metadata | None:
        source = self._part_dir(board, part) / meta_name(version)
        try:
            text = source.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        return parse_metadata(text)

    def write_metadata(
        self,
        board: str,
        part: str,
        version: int,
        metadata: Metadata,
        mtime: float | None = None,
    ) -> None:
        target = self._part_dir(board, part) / meta_name(version)
        try:
            _write_atomic(target, format_metadata(metadata).encode("utf-8"), mtime, exclusive=False)
        except OSError as exc:
            raise StoreUnavailableError(f"cannot write {target}: {exc}") from exc
        logger.debug("Wrote metadata %s", target)
