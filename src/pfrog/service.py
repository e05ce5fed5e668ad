"""Artifact store operations: push, resolve, pull, list, and staleness compare."""

from __future__ import annotations

import logging
import os
import tempfile
import warnings
from pathlib import Path
from typing import Callable

from pfrog.compare import compare, source_mtime
from pfrog.errors import InputError, IntegrityWarning
from pfrog.hashing import CHUNK_SIZE, hash_bytes, hash_stream, new_hasher
from pfrog.metadata import build_metadata, timestamp_from_mtime
from pfrog.models import EntryRef, Metadata, PullResult, PushResult, Staleness
from pfrog.packaging import extract_archive, pack_directory, validate_source_dir
from pfrog.selector import ByVersion, Chooser, Interactive, Latest, Selector, resolve
from pfrog.store.allocator import allocate
from pfrog.store.repository import DirectoryEntryRepository, EntryRepository, validate_namespace

logger = logging.getLogger(__name__)


class ArtifactStore:
    def __init__(self, repository: EntryRepository) -> None:
        self.repository = repository

    @classmethod
    def at(cls, root: Path) -> "ArtifactStore":
        return cls(DirectoryEntryRepository(root))

    def push(
        self,
        board: str,
        part: str,
        archive: bytes,
        metadata: Metadata | None = None,
        *,
        mtime: float | None = None,
        dry_run: bool = False,
    ) -> PushResult:
        """Store ``archive`` under the next free version unless its content is already known.

        A dry run scans without the lock and writes nothing, so its answer can
        be overtaken by a concurrent push before the caller acts on it.
        """
        validate_namespace("board", board)
        validate_namespace("part", part)
        content_hash = hash_bytes(archive)

        if dry_run:
            allocation = allocate(self.repository.list_entries(board, part), content_hash)
            entry = allocation.existing or EntryRef(board, part, content_hash, allocation.version)
            logger.info(
                "[dry] %s/%s would %s %s",
                board,
                part,
                "reuse" if allocation.is_duplicate else "store",
                entry.name,
            )
            return PushResult(entry=entry, created=not allocation.is_duplicate, dry_run=True)

        self.repository.ensure_part(board, part)
        with self.repository.lock(board, part):
            allocation = allocate(self.repository.list_entries(board, part), content_hash)
            if allocation.existing is not None:
                logger.info("Already exists: %s/%s/%s", board, part, allocation.existing.name)
                return PushResult(entry=allocation.existing, created=False)

            entry = EntryRef(board, part, content_hash, allocation.version)
            self.repository.put_if_absent(entry, archive, mtime=mtime)
            record = metadata if metadata is not None else build_metadata()
            self.repository.write_metadata(board, part, entry.version, record, mtime=mtime)

        logger.info("Stored: %s/%s/%s", board, part, entry.name)
        return PushResult(entry=entry, created=True)

    def push_directory(
        self,
        board: str,
        part: str,
        source_dir: Path,
        *,
        user: str | None = None,
        tag: str | None = None,
        commit: str | None = None,
        dry_run: bool = False,
    ) -> PushResult:
        resolved = validate_source_dir(source_dir)
        snapshot_mtime = float(int(source_mtime(resolved)))
        archive = pack_directory(resolved)
        metadata = build_metadata(
            timestamp=timestamp_from_mtime(snapshot_mtime),
            user=user,
            tag=tag,
            commit=commit,
        )
        return self.push(board, part, archive, metadata, mtime=snapshot_mtime, dry_run=dry_run)

    def resolve(self, board: str, part: str, selector: Selector) -> EntryRef:
        validate_namespace("board", board)
        validate_namespace("part", part)
        return resolve(self.repository, board, part, selector)

    def resolve_latest(self, board: str, part: str) -> EntryRef:
        return self.resolve(board, part, Latest())

    def resolve_version(self, board: str, part: str, version: int) -> EntryRef:
        try:
            number = int(version)
        except (TypeError, ValueError) as exc:
            raise InputError(f"version must be a positive integer: {version!r}") from exc
        if number < 1:
            raise InputError(f"version must be a positive integer: {version!r}")
        return self.resolve(board, part, ByVersion(number))

    def resolve_interactive(self, board: str, part: str, chooser: Chooser) -> EntryRef:
        return self.resolve(board, part, Interactive(chooser))

    def list_boards(self) -> set[str]:
        return self.repository.list_boards()

    def list_parts(self, board: str) -> set[str]:
        validate_namespace("board", board)
        return self.repository.list_parts(board)

    def list_entries(self, board: str, part: str) -> list[EntryRef]:
        validate_namespace("board", board)
        validate_namespace("part", part)
        return self.repository.list_entries(board, part)

    def read_metadata(self, entry: EntryRef) -> Metadata | None:
        return self.repository.read_metadata(entry.board, entry.part, entry.version)

    def verify(self, entry: EntryRef) -> tuple[bool, str]:
        with self.repository.open_entry(entry) as handle:
            actual = hash_stream(handle)
        return self._report_integrity(entry, actual), actual

    def _report_integrity(self, entry: EntryRef, actual: str) -> bool:
        if actual == entry.content_hash:
            return True
        message = f"MD5 mismatch for {entry.board}/{entry.part}/{entry.name} ({entry.content_hash} != {actual})"
        logger.warning("%s", message)
        warnings.warn(IntegrityWarning(message), stacklevel=3)
        return False

    def pull(
        self,
        board: str,
        part: str,
        selector: Selector,
        destination: Path,
        *,
        extract: bool = False,
        overwrite: bool = False,
        confirm_overwrite: Callable[[Path], bool] | None = None,
    ) -> PullResult:
        """Deliver the selected entry into ``destination``.

        Copy mode places ``<destination>/<entry name>``; extract mode unpacks
        straight from the store into ``destination`` and leaves no archive
        behind. A hash mismatch is reported with ``IntegrityWarning`` and the
        delivery still happens.
        """
        if destination.exists() and not destination.is_dir():
            raise InputError(f"destination is not a directory: {destination}")
        entry = self.resolve(board, part, selector)

        if extract:
            integrity_ok, actual = self.verify(entry)
            with self.repository.open_entry(entry) as handle:
                extract_archive(handle, destination)
            logger.info("Extracted %s/%s/%s -> %s", board, part, entry.name, destination)
            return PullResult(
                entry=entry,
                destination=destination,
                mode="extract",
                delivered=True,
                integrity_ok=integrity_ok,
                actual_hash=actual,
            )

        target = destination / entry.name
        if target.exists() and not overwrite:
            if confirm_overwrite is None or not confirm_overwrite(target):
                integrity_ok, actual = self.verify(entry)
                logger.info("Kept existing %s", target)
                return PullResult(
                    entry=entry,
                    destination=target,
                    mode="copy",
                    delivered=False,
                    integrity_ok=integrity_ok,
                    actual_hash=actual,
                )

        actual = self._copy_entry(entry, target)
        integrity_ok = self._report_integrity(entry, actual)
        logger.info("Copied %s/%s/%s -> %s", board, part, entry.name, target)
        return PullResult(
            entry=entry,
            destination=target,
            mode="copy",
            delivered=True,
            integrity_ok=integrity_ok,
            actual_hash=actual,
        )

    def _copy_entry(self, entry: EntryRef, target: Path) -> str:
        target.parent.mkdir(parents=True, exist_ok=True)
        digest = new_hasher()
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as sink, self.repository.open_entry(entry) as source:
                for chunk in iter(lambda: source.read(CHUNK_SIZE), b""):
                    digest.update(chunk)
                    sink.write(chunk)
            os.replace(tmp_path, str(target))
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return digest.hexdigest()

    def compare_entry(self, source_modified: float, entry: EntryRef) -> Staleness:
        return compare(source_modified, self.repository.entry_mtime(entry))

    def compare(
        self,
        board: str,
        part: str,
        source_dir: Path,
        selector: Selector | None = None,
    ) -> Staleness:
        source_modified = source_mtime(source_dir.expanduser())
        entry = self.resolve(board, part, selector or Latest())
        return self.compare_entry(source_modified, entry)
