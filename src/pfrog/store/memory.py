"""Dictionary-backed entry repository with the same contract as the directory backend."""

from __future__ import annotations

import io
import threading
import time
from contextlib import AbstractContextManager
from pathlib import Path
from typing import BinaryIO

from pfrog.errors import ConcurrentWriteRace, NotFoundError
from pfrog.models import EntryRef, Metadata
from pfrog.store.lock import KeyedLocks
from pfrog.store.repository import validate_namespace


class InMemoryEntryRepository:
    def __init__(self) -> None:
        self._parts: dict[tuple[str, str], dict[str, tuple[EntryRef, bytes, float]]] = {}
        self._metadata: dict[tuple[str, str, int], tuple[Metadata, float]] = {}
        self._locks = KeyedLocks()
        self._guard = threading.Lock()

    def ensure_part(self, board: str, part: str) -> None:
        key = (validate_namespace("board", board), validate_namespace("part", part))
        with self._guard:
            self._parts.setdefault(key, {})

    def part_exists(self, board: str, part: str) -> bool:
        with self._guard:
            return (board, part) in self._parts

    def list_boards(self) -> set[str]:
        with self._guard:
            return {board for board, _ in self._parts}

    def list_parts(self, board: str) -> set[str]:
        with self._guard:
            parts = {part for owner, part in self._parts if owner == board}
        if not parts:
            raise NotFoundError(f"board '{board}' not found")
        return parts

    def list_entries(self, board: str, part: str) -> list[EntryRef]:
        with self._guard:
            stored = self._parts.get((board, part), {})
            entries = [item[0] for item in stored.values()]
        return sorted(entries, key=lambda item: (item.version, item.content_hash))

    def lock(self, board: str, part: str) -> AbstractContextManager[None]:
        return self._locks.hold(board, part)

    def put_if_absent(self, entry: EntryRef, data: bytes, mtime: float | None = None) -> None:
        with self._guard:
            stored = self._parts.setdefault((entry.board, entry.part), {})
            if entry.name in stored:
                raise ConcurrentWriteRace(f"entry already present: {entry.name}")
            stored[entry.name] = (entry, bytes(data), time.time() if mtime is None else float(mtime))

    def _stored(self, entry: EntryRef) -> tuple[EntryRef, bytes, float]:
        with self._guard:
            item = self._parts.get((entry.board, entry.part), {}).get(entry.name)
        if item is None:
            raise NotFoundError(f"entry not found: {entry.board}/{entry.part}/{entry.name}")
        return item

    def open_entry(self, entry: EntryRef) -> BinaryIO:
        return io.BytesIO(self._stored(entry)[1])

    def read_entry(self, entry: EntryRef) -> bytes:
        return self._stored(entry)[1]

    def entry_mtime(self, entry: EntryRef) -> float:
        return self._stored(entry)[2]

    def entry_path(self, entry: EntryRef) -> Path | None:
        return None

    def replace_bytes(self, entry: EntryRef, data: bytes) -> None:
        """Overwrite stored bytes in place; only used to simulate corruption."""
        _, _, mtime = self._stored(entry)
        with self._guard:
            self._parts[(entry.board, entry.part)][entry.name] = (entry, bytes(data), mtime)

    def read_metadata(self, board: str, part: str, version: int) -> Metadata | None:
        with self._guard:
            item = self._metadata.get((board, part, int(version)))
        return item[0] if item is not None else None

    def write_metadata(
        self,
        board: str,
        part: str,
        version: int,
        metadata: Metadata,
        mtime: float | None = None,
    ) -> None:
        with self._guard:
            self._metadata[(board, part, int(version))] = (metadata, time.time() if mtime is None else float(mtime))
