"""Content fingerprints for archives."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import BinaryIO

CHUNK_SIZE = 65536

_HASH_RE = re.compile(r"^[0-9a-f]{32}$")


def new_hasher():
    return hashlib.md5(usedforsecurity=False)


def hash_bytes(data: bytes) -> str:
    digest = new_hasher()
    digest.update(data)
    return digest.hexdigest()


def hash_stream(handle: BinaryIO) -> str:
    digest = new_hasher()
    for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
        digest.update(chunk)
    return digest.hexdigest()


def hash_file(path: Path) -> str:
    with path.open("rb") as handle:
        return hash_stream(handle)


def is_content_hash(value: str) -> bool:
    return bool(_HASH_RE.match(value))
