"""Storage backends, locking, and version allocation for the artifact store."""

from pfrog.store.allocator import Allocation, allocate
from pfrog.store.lock import KeyedLocks, part_lock
from pfrog.store.memory import InMemoryEntryRepository
from pfrog.store.repository import DirectoryEntryRepository, EntryRepository, validate_namespace

__all__ = [
    "Allocation",
    "allocate",
    "KeyedLocks",
    "part_lock",
    "InMemoryEntryRepository",
    "DirectoryEntryRepository",
    "EntryRepository",
    "validate_namespace",
]
