"""Typed failures raised by the artifact store."""

from __future__ import annotations


class PfrogError(Exception):
    """Base class for every failure the store reports to its callers."""


class InputError(PfrogError, ValueError):
    pass


class StoreUnavailableError(PfrogError):
    pass


class NotFoundError(PfrogError, LookupError):
    pass


class InvalidSelectionError(PfrogError):
    pass


class CorruptArchiveError(PfrogError):
    pass


class ConcurrentWriteRace(PfrogError):
    """An entry name was already taken at commit time.

    The per-part lock keeps this from happening between cooperating clients.
    """


class IntegrityWarning(UserWarning):
    """Stored bytes no longer hash to the digest encoded in the entry name."""
