"""Provenance records stored next to each archive as ``key=value`` lines."""

from __future__ import annotations

import os
from datetime import datetime, timezone

from pfrog.errors import InputError
from pfrog.models import Metadata

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
KNOWN_KEYS = ("timestamp", "user", "commit", "tag")


def _utc_seconds(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def timestamp_from_mtime(mtime: float) -> datetime:
    return datetime.fromtimestamp(int(mtime), tz=timezone.utc)


def format_timestamp(value: datetime) -> str:
    return _utc_seconds(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str) -> datetime | None:
    try:
        parsed = datetime.strptime(raw.strip(), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def default_user() -> str:
    return os.getenv("USER") or "unknown"


def _single_line(field: str, value: str | None) -> str | None:
    stripped = (value or "").strip()
    if "\n" in stripped or "\r" in stripped:
        raise InputError(f"{field} must be a single line: {value!r}")
    return stripped or None


def build_metadata(
    timestamp: datetime | None = None,
    user: str | None = None,
    tag: str | None = None,
    commit: str | None = None,
) -> Metadata:
    resolved_timestamp = _utc_seconds(timestamp) if timestamp is not None else _utc_seconds(datetime.now(timezone.utc))
    return Metadata(
        timestamp=resolved_timestamp,
        user=_single_line("user", user) or default_user(),
        tag=_single_line("tag", tag),
        commit=_single_line("commit", commit),
    )


def format_metadata(metadata: Metadata) -> str:
    lines: list[str] = []
    if metadata.timestamp is not None:
        lines.append(f"timestamp={format_timestamp(metadata.timestamp)}")
    lines.append(f"user={metadata.user}")
    if metadata.commit:
        lines.append(f"commit={metadata.commit}")
    if metadata.tag:
        lines.append(f"tag={metadata.tag}")
    return "\n".join(lines) + "\n"


def parse_metadata(text: str) -> Metadata:
    """Read a ``.meta`` body; unknown keys and lines without ``=`` are skipped."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or key not in KNOWN_KEYS or key in fields:
            continue
        fields[key] = value.strip()
    raw_timestamp = fields.get("timestamp")
    return Metadata(
        timestamp=parse_timestamp(raw_timestamp) if raw_timestamp else None,
        user=fields.get("user") or "unknown",
        tag=fields.get("tag") or None,
        commit=fields.get("commit") or None,
    )
