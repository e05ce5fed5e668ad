"""Configuration handling for locating the shared store."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from pfrog.errors import StoreUnavailableError

ROOT_ENV_VAR = "PFROG_ROOT"
DEFAULT_CONFIG_FILE = Path("pfrog.conf")
CONFIG_ROOT_KEYS = ("PFROG_ROOT", "root", "nfs_root")


@dataclass(frozen=True)
class Settings:
    store_root: Path
    config_file: Path
    log_level: str
    assume_yes: bool


def read_config_root(config_file: Path) -> str | None:
    """Return the first root-like key from a ``key=value`` config file."""
    if not config_file.is_file():
        return None
    for line in config_file.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, sep, value = stripped.partition("=")
        if not sep:
            continue
        if key.strip() in CONFIG_ROOT_KEYS and value.strip():
            return value.strip()
    return None


def resolve_store_root(
    root_flag: Path | None,
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    env = os.environ if environ is None else environ
    if root_flag is not None and str(root_flag).strip():
        raw = str(root_flag)
    elif env.get(ROOT_ENV_VAR, "").strip():
        raw = env[ROOT_ENV_VAR].strip()
    else:
        raw = read_config_root(config_file or DEFAULT_CONFIG_FILE) or ""
    if not raw:
        raise StoreUnavailableError(
            f"store root not configured (use --nfs, {ROOT_ENV_VAR}, or a config file)"
        )
    return Path(raw).expanduser().resolve()


def ensure_store_root(store_root: Path, create: bool) -> Path:
    if store_root.is_dir():
        return store_root
    if store_root.exists():
        raise StoreUnavailableError(f"store root is not a directory: {store_root}")
    if not create:
        raise StoreUnavailableError(f"store root does not exist: {store_root}")
    try:
        store_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreUnavailableError(f"cannot create store root {store_root}: {exc}") from exc
    return store_root


def build_settings(
    root_flag: Path | None,
    config_file: Path | None,
    log_level: str,
    assume_yes: bool,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    resolved_config = config_file or DEFAULT_CONFIG_FILE
    return Settings(
        store_root=resolve_store_root(root_flag, resolved_config, environ=environ),
        config_file=resolved_config,
        log_level=log_level,
        assume_yes=assume_yes,
    )
