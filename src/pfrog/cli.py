"""CLI entry point for the pfrog artifact store."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import warnings
from pathlib import Path
from typing import Any, Callable

from pfrog.compare import EXIT_CODES, source_mtime
from pfrog.config import Settings, build_settings, ensure_store_root
from pfrog.errors import InputError, IntegrityWarning, NotFoundError, PfrogError
from pfrog.metadata import format_timestamp
from pfrog.models import Choice, EntryRef
from pfrog.packaging import validate_source_dir
from pfrog.selector import ByVersion, Interactive, Latest, Selector
from pfrog.service import ArtifactStore

logger = logging.getLogger(__name__)


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--nfs",
        type=Path,
        default=None,
        help="Store root. Overrides PFROG_ROOT and the config file.",
    )
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file holding PFROG_ROOT=<path>. Defaults to ./pfrog.conf.",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log verbosity level.",
    )
    common.add_argument("--verbose", action="store_true", help="Shortcut for --log-level DEBUG.")
    common.add_argument("--yes", action="store_true", help="Skip confirmation and overwrite prompts.")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pfrog",
        description="Manage versioned build artifacts per board in a shared directory.",
    )
    common = _common_options()
    subparsers = parser.add_subparsers(dest="command", required=True)

    push_parser = subparsers.add_parser("push", parents=[common], help="Push a directory into the store.")
    push_parser.add_argument("board")
    push_parser.add_argument("part")
    push_parser.add_argument("dir", type=Path)
    push_parser.add_argument("--dry", action="store_true", help="Report the entry name without writing.")
    push_parser.add_argument("--tag", default=None, help="Descriptive tag stored in metadata.")
    push_parser.add_argument("--commit", default=None, help="Source commit recorded in metadata.")

    pull_parser = subparsers.add_parser(
        "pull",
        parents=[common],
        help="List boards/parts or retrieve an artifact.",
    )
    pull_parser.add_argument("board", nargs="?")
    pull_parser.add_argument("part", nargs="?")
    pull_parser.add_argument("version", nargs="?")
    pull_parser.add_argument("--tag", action="store_true", help="Choose the version interactively.")
    pull_parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Extract the archive into this directory instead of copying it.",
    )
    pull_parser.add_argument(
        "--dest",
        type=Path,
        default=Path("."),
        help="Directory receiving the archive in copy mode.",
    )

    list_parser = subparsers.add_parser("list", parents=[common], help="List store contents.")
    list_parser.add_argument("board", nargs="?")
    list_parser.add_argument("part", nargs="?")

    compare_parser = subparsers.add_parser(
        "compare",
        parents=[common],
        help="Compare a source directory mtime against a stored artifact (exit 0 same, 1 source newer, 2 artifact newer).",
    )
    compare_parser.add_argument("board")
    compare_parser.add_argument("part")
    compare_parser.add_argument("dir", type=Path)
    compare_parser.add_argument("version", nargs="?")
    compare_parser.add_argument("--tag", action="store_true", help="Choose the version interactively.")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _prompt(message: str) -> str:
    sys.stderr.write(message)
    sys.stderr.flush()
    return sys.stdin.readline().strip()


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, sort_keys=True))


def _entry_payload(store: ArtifactStore, entry: EntryRef) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": entry.name,
        "version": entry.version,
        "content_hash": entry.content_hash,
    }
    metadata = store.read_metadata(entry)
    if metadata is not None:
        payload["metadata"] = {
            "timestamp": format_timestamp(metadata.timestamp) if metadata.timestamp is not None else None,
            "user": metadata.user,
            "tag": metadata.tag,
            "commit": metadata.commit,
        }
    return payload


def _terminal_chooser(title: str) -> Callable[[list[Choice]], str]:
    def choose(choices: list[Choice]) -> str:
        sys.stderr.write(f"{title}\n")
        for choice in choices:
            details = []
            if choice.timestamp:
                details.append(f"timestamp={choice.timestamp}")
            if choice.tag:
                details.append(f"tag={choice.tag}")
            suffix = f"  ({', '.join(details)})" if details else ""
            sys.stderr.write(f"  [{choice.index}] {choice.name}{suffix}\n")
        return _prompt(f"Enter number [1-{len(choices)}]: ")

    return choose


def _selector(board: str, part: str, version: str | None, interactive: bool) -> Selector:
    if interactive:
        return Interactive(_terminal_chooser(f"Select an artifact from '{board}/{part}':"))
    if version is None:
        return Latest()
    if not (version.isascii() and version.isdigit()) or int(version) < 1:
        raise InputError(f"version must be a positive integer: {version!r}")
    return ByVersion(int(version))


def _run_push(settings: Settings, args: argparse.Namespace) -> int:
    if not settings.assume_yes:
        sys.stderr.write(f"NFS root: {settings.store_root}\n")
        answer = _prompt("Proceed? [Y/n] ")
        if answer[:1] in {"n", "N"}:
            sys.stderr.write("Aborted.\n")
            return 1
    validate_source_dir(args.dir)
    if not args.dry:
        ensure_store_root(settings.store_root, create=True)
    store = ArtifactStore.at(settings.store_root)
    result = store.push_directory(
        args.board,
        args.part,
        args.dir,
        tag=args.tag,
        commit=args.commit,
        dry_run=bool(args.dry),
    )
    _emit(
        {
            "board": result.entry.board,
            "part": result.entry.part,
            "name": result.name,
            "version": result.entry.version,
            "created": result.created,
            "dry_run": result.dry_run,
        }
    )
    return 0


def _run_pull(settings: Settings, args: argparse.Namespace) -> int:
    store = ArtifactStore.at(ensure_store_root(settings.store_root, create=False))
    if args.board is None:
        _emit({"boards": sorted(store.list_boards())})
        return 0
    if args.part is None:
        _emit({"board": args.board, "parts": sorted(store.list_parts(args.board))})
        return 0

    selector = _selector(args.board, args.part, args.version, bool(args.tag))

    def confirm(path: Path) -> bool:
        return _prompt(f"Overwrite '{path}'? [y/N] ")[:1] in {"y", "Y"}

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", IntegrityWarning)
        if args.root is not None:
            result = store.pull(args.board, args.part, selector, args.root, extract=True)
        else:
            result = store.pull(
                args.board,
                args.part,
                selector,
                args.dest,
                overwrite=settings.assume_yes,
                confirm_overwrite=confirm,
            )
    _emit(
        {
            "name": result.entry.name,
            "version": result.entry.version,
            "mode": result.mode,
            "destination": result.destination.as_posix(),
            "delivered": result.delivered,
            "integrity_ok": result.integrity_ok,
        }
    )
    if not result.delivered:
        sys.stderr.write("Aborted.\n")
        return 1
    return 0


def _run_list(settings: Settings, args: argparse.Namespace) -> int:
    store = ArtifactStore.at(ensure_store_root(settings.store_root, create=False))
    if args.board is None:
        boards = sorted(store.list_boards())
        _emit({"boards": {board: sorted(store.list_parts(board)) for board in boards}})
        return 0
    if args.part is None:
        parts = sorted(store.list_parts(args.board))
        _emit(
            {
                "board": args.board,
                "parts": {
                    part: [_entry_payload(store, entry) for entry in store.list_entries(args.board, part)]
                    for part in parts
                },
            }
        )
        return 0
    if args.part not in store.list_parts(args.board):
        raise NotFoundError(f"'{args.board}/{args.part}' not found")
    entries = store.list_entries(args.board, args.part)
    _emit(
        {
            "board": args.board,
            "part": args.part,
            "entries": [_entry_payload(store, entry) for entry in entries],
        }
    )
    return 0


def _run_compare(settings: Settings, args: argparse.Namespace) -> int:
    store = ArtifactStore.at(ensure_store_root(settings.store_root, create=False))
    source_modified = source_mtime(args.dir.expanduser())
    selector = _selector(args.board, args.part, args.version, bool(args.tag))
    entry = store.resolve(args.board, args.part, selector)
    staleness = store.compare_entry(source_modified, entry)
    _emit(
        {
            "name": entry.name,
            "staleness": staleness.value,
            "source_mtime": int(source_modified),
            "artifact_mtime": int(store.repository.entry_mtime(entry)),
        }
    )
    return EXIT_CODES[staleness]


COMMANDS: dict[str, Callable[[Settings, argparse.Namespace], int]] = {
    "push": _run_push,
    "pull": _run_pull,
    "list": _run_list,
    "compare": _run_compare,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    log_level = "DEBUG" if args.verbose else args.log_level
    configure_logging(log_level)
    try:
        settings = build_settings(
            root_flag=args.nfs,
            config_file=args.config,
            log_level=log_level,
            assume_yes=bool(args.yes),
        )
        logger.debug("Using store root %s", settings.store_root)
        return COMMANDS[args.command](settings, args)
    except PfrogError as exc:
        print(f"pfrog: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
