from __future__ import annotations

import tempfile
import unittest
import warnings
from pathlib import Path

from pfrog.errors import CorruptArchiveError, InputError, IntegrityWarning, InvalidSelectionError, NotFoundError
from pfrog.hashing import hash_file
from pfrog.metadata import build_metadata
from pfrog.models import Choice
from pfrog.selector import ByVersion, Interactive, Latest, parse_selection
from pfrog.service import ArtifactStore
from pfrog.store.memory import InMemoryEntryRepository


def _push_two_versions(base: Path) -> tuple[ArtifactStore, Path]:
    store = ArtifactStore.at(base / "store")
    source = base / "src"
    source.mkdir()
    (source / "file.txt").write_text("p1\n", encoding="utf-8")
    store.push_directory("boardP", "partQ", source, tag="first")
    (source / "file.txt").write_text("p2\n", encoding="utf-8")
    store.push_directory("boardP", "partQ", source)
    return store, source


class ResolveTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repository = InMemoryEntryRepository()
        self.store = ArtifactStore(self.repository)
        self.first = self.store.push("boardA", "rootfs", b"one", build_metadata(user="ci", tag="alpha")).entry
        self.second = self.store.push("boardA", "rootfs", b"two", build_metadata(user="ci")).entry

    def test_latest_picks_highest_version(self) -> None:
        self.assertEqual(self.store.resolve_latest("boardA", "rootfs"), self.second)

    def test_explicit_version(self) -> None:
        self.assertEqual(self.store.resolve_version("boardA", "rootfs", 1), self.first)

    def test_unknown_version_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.store.resolve_version("boardA", "rootfs", 99)

    def test_unknown_part_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.store.resolve_latest("boardA", "kernel")

    def test_interactive_lists_versions_ascending(self) -> None:
        seen: list[list[Choice]] = []

        def chooser(choices: list[Choice]) -> str:
            seen.append(choices)
            return "1"

        chosen = self.store.resolve_interactive("boardA", "rootfs", chooser)
        self.assertEqual(chosen, self.first)
        choices = seen[0]
        self.assertEqual([choice.index for choice in choices], [1, 2])
        self.assertEqual([choice.name for choice in choices], [self.first.name, self.second.name])
        self.assertEqual(choices[0].tag, "alpha")
        self.assertIsNone(choices[1].tag)
        self.assertIsNotNone(choices[0].timestamp)

    def test_interactive_rejects_bad_replies(self) -> None:
        for reply in ("", "abc", "0", "3", "-1", "1.5", "\u00b2", "\u0661"):
            with self.subTest(reply=reply):
                with self.assertRaises(InvalidSelectionError):
                    self.store.resolve("boardA", "rootfs", Interactive(lambda choices, r=reply: r))

    def test_parse_selection_returns_offset(self) -> None:
        self.assertEqual(parse_selection(" 2 ", 2), 1)

    def test_parse_selection_rejects_non_ascii_digits(self) -> None:
        with self.assertRaises(InvalidSelectionError):
            parse_selection("\u00b2", 3)

    def test_non_numeric_version_is_input_error(self) -> None:
        for version in ("x", "", None, 0, -2):
            with self.subTest(version=version):
                with self.assertRaises(InputError):
                    self.store.resolve_version("boardA", "rootfs", version)  # type: ignore[arg-type]
        self.assertEqual(self.store.resolve_version("boardA", "rootfs", "2"), self.second)  # type: ignore[arg-type]


class PullDeliveryTests(unittest.TestCase):
    def test_copy_mode_places_archive_named_after_entry(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            dest = base / "out"
            dest.mkdir()
            with warnings.catch_warnings():
                warnings.simplefilter("error", IntegrityWarning)
                result = store.pull("boardP", "partQ", Latest(), dest)

            self.assertTrue(result.delivered)
            self.assertTrue(result.integrity_ok)
            self.assertEqual(result.entry.version, 2)
            self.assertEqual(result.destination, dest / result.entry.name)
            self.assertEqual(hash_file(result.destination), result.entry.content_hash)
            self.assertEqual(sorted(path.name for path in dest.iterdir()), [result.entry.name])

    def test_extract_mode_unpacks_without_local_archive(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            dest = base / "rootfs"
            result = store.pull("boardP", "partQ", ByVersion(1), dest, extract=True)

            self.assertEqual(result.mode, "extract")
            self.assertEqual((dest / "file.txt").read_text(encoding="utf-8"), "p1\n")
            self.assertEqual(list(dest.glob("*.tar.gz")), [])

    def test_existing_file_is_kept_when_overwrite_is_declined(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            dest = base / "out"
            dest.mkdir()
            target = dest / store.resolve_latest("boardP", "partQ").name
            target.write_bytes(b"local copy")
            asked: list[Path] = []

            def decline(path: Path) -> bool:
                asked.append(path)
                return False

            result = store.pull("boardP", "partQ", Latest(), dest, confirm_overwrite=decline)
            self.assertFalse(result.delivered)
            self.assertEqual(asked, [target])
            self.assertEqual(target.read_bytes(), b"local copy")

            replaced = store.pull("boardP", "partQ", Latest(), dest, confirm_overwrite=lambda path: True)
            self.assertTrue(replaced.delivered)
            self.assertEqual(hash_file(target), replaced.entry.content_hash)

    def test_overwrite_flag_skips_the_prompt(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            dest = base / "out"
            dest.mkdir()
            target = dest / store.resolve_latest("boardP", "partQ").name
            target.write_bytes(b"stale")

            def fail(path: Path) -> bool:
                raise AssertionError("prompted despite overwrite")

            result = store.pull("boardP", "partQ", Latest(), dest, overwrite=True, confirm_overwrite=fail)
            self.assertTrue(result.delivered)

    def test_corrupted_entry_warns_but_still_delivers(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            entry = store.resolve_latest("boardP", "partQ")
            stored = base / "store" / "boardP" / "partQ" / entry.name
            stored.write_bytes(stored.read_bytes() + b"garbage")
            dest = base / "out"

            with self.assertWarns(IntegrityWarning):
                result = store.pull("boardP", "partQ", Latest(), dest)

            self.assertTrue(result.delivered)
            self.assertFalse(result.integrity_ok)
            self.assertNotEqual(result.actual_hash, entry.content_hash)
            self.assertTrue(result.destination.is_file())

    def test_truncated_entry_in_extract_mode_raises_typed_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            entry = store.resolve_latest("boardP", "partQ")
            stored = base / "store" / "boardP" / "partQ" / entry.name
            data = stored.read_bytes()
            stored.write_bytes(data[: len(data) // 2])

            with self.assertWarns(IntegrityWarning), self.assertRaises(CorruptArchiveError):
                store.pull("boardP", "partQ", Latest(), base / "rootfs", extract=True)

    def test_interactive_pull_tolerates_undecodable_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            store, _ = _push_two_versions(base)
            (base / "store" / "boardP" / "partQ" / "md5_1.meta").write_bytes(
                b"timestamp=2026-01-02T03:04:05Z\nuser=j\xf6rg\ntag=first\n"
            )
            seen: list[list[Choice]] = []

            def chooser(choices: list[Choice]) -> str:
                seen.append(choices)
                return "1"

            chosen = store.resolve_interactive("boardP", "partQ", chooser)
            self.assertEqual(chosen.version, 1)
            self.assertEqual(seen[0][0].tag, "first")

    def test_in_memory_corruption_is_detected_on_verify(self) -> None:
        repository = InMemoryEntryRepository()
        store = ArtifactStore(repository)
        entry = store.push("boardA", "rootfs", b"clean").entry
        self.assertEqual(store.verify(entry), (True, entry.content_hash))
        repository.replace_bytes(entry, b"dirty")
        with self.assertWarns(IntegrityWarning):
            ok, actual = store.verify(entry)
        self.assertFalse(ok)
        self.assertNotEqual(actual, entry.content_hash)


if __name__ == "__main__":
    unittest.main()
