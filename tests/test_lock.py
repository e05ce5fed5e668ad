from __future__ import annotations

import tempfile
import threading
import time
import unittest
from pathlib import Path

from pfrog.errors import StoreUnavailableError
from pfrog.store.lock import KeyedLocks, part_lock
from pfrog.store.repository import DirectoryEntryRepository


class PartLockTests(unittest.TestCase):
    def test_same_part_blocks_until_release(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            repo = DirectoryEntryRepository(Path(tmpdir))
            repo.ensure_part("boardA", "rootfs")
            acquired = threading.Event()

            def contender() -> None:
                with repo.lock("boardA", "rootfs"):
                    acquired.set()

            with repo.lock("boardA", "rootfs"):
                worker = threading.Thread(target=contender)
                worker.start()
                self.assertFalse(acquired.wait(0.3))
            worker.join(timeout=5)
            self.assertTrue(acquired.is_set())

    def test_different_parts_do_not_contend(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            repo = DirectoryEntryRepository(Path(tmpdir))
            repo.ensure_part("boardA", "part1")
            repo.ensure_part("boardA", "part2")
            acquired = threading.Event()

            def other_part() -> None:
                with repo.lock("boardA", "part2"):
                    acquired.set()

            with repo.lock("boardA", "part1"):
                worker = threading.Thread(target=other_part)
                worker.start()
                self.assertTrue(acquired.wait(5))
            worker.join(timeout=5)

    def test_lock_is_released_when_critical_section_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            lock_path = Path(tmpdir) / ".lock"
            with self.assertRaises(RuntimeError):
                with part_lock(lock_path):
                    raise RuntimeError("boom")
            done = threading.Event()

            def reacquire() -> None:
                with part_lock(lock_path):
                    done.set()

            worker = threading.Thread(target=reacquire)
            worker.start()
            worker.join(timeout=5)
            self.assertTrue(done.is_set())

    def test_unopenable_lock_file_reports_store_unavailable(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(StoreUnavailableError):
                with part_lock(Path(tmpdir) / "missing" / ".lock"):
                    pass


class KeyedLocksTests(unittest.TestCase):
    def test_keys_are_independent(self) -> None:
        locks = KeyedLocks()
        order: list[str] = []

        def second() -> None:
            with locks.hold("boardA", "part2"):
                order.append("part2")

        with locks.hold("boardA", "part1"):
            worker = threading.Thread(target=second)
            worker.start()
            worker.join(timeout=5)
            order.append("part1")
        self.assertEqual(order, ["part2", "part1"])

    def test_same_key_serializes(self) -> None:
        locks = KeyedLocks()
        inside = 0
        peak = 0
        guard = threading.Lock()

        def work() -> None:
            nonlocal inside, peak
            with locks.hold("boardA", "rootfs"):
                with guard:
                    inside += 1
                    peak = max(peak, inside)
                time.sleep(0.01)
                with guard:
                    inside -= 1

        workers = [threading.Thread(target=work) for _ in range(5)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=5)
        self.assertEqual(peak, 1)


if __name__ == "__main__":
    unittest.main()
