"""
Integration tests for the sync loop.

Tests:
  - the one-way scenarios (create, delete orphans) end to end
  - a second cycle over unchanged trees plans nothing
  - bi-directional convergence and timestamp-tie conflicts
  - state machine transitions for single-run, empty plans and cancellation
  - continuous mode stops on cancel; scan failures skip one cycle only
"""
import hashlib
import os
import sys
import tempfile
import threading
import unittest
from pathlib import Path

from treesync.cancel import CancelToken
from treesync.config import SyncConfig
from treesync.core.sync_engine import SyncLoop, SyncState, run_sync
from treesync.models import ActionKind, ResultStatus, SyncMode
from treesync.operations.scanner import scan_tree

S = SyncState


def tree(root: Path) -> dict:
    """{rel: sha256} of every file under root, plus directories as None."""
    out = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        out[rel] = None if p.is_dir() else hashlib.sha256(p.read_bytes()).hexdigest()
    return out


class SyncTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        base = Path(self.tmpdir.name)
        self.src = base / "src"
        self.dst = base / "dst"
        self.src.mkdir()
        self.dst.mkdir()

    def tearDown(self):
        self.tmpdir.cleanup()

    def put(self, root: Path, rel: str, data: str, mtime_ns=None) -> Path:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(data, encoding="utf-8")
        if mtime_ns is not None:
            os.utime(p, ns=(mtime_ns, mtime_ns))
        return p

    def config(self, **kw) -> SyncConfig:
        kw.setdefault("mode", SyncMode.ONE_WAY)
        kw.setdefault("workers", 2)
        return SyncConfig(source=self.src, destination=self.dst, **kw)


# ── Tests: one-way ────────────────────────────────────────────────────────────

class TestOneWaySync(SyncTestCase):

    def test_new_file_is_created(self):
        self.put(self.src, "a.txt", "hello")

        reports = run_sync(self.config())

        self.assertEqual(len(reports), 1)
        actions = reports[0].plan.actions
        self.assertEqual([(a.kind, a.path) for a in actions], [(ActionKind.CREATE, "a.txt")])
        self.assertEqual((self.dst / "a.txt").read_text(encoding="utf-8"), "hello")
        self.assertTrue(reports[0].ok)

    def test_orphan_deleted(self):
        self.put(self.dst, "b.txt", "x")

        reports = run_sync(self.config(delete_orphans=True))

        actions = reports[0].plan.actions
        self.assertEqual([(a.kind, a.path) for a in actions], [(ActionKind.DELETE, "b.txt")])
        self.assertEqual(list(self.dst.iterdir()), [])

    def test_mirror_matches_source_exactly(self):
        self.put(self.src, "keep.txt", "same")
        self.put(self.src, "dir/new.txt", "new")
        self.put(self.src, "changed.txt", "v2")
        self.put(self.dst, "keep.txt", "same")
        self.put(self.dst, "changed.txt", "v1")
        self.put(self.dst, "stale/deep/x.txt", "old")
        self.put(self.dst, "orphan.txt", "old")

        run_sync(self.config(delete_orphans=True))

        self.assertEqual(tree(self.src), tree(self.dst))

    def test_second_cycle_is_empty(self):
        self.put(self.src, "a.txt", "1")
        self.put(self.src, "d/b.txt", "2")
        run_sync(self.config(delete_orphans=True))

        again = run_sync(self.config(delete_orphans=True))

        self.assertEqual(again[0].plan.actions, [])
        self.assertEqual(again[0].results, [])

    def test_missing_destination_is_created(self):
        self.dst.rmdir()
        self.put(self.src, "a.txt", "x")
        run_sync(self.config())
        self.assertEqual((self.dst / "a.txt").read_text(encoding="utf-8"), "x")

    def test_dry_run_changes_nothing(self):
        self.put(self.src, "a.txt", "x")
        self.put(self.dst, "b.txt", "y")
        reports = run_sync(self.config(delete_orphans=True, dry_run=True))
        self.assertEqual(len(reports[0].plan.actions), 2)
        self.assertEqual(reports[0].count(ResultStatus.SKIPPED), 2)
        self.assertEqual(sorted(p.name for p in self.dst.iterdir()), ["b.txt"])

    @unittest.skipIf(sys.platform == "win32", "symlinks need privileges on Windows")
    def test_orphan_symlink_deleted_not_followed(self):
        self.put(self.src, "a.txt", "x")
        target = self.put(self.dst, "real/keep.txt", "kept")
        self.put(self.src, "real/keep.txt", "kept")
        os.symlink(target, self.dst / "link.txt")
        os.symlink(self.dst / "real", self.dst / "link_dir")

        run_sync(self.config(delete_orphans=True))

        self.assertFalse(os.path.lexists(self.dst / "link.txt"))
        self.assertFalse(os.path.lexists(self.dst / "link_dir"))
        self.assertEqual(target.read_text(encoding="utf-8"), "kept")
        self.assertEqual(tree(self.src), tree(self.dst))

    def test_no_partial_files_after_interrupt(self):
        for i in range(10):
            self.put(self.src, f"f{i}.txt", "new" * 1000)
            self.put(self.dst, f"f{i}.txt", "old")
        cancel = CancelToken()
        loop = SyncLoop(self.config(), cancel,
                        on_state=lambda s: cancel.cancel("test") if s is S.APPLYING else None)

        loop.run()

        for i in range(10):
            content = (self.dst / f"f{i}.txt").read_text(encoding="utf-8")
            self.assertIn(content, ("old", "new" * 1000))
        self.assertEqual([p for p in self.dst.iterdir() if p.name.startswith(".treesync-")], [])


# ── Tests: bi-directional ─────────────────────────────────────────────────────

class TestBiDirectionalSync(SyncTestCase):

    def test_converges_both_ways(self):
        self.put(self.src, "left.txt", "L")
        self.put(self.dst, "right/r.txt", "R")
        self.put(self.src, "shared.txt", "old", mtime_ns=1_000_000_000_000_000_000)
        self.put(self.dst, "shared.txt", "new", mtime_ns=1_100_000_000_000_000_000)

        reports = run_sync(self.config(mode=SyncMode.BI_DIRECTIONAL))

        self.assertEqual(reports[0].plan.conflicts, [])
        self.assertEqual(tree(self.src), tree(self.dst))
        self.assertEqual((self.src / "shared.txt").read_text(encoding="utf-8"), "new")
        again = run_sync(self.config(mode=SyncMode.BI_DIRECTIONAL))
        self.assertEqual(again[0].plan.actions, [])

    def test_tie_is_reported_not_applied(self):
        self.put(self.src, "c.txt", "mine", mtime_ns=1_200_000_000_000_000_000)
        self.put(self.dst, "c.txt", "theirs", mtime_ns=1_200_000_000_000_000_000)

        reports = run_sync(self.config(mode=SyncMode.BI_DIRECTIONAL))

        self.assertEqual([c.path for c in reports[0].plan.conflicts], ["c.txt"])
        self.assertEqual((self.src / "c.txt").read_text(encoding="utf-8"), "mine")
        self.assertEqual((self.dst / "c.txt").read_text(encoding="utf-8"), "theirs")


# ── Tests: state machine ──────────────────────────────────────────────────────

class TestStateMachine(SyncTestCase):

    def test_single_run_transitions(self):
        self.put(self.src, "a.txt", "x")
        loop = SyncLoop(self.config())
        loop.run()
        self.assertEqual(loop.transitions,
                         [S.IDLE, S.SCANNING, S.DIFFING, S.APPLYING, S.WAITING, S.STOPPED])
        self.assertEqual(loop.state, S.STOPPED)

    def test_empty_plan_skips_applying(self):
        loop = SyncLoop(self.config())
        loop.run()
        self.assertEqual(loop.transitions,
                         [S.IDLE, S.SCANNING, S.DIFFING, S.WAITING, S.STOPPED])

    def test_cancel_during_scan_stops_without_applying(self):
        self.put(self.src, "dir/a.txt", "x")
        cancel = CancelToken()
        loop = SyncLoop(self.config(), cancel,
                        on_state=lambda s: cancel.cancel("test") if s is S.SCANNING else None)
        reports = loop.run()
        self.assertNotIn(S.APPLYING, loop.transitions)
        self.assertEqual(loop.state, S.STOPPED)
        self.assertTrue(reports[0].interrupted)
        self.assertFalse((self.dst / "dir").exists())

    def test_continuous_runs_until_cancelled(self):
        self.put(self.src, "a.txt", "x")
        cancel = CancelToken()
        cycles = []

        def on_state(state):
            if state is S.SCANNING:
                cycles.append(state)
                if len(cycles) == 3:
                    cancel.cancel("enough")

        loop = SyncLoop(self.config(continuous=True, interval=0.01), cancel, on_state)
        worker = threading.Thread(target=loop.run)
        worker.start()
        worker.join(timeout=10)

        self.assertFalse(worker.is_alive())
        self.assertEqual(loop.state, S.STOPPED)
        self.assertEqual(len(loop.reports), 3)
        self.assertEqual(loop.reports[1].plan.actions, [])

    def test_cancel_while_waiting_is_prompt(self):
        cancel = CancelToken()
        loop = SyncLoop(self.config(continuous=True, interval=3600), cancel)
        worker = threading.Thread(target=loop.run)
        worker.start()
        cancel.cancel("test")
        worker.join(timeout=10)
        self.assertFalse(worker.is_alive())
        self.assertEqual(loop.state, S.STOPPED)

    def test_scan_failure_skips_cycle(self):
        self.put(self.src, "a.txt", "x")
        cfg = self.config()
        self.src.rename(self.src.with_name("moved"))

        reports = run_sync(cfg)

        self.assertIsNotNone(reports[0].error)
        self.assertFalse(reports[0].ok)
        self.assertEqual(list(self.dst.iterdir()), [])

    def test_hash_cache_reuses_prior_inventory(self):
        self.put(self.src, "a.txt", "x")
        loop = SyncLoop(self.config(cache_hashes=True))
        loop.run()
        self.assertIn(self.src, loop._prior)
        self.assertEqual(loop._prior[self.src]["a.txt"].hash,
                         scan_tree(self.src)["a.txt"].hash)

    def test_hash_cache_does_not_hide_applied_updates(self):
        # same size and mtime on both sides, different content
        t = 1_300_000_000_000_000_000
        self.put(self.src, "a.txt", "AAAA", mtime_ns=t)
        self.put(self.dst, "a.txt", "BBBB", mtime_ns=t)
        loop = SyncLoop(self.config(cache_hashes=True))

        first = loop.run_cycle(1)
        second = loop.run_cycle(2)

        self.assertEqual([(a.kind, a.path) for a in first.plan.actions],
                         [(ActionKind.UPDATE, "a.txt")])
        self.assertEqual((self.dst / "a.txt").read_text(encoding="utf-8"), "AAAA")
        self.assertEqual(second.plan.actions, [])
        self.assertEqual(loop._prior[self.dst]["a.txt"].hash,
                         hashlib.sha256(b"AAAA").hexdigest())

    def test_preview_applies_nothing(self):
        self.put(self.src, "a.txt", "x")
        plan = SyncLoop(self.config()).preview()
        self.assertEqual([a.path for a in plan.actions], ["a.txt"])
        self.assertFalse((self.dst / "a.txt").exists())


if __name__ == "__main__":
    unittest.main()
