"""
Main sync engine - scan → diff → apply loop and its state machine
"""
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional
from ..cancel import CancelToken
from ..config import SyncConfig
from ..errors import ScanError, SyncInterrupted
from ..models import ActionKind, CycleReport, Inventory, ResultStatus, SyncMode, SyncPlan
from ..utils.logging import log, vlog, warn, set_verbose
from ..utils.ignore_patterns import load_ignore_patterns
from ..utils.file_utils import under_any
from ..operations.scanner import scan_tree
from ..operations.conflict import report_conflicts
from .diff_engine import decide, plan_summary
from .applier import apply_plan


class SyncState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    APPLYING = "applying"
    WAITING = "waiting"
    STOPPED = "stopped"


class SyncLoop:
    """
    Runs scan → diff → apply cycles for one SyncConfig.

    IDLE → SCANNING → DIFFING → APPLYING → WAITING → SCANNING … until the
    run is single-shot or *cancel* fires, then STOPPED. An empty plan skips
    APPLYING. A cancelled APPLYING phase lets running actions finish.
    """

    def __init__(self, config: SyncConfig, cancel: Optional[CancelToken] = None,
                 on_state: Optional[Callable[["SyncState"], None]] = None):
        self.config = config
        self.cancel = cancel or CancelToken()
        self.on_state = on_state
        self.state = SyncState.IDLE
        self.transitions: list[SyncState] = [SyncState.IDLE]
        self.reports: list[CycleReport] = []
        # previous inventories per root, only consulted with cache_hashes
        self._prior: dict = {}

    def _enter(self, state: SyncState):
        vlog(f"[state] {self.state.value} → {state.value}")
        self.state = state
        self.transitions.append(state)
        if self.on_state is not None:
            self.on_state(state)

    # ── phases ──────────────────────────────────────────────────────────────

    def _scan(self) -> tuple[Inventory, Inventory]:
        cfg = self.config
        if not cfg.destination.exists() and cfg.mode is SyncMode.ONE_WAY:
            if cfg.dry_run:
                log(f"[scan] {cfg.destination} does not exist yet (dry-run)")
                src = self._scan_root(cfg.source, load_ignore_patterns(cfg.source))
                return src, Inventory(cfg.destination)
            log(f"[scan] Creating destination {cfg.destination}")
            try:
                cfg.destination.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ScanError(cfg.destination, exc) from exc

        patterns = load_ignore_patterns(cfg.source, cfg.destination)
        vlog(f"[ignore] {len(patterns)} pattern(s) loaded")
        src = self._scan_root(cfg.source, patterns)
        dst = self._scan_root(cfg.destination, patterns)
        return src, dst

    def _scan_root(self, root, patterns) -> Inventory:
        log(f"[scan] Scanning {root} …")
        prior = self._prior.get(root) if self.config.cache_hashes else None
        inv = scan_tree(root, prior=prior, patterns=patterns,
                        workers=self.config.workers, cancel=self.cancel)
        if self.config.cache_hashes:
            self._prior[root] = inv
        log(f"[scan] {len(inv.files())} file(s) found in {root}")
        return inv

    def _forget(self, plan: SyncPlan):
        """Drop cached records of every path the plan targeted; they must be rehashed."""
        for root in {a.target_root for a in plan.actions}:
            prior = self._prior.get(root)
            if prior is None:
                continue
            touched = {a.path for a in plan.actions if a.target_root == root}
            keep = {rel: rec for rel, rec in prior.items()
                    if rel not in touched and not under_any(rel, touched)}
            self._prior[root] = Inventory(prior.root, keep, prior.unreadable, prior.links)

    def run_cycle(self, number: int) -> CycleReport:
        """One scan → diff → apply pass. Never raises for per-path problems."""
        cfg = self.config
        report = CycleReport(number)
        try:
            self._enter(SyncState.SCANNING)
            try:
                src, dst = self._scan()
            except ScanError as exc:
                warn(f"[scan] {exc} — cycle {number} skipped")
                report.error = str(exc)
                return report

            self._enter(SyncState.DIFFING)
            plan = decide(src, dst, cfg.mode, cfg.delete_orphans)
            report.plan = plan
            log(f"[plan] {plan_summary(plan)}")
            report_conflicts(plan.conflicts, cfg.source, cfg.destination)

            if not plan:
                if plan.conflicts:
                    log("[sync] Nothing to apply — only conflicts remain")
                else:
                    log("[sync] Nothing to do — already in sync ✓")
                return report

            self.cancel.check()
            self._enter(SyncState.APPLYING)
            report.results = apply_plan(plan, workers=cfg.workers,
                                        cancel=self.cancel, dry_run=cfg.dry_run)
            self._forget(plan)
            report.interrupted = self.cancel.cancelled
            print_summary(report)
        except SyncInterrupted:
            report.interrupted = True
            log("[sync] Interrupted before applying — nothing changed this cycle.")
        return report

    def preview(self) -> Optional[SyncPlan]:
        """Scan and diff once without touching either tree. None if the scan failed."""
        if not self.config.dry_run:
            self.config = replace(self.config, dry_run=True)
        set_verbose(self.config.debug)
        try:
            self._enter(SyncState.SCANNING)
            src, dst = self._scan()
            self._enter(SyncState.DIFFING)
            return decide(src, dst, self.config.mode, self.config.delete_orphans)
        except ScanError as exc:
            warn(f"[scan] {exc}")
            return None
        except SyncInterrupted:
            return None
        finally:
            self._enter(SyncState.STOPPED)

    # ── loop ────────────────────────────────────────────────────────────────

    def run(self) -> list[CycleReport]:
        cfg = self.config
        set_verbose(cfg.debug)
        arrow = "→" if cfg.mode is SyncMode.ONE_WAY else "↔"

        print(f"\n{'=' * 64}")
        print(f"  Sync  {cfg.source}")
        print(f"   {arrow}   {cfg.destination}")
        print(f"  mode={cfg.mode.value}  delete-orphans={cfg.delete_orphans}  "
              f"continuous={cfg.continuous}")
        print(f"{'=' * 64}")
        if cfg.dry_run:
            print("  *** DRY-RUN — no files will be changed ***")
        print()

        number = 0
        while not self.cancel.cancelled:
            number += 1
            self.reports.append(self.run_cycle(number))
            self._enter(SyncState.WAITING)
            if not cfg.continuous or self.cancel.cancelled:
                break
            vlog(f"[wait] next cycle in {cfg.interval:g}s")
            if self.cancel.wait(cfg.interval):
                break

        if self.cancel.cancelled:
            log(f"[sync] Stopped ({self.cancel.reason}).")
        self._enter(SyncState.STOPPED)
        return self.reports


def print_summary(report: CycleReport):
    plan = report.plan
    applied = {kind: 0 for kind in ActionKind}
    for r in report.results:
        if r.status is ResultStatus.APPLIED:
            applied[r.action.kind] += 1

    print()
    print(f"{'─' * 64}")
    print(f" SUMMARY (cycle {report.cycle})")
    print(f"  Created    : {applied[ActionKind.CREATE]}/{plan.count(ActionKind.CREATE)}")
    print(f"  Updated    : {applied[ActionKind.UPDATE]}/{plan.count(ActionKind.UPDATE)}")
    print(f"  Deleted    : {applied[ActionKind.DELETE]}/{plan.count(ActionKind.DELETE)}")
    print(f"  Failed     : {report.failed}")
    print(f"  Skipped    : {report.count(ResultStatus.SKIPPED)}")
    print(f"  Conflicts  : {len(plan.conflicts)}")
    print(f"{'─' * 64}", flush=True)

    if plan.conflicts:
        print()
        print("⚠  CONFLICTS — these paths were left untouched on both sides.")
        print("   Resolve them by hand (keep one version), then run sync again.")


def run_sync(config: SyncConfig, cancel: Optional[CancelToken] = None) -> list[CycleReport]:
    """Run the sync loop for *config* and return one report per cycle."""
    return SyncLoop(config, cancel).run()
