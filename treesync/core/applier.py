"""
Action applier - executes a SyncPlan against the filesystem
"""
from concurrent.futures import ThreadPoolExecutor
from itertools import groupby
from typing import Optional
from ..cancel import CancelToken
from ..models import Action, ActionKind, ActionResult, ResultStatus, SyncPlan
from ..operations.transfer import replace_with_file, make_dir
from ..operations.delete import remove_path
from ..utils.logging import log, warn
from ..utils.file_utils import depth


def _levels(actions: list[Action], deepest_first: bool) -> list[list[Action]]:
    """Group actions by path depth. Actions of one level never contain each other."""
    ordered = sorted(actions, key=lambda a: (depth(a.path), a.path))
    levels = [list(group) for _, group in groupby(ordered, key=lambda a: depth(a.path))]
    if deepest_first:
        levels.reverse()
    return levels


def apply_action(action: Action) -> ActionResult:
    """Apply one action. OSErrors become a FAILED result, never an exception."""
    copied = 0
    try:
        if action.kind is ActionKind.DELETE:
            remove_path(action.target)
            log(f"  [DEL ✓] {action.path} ({action.target_root})")
        elif action.is_dir:
            make_dir(action.source, action.target)
            log(f"  [{action.kind.name} ✓] {action.path}/ → {action.target_root}")
        else:
            copied = replace_with_file(action.source, action.target)
            log(f"  [{action.kind.name} ✓] {action.path} → {action.target_root}")
    except OSError as exc:
        warn(f"  [{action.kind.name} ✗] {action.path}: {exc}")
        return ActionResult(action, ResultStatus.FAILED, error=str(exc))
    return ActionResult(action, ResultStatus.APPLIED, bytes_copied=copied)


def _run(action: Action, cancel: Optional[CancelToken]) -> ActionResult:
    if cancel is not None and cancel.cancelled:
        return ActionResult(action, ResultStatus.SKIPPED, error="cancelled")
    return apply_action(action)


def apply_plan(plan: SyncPlan, *, workers: int = 1,
               cancel: Optional[CancelToken] = None,
               dry_run: bool = False) -> list[ActionResult]:
    """
    Execute every action of *plan* and return one result per action.

    Deletions run first, deepest paths first, so directories are emptied
    before they are removed. Creates and updates follow, shallowest first,
    so directories exist before anything is copied into them. Within a
    depth level actions run on up to *workers* threads; a level starts only
    when the previous one is finished.

    A failed action does not stop the others. Once *cancel* is set, actions
    that have not started are reported SKIPPED; running ones complete.
    """
    if dry_run:
        for action in plan.actions:
            log(f"  [{action.kind.name}-DRY] {action.path} → {action.target_root}")
        return [ActionResult(a, ResultStatus.SKIPPED, error="dry-run") for a in plan.actions]

    deletes = [a for a in plan.actions if a.kind is ActionKind.DELETE]
    copies = [a for a in plan.actions if a.kind is not ActionKind.DELETE]
    levels = _levels(deletes, deepest_first=True) + _levels(copies, deepest_first=False)

    results: list[ActionResult] = []
    pool = ThreadPoolExecutor(max_workers=workers,
                              thread_name_prefix="treesync-apply") if workers > 1 else None
    try:
        for level in levels:
            if pool is None or len(level) == 1:
                results.extend(_run(a, cancel) for a in level)
            else:
                results.extend(pool.map(lambda a: _run(a, cancel), level))
    finally:
        if pool is not None:
            pool.shutdown(wait=True)
    return results
