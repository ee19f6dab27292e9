"""
Diff engine - decides which actions converge two inventories
"""
from ..models import (
    Action, ActionKind, Conflict, FileRecord, Inventory, SyncMode, SyncPlan,
)
from ..operations.conflict import conflict_reason
from ..utils.logging import vlog, warn
from ..utils.file_utils import under_any


def _create(rec: FileRecord, source: Inventory, target: Inventory) -> Action:
    return Action(ActionKind.CREATE, rec.path, target.root, source.root, rec.is_dir)


def _update(rec: FileRecord, source: Inventory, target: Inventory) -> Action:
    return Action(ActionKind.UPDATE, rec.path, target.root, source.root, rec.is_dir)


def _decide_one_way(src: Inventory, dst: Inventory, delete_orphans: bool,
                    plan: SyncPlan):
    # directories replaced by a file take their whole subtree with them
    replaced_dirs: set[str] = set()
    blocked: set[str] = set()

    for rel in sorted(src):
        if under_any(rel, blocked):
            continue
        s_rec = src[rel]
        d_rec = dst.get(rel)
        if d_rec is None:
            plan.actions.append(_create(s_rec, src, dst))
            continue
        if s_rec.is_dir != d_rec.is_dir:
            if delete_orphans:
                plan.actions.append(_update(s_rec, src, dst))
                if d_rec.is_dir:
                    replaced_dirs.add(rel)
            else:
                plan.conflicts.append(
                    Conflict(rel, conflict_reason(s_rec, d_rec), s_rec, d_rec))
                blocked.add(rel)
            continue
        if s_rec.same_content(d_rec):
            vlog(f"  [SKIP] {rel}")
            continue
        plan.actions.append(_update(s_rec, src, dst))

    if not delete_orphans:
        return

    deleted_dirs: set[str] = set()
    # parents sort before children, so ancestors are seen first.
    # Destination symlinks are orphans too, unless the source has a file,
    # directory or link at the same path.
    for rel in sorted(set(dst) | dst.links):
        if rel in src or rel in src.links:
            continue
        if under_any(rel, deleted_dirs) or under_any(rel, replaced_dirs):
            continue
        d_rec = dst.get(rel)
        is_dir = d_rec is not None and d_rec.is_dir
        plan.actions.append(Action(ActionKind.DELETE, rel, dst.root, None, is_dir))
        if is_dir:
            deleted_dirs.add(rel)


def _decide_bi_directional(left: Inventory, right: Inventory, plan: SyncPlan):
    # nothing below a file/directory clash can be copied either way
    blocked: set[str] = set()
    for rel in sorted(set(left) | set(right)):
        if under_any(rel, blocked):
            continue
        l_rec = left.get(rel)
        r_rec = right.get(rel)

        if r_rec is None:
            plan.actions.append(_create(l_rec, left, right))
            continue
        if l_rec is None:
            plan.actions.append(_create(r_rec, right, left))
            continue

        if l_rec.is_dir != r_rec.is_dir:
            plan.conflicts.append(Conflict(rel, conflict_reason(l_rec, r_rec), l_rec, r_rec))
            blocked.add(rel)
            continue
        if l_rec.same_content(r_rec):
            vlog(f"  [SKIP] {rel}")
            continue

        # both files, content differs: newer wins, a tie is a conflict
        if l_rec.mtime_ns > r_rec.mtime_ns:
            plan.actions.append(_update(l_rec, left, right))
        elif r_rec.mtime_ns > l_rec.mtime_ns:
            plan.actions.append(_update(r_rec, right, left))
        else:
            plan.conflicts.append(Conflict(rel, conflict_reason(l_rec, r_rec), l_rec, r_rec))


def _drop_uncertain(src: Inventory, dst: Inventory) -> tuple[Inventory, Inventory]:
    """Hide every path that is unreadable (or below an unreadable dir) on either side."""
    if not src.unreadable and not dst.unreadable:
        return src, dst

    def keep(rel: str) -> bool:
        return not src.is_uncertain(rel) and not dst.is_uncertain(rel)

    skipped = sorted(r for r in set(src) | set(dst) if not keep(r))
    for rel in skipped:
        vlog(f"  [SKIP-UNREADABLE] {rel}")
    return (
        Inventory(src.root, {r: v for r, v in src.items() if keep(r)}, src.unreadable,
                  {r for r in src.links if keep(r)}),
        Inventory(dst.root, {r: v for r, v in dst.items() if keep(r)}, dst.unreadable,
                  {r for r in dst.links if keep(r)}),
    )


def decide(src: Inventory, dst: Inventory, mode: SyncMode,
           delete_orphans: bool = False) -> SyncPlan:
    """
    Compare two inventories and return a SyncPlan.

    One-way: create/update everything in *dst* that is missing or differs
    from *src*; with *delete_orphans*, delete what *src* does not have.
    Bi-directional: copy one-sided paths across and let the newer side win
    when contents differ; identical timestamps with different contents
    become conflicts. Equal hashes never produce an action.

    At most one action is emitted per path, so no two actions target the
    same location.
    """
    src, dst = _drop_uncertain(src, dst)
    plan = SyncPlan()
    if mode is SyncMode.ONE_WAY:
        _decide_one_way(src, dst, delete_orphans, plan)
    elif mode is SyncMode.BI_DIRECTIONAL:
        if delete_orphans:
            warn("delete-orphans has no effect in bi-directional mode")
        _decide_bi_directional(src, dst, plan)
    else:
        raise ValueError(f"unknown sync mode: {mode!r}")
    return plan


def plan_summary(plan: SyncPlan) -> str:
    return (f"create={plan.count(ActionKind.CREATE)}  "
            f"update={plan.count(ActionKind.UPDATE)}  "
            f"delete={plan.count(ActionKind.DELETE)}  "
            f"conflicts={len(plan.conflicts)}  (total={len(plan.actions)})")
