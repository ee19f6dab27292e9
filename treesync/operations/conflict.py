"""
Conflict description and reporting
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from ..models import Conflict, FileRecord
from ..utils.logging import log, warn


def _fmt_mtime(mtime_ns: int) -> str:
    ts = datetime.fromtimestamp(mtime_ns / 1e9, tz=timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _describe(rec: Optional[FileRecord]) -> str:
    if rec is None:
        return "missing"
    if rec.is_dir:
        return "directory"
    digest = (rec.hash or "?")[:12]
    return f"file {rec.size} B, mtime {_fmt_mtime(rec.mtime_ns)}, sha256 {digest}…"


def conflict_reason(left: FileRecord, right: FileRecord) -> str:
    """Human-readable reason why *left* and *right* cannot be reconciled."""
    if left.is_dir != right.is_dir:
        lk = "directory" if left.is_dir else "file"
        rk = "directory" if right.is_dir else "file"
        return f"type mismatch ({lk} vs {rk})"
    if left.mtime_ns == right.mtime_ns:
        return "content differs but modification times are identical"
    return "content differs"


def report_conflicts(conflicts: list[Conflict], left_root: Path, right_root: Path):
    """Log every conflict with both sides' metadata. Nothing is written to disk."""
    if not conflicts:
        return
    warn(f"[conflict] {len(conflicts)} conflict(s) left untouched:")
    for c in conflicts:
        log(f"  [CONFLICT] {c.path}")
        log(f"    reason : {c.reason}")
        log(f"    {left_root} : {_describe(c.left)}")
        log(f"    {right_root} : {_describe(c.right)}")
