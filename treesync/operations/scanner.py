"""
Directory tree scanning (inventory of paths, sizes, mtimes and hashes)
"""
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional
from ..cancel import CancelToken
from ..errors import ScanError
from ..models import FileRecord, Inventory
from ..utils.logging import log, vlog, warn
from ..utils.ignore_patterns import is_ignored
from ..utils.file_utils import sha256_file, _file_changed, is_temp_name


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


def _hash_for(path: Path, rel: str, st: os.stat_result,
              prior: Optional[Inventory]) -> str:
    """Reuse the prior hash when size and mtime are unchanged, else read the file."""
    old = prior.get(rel) if prior is not None else None
    if old is not None and not old.is_dir and old.hash is not None:
        if not _file_changed(st.st_mtime_ns, st.st_size, old.mtime_ns, old.size):
            return old.hash
    return sha256_file(path)


def _scan_entry(entry: os.DirEntry, rel: str, prior: Optional[Inventory],
                records: dict, unreadable: set, links: set) -> bool:
    """
    Record one directory entry. Returns True if it is a directory that
    should be descended into.
    """
    try:
        if entry.is_symlink():
            vlog(f"  [SCAN-LINK] {rel} (symlink, not followed)")
            links.add(rel)
            return False
        if entry.is_dir(follow_symlinks=False):
            st = entry.stat(follow_symlinks=False)
            records[rel] = FileRecord(rel, 0, st.st_mtime_ns, None, is_dir=True)
            return True
        if entry.is_file(follow_symlinks=False):
            st = entry.stat(follow_symlinks=False)
            digest = _hash_for(Path(entry.path), rel, st, prior)
            records[rel] = FileRecord(rel, st.st_size, st.st_mtime_ns, digest)
            return False
        vlog(f"  [SCAN-SKIP] {rel} (not a regular file)")
    except OSError as exc:
        warn(f"cannot read {entry.path}: {exc}")
        unreadable.add(rel)
    return False


def _walk(root: Path, start: str, prior: Optional[Inventory], patterns: list,
          cancel: Optional[CancelToken]) -> tuple[dict, set, set]:
    """
    Walk the subtree rooted at relative directory *start* ("" for root).
    Returns ({rel: FileRecord}, {unreadable rel}, {symlink rel}) for that
    subtree only; the record of *start* itself belongs to the caller.
    """
    records: dict[str, FileRecord] = {}
    unreadable: set[str] = set()
    links: set[str] = set()
    pending = [start]
    while pending:
        if cancel is not None:
            cancel.check()
        rel_dir = pending.pop()
        try:
            with os.scandir(root / rel_dir if rel_dir else root) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            warn(f"cannot list {root / rel_dir}: {exc}")
            unreadable.add(rel_dir)
            continue
        for entry in entries:
            rel = _join(rel_dir, entry.name)
            if is_temp_name(entry.name) or is_ignored(rel, patterns):
                continue
            if _scan_entry(entry, rel, prior, records, unreadable, links):
                pending.append(rel)
    return records, unreadable, links


def scan_tree(root: Path, *, prior: Optional[Inventory] = None,
              patterns: Optional[list] = None, workers: int = 1,
              cancel: Optional[CancelToken] = None) -> Inventory:
    """
    Build an Inventory of *root*. Symlinks are never followed; their paths
    are listed in ``Inventory.links``.

    Top-level subdirectories are walked on up to *workers* threads; each
    returns a disjoint partial result. Raises ScanError if the root itself
    cannot be read and SyncInterrupted if *cancel* fires; in both cases
    nothing partial is returned.
    """
    root = Path(root)
    patterns = patterns or []
    try:
        st = os.stat(root)
        if not stat.S_ISDIR(st.st_mode):
            raise NotADirectoryError(f"not a directory: {root}")
        with os.scandir(root) as it:
            top = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise ScanError(root, exc) from exc

    records: dict[str, FileRecord] = {}
    unreadable: set[str] = set()
    links: set[str] = set()
    subdirs: list[str] = []
    for entry in top:
        if cancel is not None:
            cancel.check()
        if is_temp_name(entry.name) or is_ignored(entry.name, patterns):
            continue
        if _scan_entry(entry, entry.name, prior, records, unreadable, links):
            subdirs.append(entry.name)

    if workers > 1 and len(subdirs) > 1:
        with ThreadPoolExecutor(max_workers=workers,
                                thread_name_prefix="treesync-scan") as pool:
            futures = [pool.submit(_walk, root, d, prior, patterns, cancel)
                       for d in subdirs]
            partials = [f.result() for f in futures]
    else:
        partials = [_walk(root, d, prior, patterns, cancel) for d in subdirs]

    for part_records, part_unreadable, part_links in partials:
        records.update(part_records)
        unreadable |= part_unreadable
        links |= part_links

    inv = Inventory(root, records, unreadable, links)
    vlog(f"[scan] {root}: {len(inv.files())} file(s), "
         f"{len(inv) - len(inv.files())} dir(s), {len(links)} symlink(s), "
         f"{len(unreadable)} unreadable")
    if unreadable:
        log(f"[scan] {len(unreadable)} unreadable path(s) under {root} will be left alone")
    return inv
