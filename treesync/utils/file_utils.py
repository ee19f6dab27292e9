"""
File utilities (SHA-256, path helpers)
"""
import hashlib
from pathlib import Path, PurePosixPath
from typing import Optional

from .. import config as _cfg

CHUNK_SIZE = 65536


def sha256_file(path: Path) -> str:
    """Compute the SHA-256 hex digest of a local file"""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def _file_changed(new_mtime_ns: int, new_size: int,
                  old_mtime_ns: Optional[int], old_size: Optional[int]) -> bool:
    """True if the file is different from what we last recorded."""
    if old_mtime_ns is None:
        return True
    return new_mtime_ns != old_mtime_ns or new_size != old_size


def depth(rel: str) -> int:
    """Number of components in a relative POSIX path ("a/b" → 2)."""
    return len(PurePosixPath(rel).parts)


def is_temp_name(name: str) -> bool:
    """True for the temporary files written by atomic copies."""
    return name.startswith(_cfg.TEMP_PREFIX) and name.endswith(_cfg.TEMP_SUFFIX)


def under_any(rel: str, dirs) -> bool:
    """True if a strict ancestor of *rel* is in *dirs*."""
    parts = rel.split("/")
    return any("/".join(parts[:i]) in dirs for i in range(1, len(parts)))
