"""
File transfer operations (atomic copy, directory creation)
"""
import os
import shutil
import tempfile
from pathlib import Path
from .. import config as _cfg
from ..utils.logging import vlog
from ..utils.retry import retried
from .delete import remove_path


@retried
def atomic_copy(src: Path, dst: Path) -> int:
    """
    Copy *src* to *dst* so that readers of *dst* only ever see the old or the
    new content: bytes go to a temp file in the target directory, which is
    then renamed over *dst*. Mode and timestamps follow the source.
    Returns the number of bytes copied.
    """
    if dst.is_dir() and not dst.is_symlink():
        raise IsADirectoryError(f"target is a directory: {dst}")
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f"{_cfg.TEMP_PREFIX}{dst.name}.",
        suffix=_cfg.TEMP_SUFFIX,
        dir=dst.parent,
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out, open(src, "rb") as inp:
            shutil.copyfileobj(inp, out, length=1024 * 1024)
            out.flush()
            os.fsync(out.fileno())
        shutil.copystat(src, tmp)
        os.replace(tmp, dst)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    size = dst.stat().st_size
    vlog(f"  [COPY] {src} → {dst} ({size} B)")
    return size


def replace_with_file(src: Path, dst: Path) -> int:
    """Copy a file over whatever is at *dst*, removing a directory there first."""
    if dst.is_dir() and not dst.is_symlink():
        remove_path(dst)
    return atomic_copy(src, dst)


def make_dir(src: Path, dst: Path):
    """Create directory *dst* (replacing a file there) and copy *src*'s mode."""
    # a symlink at the target is replaced, never written through
    if dst.is_symlink() or (dst.exists() and not dst.is_dir()):
        remove_path(dst)
    dst.mkdir(parents=True, exist_ok=True)
    shutil.copymode(src, dst)
    vlog(f"  [MKDIR] {dst}")
