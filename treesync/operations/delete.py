"""
Delete operations
"""
import os
import shutil
from pathlib import Path
from ..utils.logging import vlog


def remove_path(path: Path) -> bool:
    """
    Remove a file, symlink or whole directory tree at *path*.
    A path that is already gone counts as removed. Returns True if
    something was actually deleted.
    """
    try:
        st = path.lstat()
    except FileNotFoundError:
        vlog(f"  [DEL-GONE] {path}")
        return False
    if os.path.isdir(path) and not path.is_symlink():
        # children first; rmtree removes bottom-up
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)
    vlog(f"  [DEL] {path} ({st.st_size} B)")
    return True
