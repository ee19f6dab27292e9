"""
Ignore patterns handling (.treesyncignore file parsing)
"""
import re
from pathlib import Path
from typing import Iterable
from .. import config as _cfg


def _compile_pattern(raw: str):
    """Compile a .treesyncignore pattern into a regex"""
    p = raw.strip()
    if not p or p.startswith("#"):
        return None
    # "dir/" and "dir/**" both mean the directory and everything below it
    if p.endswith("/**"):
        p = p[:-3]
    p = p.rstrip("/")
    if not p:
        return None
    anchored = p.startswith("/")
    if anchored:
        p = p.lstrip("/")
    escaped = re.escape(p)
    escaped = escaped.replace(r"\*\*/", "§DSS§")
    escaped = escaped.replace(r"\*\*", "§DS§")
    escaped = escaped.replace(r"\*", "[^/]*")
    escaped = escaped.replace(r"\?", "[^/]")
    escaped = escaped.replace("§DSS§", "(.*/)?")
    escaped = escaped.replace("§DS§", ".*")
    if anchored:
        escaped = "^" + escaped
    else:
        escaped = r"(^|.*/)" + escaped
    try:
        return re.compile(escaped + r"(/.*)?$")
    except re.error:
        return None


def compile_patterns(lines: Iterable[str]) -> list:
    patterns = []
    for line in lines:
        c = _compile_pattern(line)
        if c:
            patterns.append(c)
    return patterns


def load_ignore_patterns(*roots: Path) -> list:
    """Load ignore patterns from the ignore file of every given root"""
    patterns = []
    for root in roots:
        f = Path(root) / _cfg.IGNORE_FILE
        if not f.is_file():
            continue
        patterns.extend(compile_patterns(
            f.read_text(encoding="utf-8", errors="replace").splitlines()
        ))
    return patterns


def is_ignored(rel_path: str, patterns: list) -> bool:
    """Check if a path matches any ignore pattern"""
    norm = rel_path.replace("\\", "/")
    if norm == _cfg.IGNORE_FILE:
        return True
    return any(p.search(norm) for p in patterns)
