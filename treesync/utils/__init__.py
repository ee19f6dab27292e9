"""Utilities (logging, retry, patterns, file utilities)"""
from .logging import log, vlog, warn, error, set_verbose
from .retry import retried
from .ignore_patterns import load_ignore_patterns, is_ignored
from .file_utils import sha256_file, _file_changed

__all__ = [
    "log", "vlog", "warn", "error", "set_verbose",
    "retried",
    "load_ignore_patterns", "is_ignored",
    "sha256_file", "_file_changed"
]
