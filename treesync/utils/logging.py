"""
Console output for treesync: timestamped progress lines on stdout,
errors on stderr. Safe to call from scanner and applier worker threads.
"""
import sys
import threading
from datetime import datetime

_verbose = False
_lock = threading.Lock()


def set_verbose(verbose: bool):
    global _verbose
    _verbose = verbose


def _emit(line: str, stream=None):
    with _lock:
        print(line, file=stream or sys.stdout, flush=True)


def log(msg: str):
    """Log a message with timestamp"""
    _emit(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}")


def vlog(msg: str):
    """Log only when --debug/--verbose is on."""
    if _verbose:
        log(msg)


def warn(msg: str):
    log(f"⚠  {msg}")


def error(msg: str):
    """Untimestamped "error: ..." line on stderr, for the CLI."""
    _emit(f"error: {msg}", sys.stderr)
