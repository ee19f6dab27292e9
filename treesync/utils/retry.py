"""
Retry decorator for filesystem operations that may fail transiently
"""
import errno
import functools
import time
from .logging import log, warn
from .. import config as _cfg

# errors that will not go away by trying again
PERMANENT_ERRNOS = {
    errno.ENOENT, errno.EACCES, errno.EPERM, errno.EISDIR,
    errno.ENOTDIR, errno.EEXIST, errno.ENOSPC, errno.EROFS,
}


def is_transient(exc: OSError) -> bool:
    """True if *exc* is worth another attempt."""
    return exc.errno is not None and exc.errno not in PERMANENT_ERRNOS


def retried(fn):
    """Decorator: retry fn up to RETRY_MAX times with exponential back-off."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        delay = _cfg.RETRY_BASE_DELAY
        for attempt in range(1, _cfg.RETRY_MAX + 1):
            try:
                return fn(*args, **kwargs)
            except OSError as exc:
                if attempt == _cfg.RETRY_MAX or not is_transient(exc):
                    raise
                warn(f"{fn.__name__} failed (attempt {attempt}/{_cfg.RETRY_MAX}): {exc}")
                log(f"  retrying in {delay:.1f}s …")
                time.sleep(delay)
                delay = min(delay * 2, _cfg.RETRY_MAX_DELAY)

    return wrapper
