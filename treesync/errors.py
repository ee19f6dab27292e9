"""
Exceptions raised by treesync
"""
from pathlib import Path
from typing import Optional


class SyncError(Exception):
    """Base class for treesync errors"""


class ConfigError(SyncError):
    """Invalid paths, mode or values; fatal before the loop starts."""


class ScanError(SyncError):
    """A scan root could not be read. Aborts one cycle, not the run."""

    def __init__(self, root: Path, cause: Optional[BaseException] = None):
        self.root = root
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot scan {root}{detail}")


class SyncInterrupted(SyncError):
    """The user asked to stop; not a failure."""
