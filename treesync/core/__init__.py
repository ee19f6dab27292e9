"""Core functionality"""
from .diff_engine import decide
from .applier import apply_plan
from .sync_engine import SyncLoop, SyncState, run_sync

__all__ = ["decide", "apply_plan", "SyncLoop", "SyncState", "run_sync"]
