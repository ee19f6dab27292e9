"""Operations (scan, transfer, delete, conflict)"""
from .scanner import scan_tree
from .transfer import atomic_copy, replace_with_file, make_dir
from .delete import remove_path
from .conflict import conflict_reason, report_conflicts

__all__ = [
    "scan_tree",
    "atomic_copy", "replace_with_file", "make_dir",
    "remove_path",
    "conflict_reason", "report_conflicts"
]
