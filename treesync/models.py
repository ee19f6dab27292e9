"""
Data model shared by the scanner, diff engine, applier and sync loop
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


class SyncMode(Enum):
    ONE_WAY = "one-way"
    BI_DIRECTIONAL = "bi-directional"

    @classmethod
    def parse(cls, value: str) -> "SyncMode":
        key = value.strip().lower().replace("_", "-")
        aliases = {
            "one": cls.ONE_WAY, "one-way": cls.ONE_WAY, "oneway": cls.ONE_WAY,
            "bi": cls.BI_DIRECTIONAL, "bi-directional": cls.BI_DIRECTIONAL,
            "bidirectional": cls.BI_DIRECTIONAL, "two-way": cls.BI_DIRECTIONAL,
        }
        try:
            return aliases[key]
        except KeyError:
            raise ValueError(
                f"invalid mode {value!r} (expected one-way or bi-directional)"
            ) from None


@dataclass(frozen=True)
class FileRecord:
    """One file or directory as seen by a single scan."""
    path: str  # relative, POSIX separators
    size: int
    mtime_ns: int
    hash: Optional[str] = None  # SHA-256 hex; None for directories
    is_dir: bool = False

    def same_content(self, other: "FileRecord") -> bool:
        if self.is_dir or other.is_dir:
            return self.is_dir == other.is_dir
        return self.hash == other.hash


class Inventory(Mapping):
    """
    Read-only {relative path: FileRecord} snapshot of one tree.

    ``unreadable`` holds the paths the scan could not stat, list or hash;
    nothing at or below them may be acted upon. ``links`` holds symbolic
    links, which are never followed or copied but may be deleted as orphans.
    """

    def __init__(self, root: Path, records: Optional[dict] = None,
                 unreadable: Optional[set] = None, links: Optional[set] = None):
        self.root = Path(root)
        self._records: dict[str, FileRecord] = dict(records or {})
        self.unreadable: frozenset[str] = frozenset(unreadable or ())
        self.links: frozenset[str] = frozenset(links or ())

    def __getitem__(self, rel: str) -> FileRecord:
        return self._records[rel]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return (f"Inventory({str(self.root)!r}, {len(self._records)} record(s), "
                f"{len(self.unreadable)} unreadable)")

    def files(self) -> list[FileRecord]:
        return [r for r in self._records.values() if not r.is_dir]

    def is_uncertain(self, rel: str) -> bool:
        """True if *rel* or any of its ancestors could not be read."""
        if not self.unreadable:
            return False
        if rel in self.unreadable:
            return True
        parts = rel.split("/")
        return any("/".join(parts[:i]) in self.unreadable for i in range(1, len(parts)))


class ActionKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Action:
    """One filesystem change: make ``target_root/path`` match ``source_root/path``."""
    kind: ActionKind
    path: str
    target_root: Path
    source_root: Optional[Path] = None  # None for DELETE
    is_dir: bool = False  # kind of the source entry (of the target entry for DELETE)

    @property
    def target(self) -> Path:
        return self.target_root / self.path

    @property
    def source(self) -> Optional[Path]:
        if self.source_root is None:
            return None
        return self.source_root / self.path

    def __str__(self) -> str:
        suffix = "/" if self.is_dir else ""
        return f"{self.kind.name} {self.path}{suffix} → {self.target_root}"


@dataclass(frozen=True)
class Conflict:
    """A mismatch that cannot be resolved deterministically. Never applied."""
    path: str
    reason: str
    left: Optional[FileRecord] = None
    right: Optional[FileRecord] = None


@dataclass
class SyncPlan:
    actions: list[Action] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.actions)

    def count(self, kind: ActionKind) -> int:
        return sum(1 for a in self.actions if a.kind is kind)


class ResultStatus(Enum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ActionResult:
    action: Action
    status: ResultStatus
    error: Optional[str] = None
    bytes_copied: int = 0

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.APPLIED


@dataclass
class CycleReport:
    """What one scan → diff → apply cycle did."""
    cycle: int
    plan: SyncPlan = field(default_factory=SyncPlan)
    results: list[ActionResult] = field(default_factory=list)
    error: Optional[str] = None  # set when the cycle aborted
    interrupted: bool = False

    def count(self, status: ResultStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def failed(self) -> int:
        return self.count(ResultStatus.FAILED)

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0
