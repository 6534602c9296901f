"""Schemas for the transactional scaffold engine.

These schemas define the data structures the engine reads and produces:
- DirectoryNode: validated specification tree (input, never mutated)
- Operation / UndoAction: entries of the Operation and Rollback Logs
- RollbackResult: aggregate outcome of a best-effort rollback
- ScaffoldResult: report of a generation run

The input tree uses Pydantic v2 for validation; log records and results are
plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetadataLevel(str, Enum):
    """Organizational tier described by an integrity directory's metadata file."""

    NONE = "none"
    WORKSPACE = "workspace"
    WORLD = "world"
    PROJECT = "project"
    STUDY = "study"


class OperationKind(str, Enum):
    """Kind of filesystem mutation recorded in the Operation Log."""

    MAKE_DIR = "mkdir"
    CREATE_FILE = "create_file"
    CHMOD = "chmod"
    CHOWN = "chown"


class UndoKind(str, Enum):
    """Kind of inverse action recorded in the Rollback Log."""

    REMOVE_TREE = "remove_tree"
    REMOVE_FILE = "remove_file"
    RESTORE_MODE = "restore_mode"
    RESTORE_OWNER = "restore_owner"


class TransactionState(str, Enum):
    """Lifecycle states of a transaction."""

    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


class DirectoryNode(BaseModel):
    """A node in the validated specification tree.

    Attributes:
        name: Directory name (single path segment)
        description: Informational text, never written to disk
        children: Ordered child nodes; order determines creation order
        requires_integrity_dir: Create a restricted metadata subdirectory
        metadata_level: Level tag for the metadata file in that subdirectory
        metadata: Extra key/value pairs appended verbatim to the metadata file
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str = ""
    children: tuple["DirectoryNode", ...] = ()
    requires_integrity_dir: bool = Field(default=False, alias="integrity")
    metadata_level: MetadataLevel = Field(default=MetadataLevel.NONE, alias="level")
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the name is a single, non-traversing path segment."""
        if not v or not v.strip():
            raise ValueError("Directory name must not be empty")
        if "/" in v or "\\" in v or "\x00" in v:
            raise ValueError(f"Directory name must be a single segment: {v!r}")
        if v in (".", ".."):
            raise ValueError(f"Directory name must not be '.' or '..': {v!r}")
        return v

    def walk(self) -> list[tuple[tuple[str, ...], "DirectoryNode"]]:
        """Return (segments, node) pairs in depth-first pre-order."""
        ordered: list[tuple[tuple[str, ...], DirectoryNode]] = []

        def _visit(node: DirectoryNode, prefix: tuple[str, ...]) -> None:
            segments = (*prefix, node.name)
            ordered.append((segments, node))
            for child in node.children:
                _visit(child, segments)

        _visit(self, ())
        return ordered


class MetadataStamp(BaseModel):
    """Caller-expanded creation values written into metadata files."""

    model_config = ConfigDict(frozen=True)

    created_by: str
    created_at: str


@dataclass(frozen=True)
class Operation:
    """One attempted mutation in the Operation Log."""

    kind: OperationKind
    target_path: Path
    args: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class UndoAction:
    """Inverse of a successfully applied Operation.

    ``prior_value`` holds the original permission bits for RESTORE_MODE and a
    ``(uid, gid)`` pair for RESTORE_OWNER; it is None otherwise.
    """

    kind: UndoKind
    target_path: Path
    prior_value: Any = None

    def describe(self) -> str:
        if self.kind is UndoKind.RESTORE_MODE and self.prior_value is not None:
            return f"{self.kind.value} {self.target_path} -> {self.prior_value:o}"
        if self.kind is UndoKind.RESTORE_OWNER and self.prior_value is not None:
            uid, gid = self.prior_value
            return f"{self.kind.value} {self.target_path} -> {uid}:{gid}"
        return f"{self.kind.value} {self.target_path}"


@dataclass(frozen=True)
class RollbackWarning:
    """A single undo step that failed during rollback."""

    index: int
    undo: UndoAction
    reason: str

    @property
    def path(self) -> Path:
        return self.undo.target_path

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "undo": self.undo.kind.value,
            "path": str(self.undo.target_path),
            "reason": self.reason,
        }


@dataclass
class RollbackResult:
    """Aggregate outcome of replaying a Rollback Log."""

    transaction_id: str
    attempted: int = 0
    undone: int = 0
    executed: list[UndoAction] = field(default_factory=list)
    warnings: list[RollbackWarning] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.warnings

    @property
    def manual_cleanup_paths(self) -> list[Path]:
        """Paths that may still need manual cleanup, in rollback order."""
        seen: list[Path] = []
        for warning in self.warnings:
            if warning.path not in seen:
                seen.append(warning.path)
        return seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "success": self.success,
            "attempted": self.attempted,
            "undone": self.undone,
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class ScaffoldResult:
    """Report of a generation run.

    Attributes:
        base_path: Base path the tree was materialized under
        created_directories: Directories created, in creation order
        created_files: Files created, in creation order
        success: Overall success flag
        transaction_id: Id of the transaction that carried the run
        operation_count: Number of operations logged by that transaction
        error: Failure payload when success is False
    """

    base_path: Path
    created_directories: list[Path] = field(default_factory=list)
    created_files: list[Path] = field(default_factory=list)
    success: bool = False
    transaction_id: str | None = None
    operation_count: int = 0
    error: dict[str, Any] | None = None

    @property
    def is_noop(self) -> bool:
        return self.success and not self.created_directories and not self.created_files

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_path": str(self.base_path),
            "created_directories": [str(p) for p in self.created_directories],
            "created_files": [str(p) for p in self.created_files],
            "success": self.success,
            "transaction_id": self.transaction_id,
            "operation_count": self.operation_count,
            "error": self.error,
        }


PlannedKind = Literal["directory", "integrity_dir", "metadata_file"]


@dataclass(frozen=True)
class PlannedPath:
    """A path the specification tree declares, as seen before any mutation."""

    path: Path
    kind: PlannedKind
    exists: bool
    conflict: str | None = None

    @property
    def restricted(self) -> bool:
        return self.kind != "directory"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "kind": self.kind,
            "exists": self.exists,
            "conflict": self.conflict,
        }
