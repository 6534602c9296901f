"""Pre-flight validation for scaffold generation.

Runs strictly before a transaction opens, so the common failures (bad target
path, missing permission, a file squatting where a directory belongs) are
reported without anything to roll back. Also provides the read-only planner
behind dry runs.
"""

import os
from pathlib import Path

from dirforge.core.constants import INTEGRITY_DIR_NAME
from dirforge.core.errors import PreflightError
from dirforge.core.metadata import metadata_filename
from dirforge.core.schemas import DirectoryNode, MetadataLevel, PlannedKind, PlannedPath
from dirforge.fs.paths import is_real_dir, normalize_path
from dirforge.fs.transaction import TransactionManager


def _plan_entry(path: Path, kind: PlannedKind, want_dir: bool) -> PlannedPath:
    exists = path.exists() or path.is_symlink()
    conflict: str | None = None
    if exists:
        if want_dir and not is_real_dir(path):
            conflict = "exists and is not a directory"
        elif not want_dir and (path.is_symlink() or not path.is_file()):
            conflict = "exists and is not a regular file"
    return PlannedPath(path=path, kind=kind, exists=exists, conflict=conflict)


def plan_scaffold(
    root: DirectoryNode,
    base_path: Path,
    integrity_dir_name: str = INTEGRITY_DIR_NAME,
) -> list[PlannedPath]:
    """List every path the tree declares, in creation order.

    Nothing is modified. Each entry notes whether the path exists and
    whether it conflicts with the kind of path the tree requires there.
    """
    base = normalize_path(base_path)
    planned: list[PlannedPath] = []

    for segments, node in root.walk():
        node_path = base.joinpath(*segments)
        planned.append(_plan_entry(node_path, "directory", want_dir=True))

        if not node.requires_integrity_dir:
            continue
        integrity_path = node_path / integrity_dir_name
        planned.append(_plan_entry(integrity_path, "integrity_dir", want_dir=True))

        if node.metadata_level is not MetadataLevel.NONE:
            file_path = integrity_path / metadata_filename(node.metadata_level)
            planned.append(_plan_entry(file_path, "metadata_file", want_dir=False))

    return planned


def _check_writable_dir(path: Path, role: str) -> None:
    if not path.exists():
        raise PreflightError(f"{role} does not exist", path)
    if not path.is_dir():
        raise PreflightError(f"{role} is not a directory", path)
    if not os.access(path, os.W_OK | os.X_OK):
        raise PreflightError(f"{role} is not writable", path)


def validate(
    root: DirectoryNode,
    base_path: Path,
    manager: TransactionManager,
    integrity_dir_name: str = INTEGRITY_DIR_NAME,
) -> list[PlannedPath]:
    """Check that generation can start.

    Args:
        root: Specification tree
        base_path: Directory the tree is materialized under
        manager: Transaction manager that will carry the run
        integrity_dir_name: Name of integrity subdirectories

    Returns:
        The scaffold plan, for callers that want to report it

    Raises:
        PreflightError: On the first failed check
    """
    if manager.is_active:
        raise PreflightError(f"transaction already active: {manager.current_id}")

    base = normalize_path(base_path)

    _check_writable_dir(base.parent, "Base parent directory")
    if base.exists() or base.is_symlink():
        _check_writable_dir(base, "Base path")

    plan = plan_scaffold(root, base, integrity_dir_name)
    for entry in plan:
        if entry.conflict is not None:
            raise PreflightError(f"{entry.kind} {entry.conflict}", entry.path)

    return plan
