"""Permission enforcement for a materialized scaffold.

Two permission classes exist: default (0755 directories, 0644 files) and
restricted (0700 directories, 0600 files) for integrity directories and
everything inside them. The enforcer walks the tree once, applies the
default class, then the restricted class, so a default assignment can never
widen a restricted path. Every change goes through ``change_mode`` and is
undoable.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dirforge.core.constants import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    INTEGRITY_DIR_NAME,
    RESTRICTED_DIR_MODE,
    RESTRICTED_FILE_MODE,
)
from dirforge.core.errors import CreationError
from dirforge.core.schemas import OperationKind
from dirforge.fs.fs_ops import change_mode, change_owner
from dirforge.fs.paths import is_within_integrity_dir
from dirforge.fs.transaction import TransactionManager
from dirforge.utils.debug import debug


def _raise(error: OSError) -> None:
    raise error


@dataclass(frozen=True)
class PermissionPolicy:
    """Permission bits for both classes and an optional owner to enforce."""

    dir_mode: int = DEFAULT_DIR_MODE
    file_mode: int = DEFAULT_FILE_MODE
    restricted_dir_mode: int = RESTRICTED_DIR_MODE
    restricted_file_mode: int = RESTRICTED_FILE_MODE
    integrity_dir_name: str = INTEGRITY_DIR_NAME
    owner: tuple[int, int] | None = None


@dataclass
class EnforcementReport:
    """Paths whose mode or owner the enforcer changed."""

    root: Path
    checked: int = 0
    mode_changes: list[Path] = field(default_factory=list)
    owner_changes: list[Path] = field(default_factory=list)


class PermissionEnforcer:
    """Assigns permission classes across a created subtree."""

    def __init__(
        self, manager: TransactionManager, policy: PermissionPolicy | None = None
    ) -> None:
        self._manager = manager
        self._policy = policy or PermissionPolicy()

    @property
    def policy(self) -> PermissionPolicy:
        return self._policy

    def target_mode(self, path: Path, root: Path, is_dir: bool) -> int:
        """Return the mode a path should carry under this policy."""
        restricted = is_within_integrity_dir(path, root, self._policy.integrity_dir_name)
        if is_dir:
            return self._policy.restricted_dir_mode if restricted else self._policy.dir_mode
        return self._policy.restricted_file_mode if restricted else self._policy.file_mode

    def apply(self, root: Path) -> EnforcementReport:
        """Enforce permissions on ``root`` and everything below it.

        Raises:
            CreationError: If a directory cannot be listed or a chmod/chown
                fails; the caller rolls back.
            StateError: If no transaction is Active.
        """
        report = EnforcementReport(root=root)
        default_paths: list[tuple[Path, int]] = []
        restricted_paths: list[tuple[Path, int]] = []

        try:
            entries = self._walk(root)
        except OSError as e:
            raise CreationError(
                OperationKind.CHMOD, Path(e.filename or root), f"cannot list directory: {e}"
            ) from e

        for path, is_dir in entries:
            report.checked += 1
            mode = self.target_mode(path, root, is_dir)
            if is_within_integrity_dir(path, root, self._policy.integrity_dir_name):
                restricted_paths.append((path, mode))
            else:
                default_paths.append((path, mode))

        if self._policy.owner is not None:
            uid, gid = self._policy.owner
            for path, _ in default_paths + restricted_paths:
                if change_owner(self._manager, path, uid, gid):
                    report.owner_changes.append(path)

        # Restricted class last so it always has the final word
        for path, mode in default_paths + restricted_paths:
            if change_mode(self._manager, path, mode):
                report.mode_changes.append(path)

        debug(
            f"Permissions enforced under {root}: {report.checked} checked, "
            f"{len(report.mode_changes)} changed"
        )
        return report

    @staticmethod
    def _walk(root: Path) -> list[tuple[Path, bool]]:
        """List ``root`` and its contents top-down, skipping symlinks.

        Raises:
            OSError: If any directory cannot be listed
        """
        entries: list[tuple[Path, bool]] = [(root, True)]
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            current = Path(dirpath)
            dirnames.sort()
            for name in dirnames:
                child = current / name
                if not child.is_symlink():
                    entries.append((child, True))
            for name in sorted(filenames):
                child = current / name
                if child.is_symlink() or not child.is_file():
                    continue
                entries.append((child, False))
        return entries
