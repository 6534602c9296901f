"""Scaffold generator: materializes a DirectoryNode tree atomically.

Flow: pre-flight validation, begin transaction, depth-first pre-order
creation of every node (and its integrity directory and metadata file),
permission enforcement over the whole base path, commit. Any creation failure
rolls the whole transaction back before the error reaches the caller.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from dirforge.core.constants import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    RESTRICTED_DIR_MODE,
    RESTRICTED_FILE_MODE,
)
from dirforge.core.errors import CreationError
from dirforge.core.metadata import default_stamp, metadata_filename, render_metadata
from dirforge.core.preflight import validate
from dirforge.core.schemas import (
    DirectoryNode,
    MetadataLevel,
    MetadataStamp,
    ScaffoldResult,
)
from dirforge.fs.fs_ops import make_directory, write_file
from dirforge.fs.paths import normalize_path, resolve_integrity_dir_name
from dirforge.fs.permissions import PermissionEnforcer, PermissionPolicy
from dirforge.fs.transaction import (
    TransactionManager,
    get_default_manager,
    transaction_scope,
)


@dataclass
class ScaffoldOptions:
    """Options for a generation run.

    Attributes:
        integrity_dir_name: Integrity directory name; falls back to
            DIRFORGE_INTEGRITY_DIR, then '.integrity'
        dir_mode: Default-class directory mode
        file_mode: Default-class file mode
        restricted_dir_mode: Integrity directory mode
        restricted_file_mode: Mode of files inside integrity directories
        owner: Optional (uid, gid) enforced across the scaffold
        enforce_permissions: Run the permission enforcer after creation
        verbose: Log each rollback step at info level
        label: Prefix for transaction labels
    """

    integrity_dir_name: str | None = None
    dir_mode: int = DEFAULT_DIR_MODE
    file_mode: int = DEFAULT_FILE_MODE
    restricted_dir_mode: int = RESTRICTED_DIR_MODE
    restricted_file_mode: int = RESTRICTED_FILE_MODE
    owner: tuple[int, int] | None = None
    enforce_permissions: bool = True
    verbose: bool = False
    label: str = "scaffold"

    def policy(self, integrity_dir_name: str) -> PermissionPolicy:
        return PermissionPolicy(
            dir_mode=self.dir_mode,
            file_mode=self.file_mode,
            restricted_dir_mode=self.restricted_dir_mode,
            restricted_file_mode=self.restricted_file_mode,
            integrity_dir_name=integrity_dir_name,
            owner=self.owner,
        )


class ScaffoldGenerator:
    """Walks a specification tree and creates it inside one transaction."""

    def __init__(
        self,
        manager: TransactionManager | None = None,
        options: ScaffoldOptions | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize the generator.

        Args:
            manager: Transaction manager; defaults to the process-wide one
            options: Generation options
            logger: Optional structlog logger instance
        """
        self._manager = manager or get_default_manager()
        self._options = options or ScaffoldOptions()
        self._logger = logger or structlog.get_logger()

    @property
    def manager(self) -> TransactionManager:
        return self._manager

    @property
    def options(self) -> ScaffoldOptions:
        return self._options

    @property
    def integrity_dir_name(self) -> str:
        return resolve_integrity_dir_name(self._options.integrity_dir_name)

    def generate(
        self,
        root: DirectoryNode,
        base_path: Path | str,
        stamp: MetadataStamp | None = None,
    ) -> ScaffoldResult:
        """Materialize ``root`` under ``base_path``.

        Args:
            root: Validated specification tree
            base_path: Directory to create the tree in; created if missing
                (its parent must exist)
            stamp: Creation values for metadata files

        Returns:
            ScaffoldResult with created paths in creation order

        Raises:
            PreflightError: Validation failed; nothing was touched
            CreationError: A mutation failed; the transaction was rolled back
                and ``error.rollback`` describes the outcome
        """
        opts = self._options
        integrity_name = self.integrity_dir_name
        base = normalize_path(base_path)
        bound_logger = self._logger.bind(base_path=str(base), root=root.name)

        validate(root, base, self._manager, integrity_name)

        # A symlinked base is accepted; work on its target so every later
        # stat, chmod and undo sees a real directory
        if base.is_symlink():
            base = base.resolve(strict=True)

        stamp = stamp or default_stamp()
        result = ScaffoldResult(base_path=base)

        try:
            with transaction_scope(
                self._manager, f"{opts.label}_{root.name}", verbose=opts.verbose
            ) as tx:
                result.transaction_id = tx.id
                bound_logger = bound_logger.bind(transaction_id=tx.id)

                if make_directory(self._manager, base, opts.dir_mode):
                    result.created_directories.append(base)

                for segments, node in root.walk():
                    self._materialize(
                        node, base.joinpath(*segments), integrity_name, stamp, result
                    )

                if opts.enforce_permissions:
                    enforcer = PermissionEnforcer(
                        self._manager, opts.policy(integrity_name)
                    )
                    enforcer.apply(base)

                result.operation_count = tx.operation_count
        except CreationError as e:
            bound_logger.error(
                "scaffold.failed",
                operation=e.operation.value,
                path=str(e.path),
                reason=e.reason,
                rollback_complete=e.rollback_complete,
                manual_cleanup_paths=[str(p) for p in e.manual_cleanup_paths],
            )
            raise

        result.success = True
        bound_logger.info(
            "scaffold.summary",
            directories=len(result.created_directories),
            files=len(result.created_files),
            operations=result.operation_count,
        )
        return result

    def _materialize(
        self,
        node: DirectoryNode,
        path: Path,
        integrity_name: str,
        stamp: MetadataStamp,
        result: ScaffoldResult,
    ) -> None:
        """Create one node and, if requested, its integrity directory.

        Each node is handled independently: an existing directory is kept,
        and a missing integrity directory or metadata file is still created.
        """
        opts = self._options

        if make_directory(self._manager, path, opts.dir_mode):
            result.created_directories.append(path)

        if not node.requires_integrity_dir:
            return

        integrity_path = path / integrity_name
        if make_directory(self._manager, integrity_path, opts.restricted_dir_mode):
            result.created_directories.append(integrity_path)

        if node.metadata_level is MetadataLevel.NONE:
            return

        file_path = integrity_path / metadata_filename(node.metadata_level)
        content = render_metadata(node, stamp)
        if write_file(self._manager, file_path, content, opts.restricted_file_mode):
            result.created_files.append(file_path)
