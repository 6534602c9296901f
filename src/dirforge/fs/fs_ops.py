"""Transactional filesystem primitives.

Each primitive performs one mutation and records it through the transaction
manager. The undo entry is appended only once the mutation has actually
happened, so every Rollback Log entry stands for a real change on disk.
"""

import os
from pathlib import Path

from dirforge.core.constants import DEFAULT_DIR_MODE, DEFAULT_FILE_MODE
from dirforge.core.errors import CreationError, StateError
from dirforge.core.schemas import OperationKind, UndoKind
from dirforge.fs.paths import get_mode, get_owner, is_real_dir
from dirforge.fs.transaction import TransactionManager
from dirforge.utils.debug import debug


def _require_active(manager: TransactionManager, operation: str) -> None:
    if not manager.is_active:
        raise StateError(operation, manager.state, detail="no active transaction")


def make_directory(
    manager: TransactionManager,
    path: Path,
    mode: int = DEFAULT_DIR_MODE,
) -> bool:
    """Create a single directory inside the active transaction.

    Args:
        manager: Transaction manager with an Active transaction
        path: Directory to create; its parent must already exist
        mode: Permission bits applied after creation

    Returns:
        True if the directory was created, False if it already existed

    Raises:
        CreationError: If the path exists as a non-directory or mkdir/chmod fails
        StateError: If no transaction is Active
    """
    _require_active(manager, "make_directory")

    if is_real_dir(path):
        debug(f"Directory already exists: {path}")
        return False
    if path.exists() or path.is_symlink():
        raise CreationError(
            OperationKind.MAKE_DIR, path, "path exists and is not a directory"
        )

    try:
        os.mkdir(path, mode)
    except OSError as e:
        raise CreationError(OperationKind.MAKE_DIR, path, str(e)) from e

    manager.log_operation(OperationKind.MAKE_DIR, path, {"mode": mode})
    manager.record_undo(UndoKind.REMOVE_TREE, path)
    debug(f"mkdir {path} ({mode:o})")

    # mkdir honours the umask; set the exact bits
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise CreationError(OperationKind.MAKE_DIR, path, f"chmod failed: {e}") from e

    return True


def write_file(
    manager: TransactionManager,
    path: Path,
    content: str,
    mode: int = DEFAULT_FILE_MODE,
) -> bool:
    """Create a new file with the given content inside the active transaction.

    Existing files are never overwritten.

    Returns:
        True if the file was created, False if a regular file already existed

    Raises:
        CreationError: If the path exists as a non-file or the write fails
        StateError: If no transaction is Active
    """
    _require_active(manager, "write_file")

    if path.is_file() and not path.is_symlink():
        debug(f"File already exists: {path}")
        return False
    if path.exists() or path.is_symlink():
        raise CreationError(
            OperationKind.CREATE_FILE, path, "path exists and is not a regular file"
        )

    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    except OSError as e:
        raise CreationError(OperationKind.CREATE_FILE, path, str(e)) from e

    manager.log_operation(
        OperationKind.CREATE_FILE, path, {"mode": mode, "size": len(content)}
    )
    manager.record_undo(UndoKind.REMOVE_FILE, path)

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.chmod(path, mode)
    except OSError as e:
        raise CreationError(OperationKind.CREATE_FILE, path, str(e)) from e

    debug(f"create {path} ({mode:o})")
    return True


def change_mode(manager: TransactionManager, path: Path, mode: int) -> bool:
    """Set permission bits, recording the prior bits for rollback.

    Returns:
        True if the mode changed, False if it already matched
    """
    _require_active(manager, "change_mode")

    try:
        prior = get_mode(path)
    except OSError as e:
        raise CreationError(OperationKind.CHMOD, path, str(e)) from e
    if prior == mode:
        return False

    manager.log_operation(OperationKind.CHMOD, path, {"mode": mode, "prior_mode": prior})
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise CreationError(OperationKind.CHMOD, path, str(e)) from e
    manager.record_undo(UndoKind.RESTORE_MODE, path, prior)

    debug(f"chmod {path} {prior:o} -> {mode:o}")
    return True


def change_owner(manager: TransactionManager, path: Path, uid: int, gid: int) -> bool:
    """Change ownership, recording the prior owner for rollback.

    Returns:
        True if ownership changed, False if it already matched
    """
    _require_active(manager, "change_owner")

    try:
        prior = get_owner(path)
    except OSError as e:
        raise CreationError(OperationKind.CHOWN, path, str(e)) from e
    if prior == (uid, gid):
        return False

    manager.log_operation(
        OperationKind.CHOWN, path, {"uid": uid, "gid": gid, "prior_owner": prior}
    )
    try:
        os.chown(path, uid, gid, follow_symlinks=False)
    except OSError as e:
        raise CreationError(OperationKind.CHOWN, path, str(e)) from e
    manager.record_undo(UndoKind.RESTORE_OWNER, path, prior)

    debug(f"chown {path} {prior[0]}:{prior[1]} -> {uid}:{gid}")
    return True
