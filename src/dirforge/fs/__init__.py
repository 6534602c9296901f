"""Filesystem layer for atomic scaffold generation.

This package provides the transaction manager with LIFO rollback, the
transactional mutation primitives that record every change, and the
permission enforcer that runs over a materialized tree.
"""

from dirforge.fs.fs_ops import change_mode, change_owner, make_directory, write_file
from dirforge.fs.paths import normalize_path
from dirforge.fs.permissions import PermissionEnforcer, PermissionPolicy
from dirforge.fs.transaction import (
    Transaction,
    TransactionManager,
    get_default_manager,
    register_exit_rollback,
    transaction_scope,
)

__all__ = [
    "PermissionEnforcer",
    "PermissionPolicy",
    "Transaction",
    "TransactionManager",
    "change_mode",
    "change_owner",
    "get_default_manager",
    "make_directory",
    "normalize_path",
    "register_exit_rollback",
    "transaction_scope",
    "write_file",
]
