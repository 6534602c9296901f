"""Transaction manager for atomic scaffold generation.

A transaction owns two append-only logs: the Operation Log (every mutation
attempted) and the Rollback Log (the inverse of every mutation that
succeeded). Rolling back replays the Rollback Log most-recent-first and keeps
going past individual failures, collecting them as warnings.

The manager itself never touches the filesystem except to execute undo
actions; callers perform mutations and record them (see ``fs_ops``).
"""

import atexit
import os
import shutil
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from dirforge.core.constants import DEFAULT_TRANSACTION_LABEL
from dirforge.core.errors import AlreadyActiveError, CreationError, StateError
from dirforge.core.schemas import (
    Operation,
    OperationKind,
    RollbackResult,
    RollbackWarning,
    TransactionState,
    UndoAction,
    UndoKind,
)
from dirforge.utils.debug import debug


class Transaction:
    """Handle for a single transaction.

    Attributes:
        id: Unique id for this invocation
        label: Caller-supplied label
        state: Current lifecycle state
        started_at: UTC time the transaction began
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.id = f"tx_{label}_{os.getpid()}_{uuid.uuid4().hex[:12]}"
        self.state = TransactionState.ACTIVE
        self.started_at = datetime.now(UTC)
        self.operation_log: list[Operation] | None = []
        self.rollback_log: list[UndoAction] | None = []
        self.operation_count = 0

    @property
    def is_active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def __repr__(self) -> str:
        return (
            f"Transaction(id={self.id!r}, state={self.state.value!r}, "
            f"operations={self.operation_count})"
        )


class TransactionManager:
    """Owns at most one Active transaction and both of its logs.

    State machine: Idle -begin-> Active; Active -commit|rollback|abort-> Idle.
    Every other call raises StateError.
    """

    def __init__(self, logger: Any = None) -> None:
        """Initialize the manager.

        Args:
            logger: Optional structlog logger instance
        """
        self._logger = logger or structlog.get_logger()
        self._current: Transaction | None = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> TransactionState:
        if self._current is None:
            return TransactionState.IDLE
        return self._current.state

    @property
    def is_active(self) -> bool:
        return self._current is not None and self._current.is_active

    @property
    def current(self) -> Transaction | None:
        return self._current

    @property
    def current_id(self) -> str | None:
        return self._current.id if self._current is not None else None

    @property
    def operation_log(self) -> tuple[Operation, ...]:
        """Snapshot of the Operation Log in the order operations were logged."""
        if self._current is None or self._current.operation_log is None:
            return ()
        return tuple(self._current.operation_log)

    @property
    def rollback_plan(self) -> tuple[UndoAction, ...]:
        """Undo actions in the order rollback would execute them."""
        if self._current is None or self._current.rollback_log is None:
            return ()
        return tuple(reversed(self._current.rollback_log))

    def status(self) -> dict[str, Any]:
        """Describe the current transaction for inspection."""
        tx = self._current
        if tx is None:
            return {"active": False, "id": "", "operations": 0}
        return {
            "active": tx.is_active,
            "id": tx.id,
            "label": tx.label,
            "state": tx.state.value,
            "operations": tx.operation_count,
            "operation_log_size": len(tx.operation_log or ()),
            "rollback_log_size": len(tx.rollback_log or ()),
            "started_at": tx.started_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self, label: str = DEFAULT_TRANSACTION_LABEL) -> Transaction:
        """Open a new transaction.

        Raises:
            AlreadyActiveError: If a transaction is already Active. The
                existing transaction is left untouched.
        """
        if self._current is not None and self._current.is_active:
            raise AlreadyActiveError(self._current.id)

        tx = Transaction(label)
        self._current = tx
        self._logger.info("transaction.begin", transaction_id=tx.id, label=label)
        return tx

    def log_operation(
        self,
        kind: OperationKind,
        path: Path,
        args: dict[str, Any] | None = None,
    ) -> Operation:
        """Append an Operation to the Operation Log.

        This does not perform the mutation; the caller does.
        """
        tx = self._require_active("log_operation")
        if tx.operation_log is None:
            raise StateError("log_operation", tx.state, detail="operation log missing")

        op = Operation(
            kind=kind,
            target_path=Path(path),
            args=dict(args or {}),
            timestamp=datetime.now(UTC),
        )
        tx.operation_log.append(op)
        tx.operation_count += 1
        return op

    def record_undo(
        self,
        kind: UndoKind,
        path: Path,
        prior_value: Any = None,
    ) -> UndoAction:
        """Append an UndoAction to the Rollback Log.

        Call only after the forward mutation has succeeded.
        """
        tx = self._require_active("record_undo")
        if tx.rollback_log is None:
            raise StateError("record_undo", tx.state, detail="rollback log missing")
        if kind in (UndoKind.RESTORE_MODE, UndoKind.RESTORE_OWNER) and prior_value is None:
            raise ValueError(f"{kind.value} requires a prior value")

        undo = UndoAction(kind=kind, target_path=Path(path), prior_value=prior_value)
        tx.rollback_log.append(undo)
        return undo

    def commit(self, verbose: bool = False) -> None:
        """Make the transaction's changes permanent and discard its logs.

        Raises:
            StateError: If no transaction is Active or its logs are malformed.
                The transaction stays Active so the caller can roll back.
        """
        tx = self._require_active("commit")
        self._validate(tx)

        log = self._logger.info if verbose else self._logger.debug
        log(
            "transaction.commit",
            transaction_id=tx.id,
            operations=tx.operation_count,
        )
        self._finalize(tx, TransactionState.COMMITTED)

    def rollback(self, verbose: bool = False) -> RollbackResult:
        """Undo every recorded change, most recent first.

        Individual undo failures become warnings; the remaining steps still
        run. The manager always returns to Idle.

        Returns:
            RollbackResult; ``success`` is False if any undo step failed.

        Raises:
            StateError: If no transaction is Active, or its Rollback Log is
                missing (the transaction is still finalized).
        """
        tx = self._require_active("rollback")
        bound_logger = self._logger.bind(transaction_id=tx.id, label=tx.label)

        if tx.rollback_log is None:
            self._finalize(tx, TransactionState.ROLLED_BACK)
            raise StateError("rollback", TransactionState.ACTIVE, detail="rollback log missing")

        entries = list(tx.rollback_log)
        result = RollbackResult(transaction_id=tx.id)

        try:
            for index in range(len(entries) - 1, -1, -1):
                undo = entries[index]
                result.attempted += 1
                if verbose:
                    bound_logger.info("transaction.rollback.step", undo=undo.describe())
                else:
                    debug(f"Rolling back: {undo.describe()}")

                try:
                    _execute_undo(undo)
                except OSError as exc:
                    warning = RollbackWarning(index=index, undo=undo, reason=str(exc))
                    result.warnings.append(warning)
                    bound_logger.warning(
                        "transaction.rollback.warning",
                        index=index,
                        undo=undo.kind.value,
                        path=str(undo.target_path),
                        reason=str(exc),
                    )
                    continue

                result.undone += 1
                result.executed.append(undo)
        finally:
            self._finalize(tx, TransactionState.ROLLED_BACK)

        bound_logger.info(
            "transaction.rollback",
            attempted=result.attempted,
            undone=result.undone,
            warnings=len(result.warnings),
            success=result.success,
        )
        return result

    def abort(self, verbose: bool = False) -> None:
        """Discard the logs without executing any undo action."""
        tx = self._require_active("abort")
        log = self._logger.info if verbose else self._logger.debug
        log(
            "transaction.abort",
            transaction_id=tx.id,
            discarded_undo=len(tx.rollback_log or ()),
        )
        self._finalize(tx, TransactionState.ABORTED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, operation: str) -> Transaction:
        tx = self._current
        if tx is None or not tx.is_active:
            raise StateError(operation, self.state, detail="no active transaction")
        return tx

    @staticmethod
    def _validate(tx: Transaction) -> None:
        if tx.operation_log is None:
            raise StateError("commit", tx.state, detail="operation log missing")
        if tx.rollback_log is None:
            raise StateError("commit", tx.state, detail="rollback log missing")
        if len(tx.rollback_log) > len(tx.operation_log):
            raise StateError(
                "commit",
                tx.state,
                detail=(
                    f"rollback log has {len(tx.rollback_log)} entries for "
                    f"{len(tx.operation_log)} operations"
                ),
            )

    def _finalize(self, tx: Transaction, final_state: TransactionState) -> None:
        tx.state = final_state
        tx.operation_log = None
        tx.rollback_log = None
        if self._current is tx:
            self._current = None


def _execute_undo(undo: UndoAction) -> None:
    """Apply a single undo action; missing targets are already undone."""
    path = undo.target_path

    if undo.kind is UndoKind.REMOVE_TREE:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path)
    elif undo.kind is UndoKind.REMOVE_FILE:
        if path.exists() or path.is_symlink():
            path.unlink()
    elif undo.kind is UndoKind.RESTORE_MODE:
        if path.exists():
            os.chmod(path, undo.prior_value)
    elif undo.kind is UndoKind.RESTORE_OWNER:
        if path.exists():
            uid, gid = undo.prior_value
            os.chown(path, uid, gid, follow_symlinks=False)
    else:  # pragma: no cover - exhaustive over UndoKind
        raise ValueError(f"Unknown undo action: {undo.kind}")


# ----------------------------------------------------------------------
# Process default, scoped guard and exit-time safety net
# ----------------------------------------------------------------------

_default_manager: TransactionManager | None = None


def get_default_manager() -> TransactionManager:
    """Return the process-wide manager, creating it on first use."""
    global _default_manager
    if _default_manager is None:
        _default_manager = TransactionManager()
    return _default_manager


@contextmanager
def transaction_scope(
    manager: TransactionManager,
    label: str = DEFAULT_TRANSACTION_LABEL,
    *,
    verbose: bool = False,
) -> Iterator[Transaction]:
    """Run a block inside a transaction.

    Commits on a clean exit. On any exception (including KeyboardInterrupt)
    the transaction is rolled back and the exception re-raised; a
    CreationError gets the rollback outcome attached.
    """
    tx = manager.begin(label)
    try:
        yield tx
    except BaseException as exc:
        if manager.current is tx and tx.is_active:
            result = manager.rollback(verbose=verbose)
            if isinstance(exc, CreationError) and exc.rollback is None:
                exc.rollback = result
        raise
    else:
        if manager.current is tx and tx.is_active:
            try:
                manager.commit(verbose=verbose)
            except StateError:
                manager.rollback(verbose=verbose)
                raise


def register_exit_rollback(manager: TransactionManager) -> Callable[[], None]:
    """Roll back an Active transaction when the interpreter exits.

    Advisory only: termination by signal skips atexit handlers.

    Returns:
        A callable that unregisters the hook.
    """

    def _rollback_on_exit() -> None:
        if manager.is_active:
            manager.rollback(verbose=True)

    atexit.register(_rollback_on_exit)
    return lambda: atexit.unregister(_rollback_on_exit)
