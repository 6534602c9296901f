"""Custom exceptions for DirForge.

This module defines the typed exceptions raised by the scaffold engine:
- PreflightError: caught before any transaction is opened
- CreationError: mid-generation failure, raised after rollback was attempted
- StateError: a transaction lifecycle call made in the wrong state

Rollback warnings are not exceptions; see ``RollbackWarning`` in schemas.
"""

from pathlib import Path
from typing import Any

from dirforge.core.schemas import OperationKind, RollbackResult, TransactionState


class DirForgeError(Exception):
    """Base exception for all DirForge errors.

    All custom exceptions inherit from this base class so callers can catch
    every engine failure in one place.
    """

    def to_dict(self) -> dict[str, Any]:
        return {"error": "dirforge_error", "reason": str(self)}


class PreflightError(DirForgeError):
    """Raised when validation fails before any mutation is attempted.

    No transaction has been opened when this is raised, so nothing needs to
    be rolled back.

    Attributes:
        path: Path that failed validation (None for non-path checks)
        reason: Human-readable reason
    """

    def __init__(self, reason: str, path: Path | None = None) -> None:
        self.path = path
        self.reason = reason

        message = f"Pre-flight check failed: {reason}"
        if path is not None:
            message += f" ({path})"

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "preflight_failed",
            "path": str(self.path) if self.path is not None else None,
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        return f"PreflightError(reason={self.reason!r}, path={self.path!r})"


class StateError(DirForgeError):
    """Raised when a transaction API is called in the wrong lifecycle state.

    Attributes:
        operation: The API that was called (e.g. 'commit')
        state: The state the manager was in at the time
    """

    def __init__(
        self, operation: str, state: TransactionState, detail: str | None = None
    ) -> None:
        self.operation = operation
        self.state = state
        self.detail = detail

        message = f"Cannot {operation}: transaction state is '{state.value}'"
        if detail:
            message += f" ({detail})"

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": "invalid_transaction_state",
            "operation": self.operation,
            "state": self.state.value,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class AlreadyActiveError(StateError):
    """Raised by begin() when a transaction is already Active."""

    def __init__(self, active_id: str) -> None:
        self.active_id = active_id
        super().__init__(
            "begin",
            TransactionState.ACTIVE,
            detail=f"transaction already active: {active_id}",
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"] = "transaction_already_active"
        result["active_id"] = self.active_id
        return result


class CreationError(DirForgeError):
    """Raised when a mutation fails during generation.

    By the time a caller sees this, the generator has already replayed the
    Rollback Log; ``rollback`` holds the outcome.

    Attributes:
        operation: Kind of mutation that failed
        path: Target path of the failed mutation
        reason: Human-readable reason
        rollback: Outcome of the rollback, if one ran
    """

    def __init__(
        self,
        operation: OperationKind,
        path: Path,
        reason: str,
        rollback: RollbackResult | None = None,
    ) -> None:
        self.operation = operation
        self.path = path
        self.reason = reason
        self.rollback = rollback

        super().__init__(f"{operation.value} failed for {path}: {reason}")

    @property
    def rollback_complete(self) -> bool:
        return self.rollback is None or self.rollback.success

    @property
    def manual_cleanup_paths(self) -> list[Path]:
        if self.rollback is None:
            return []
        return self.rollback.manual_cleanup_paths

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": "creation_failed",
            "operation": self.operation.value,
            "path": str(self.path),
            "reason": self.reason,
            "rollback_complete": self.rollback_complete,
        }
        if self.rollback is not None:
            result["rollback"] = self.rollback.to_dict()
            result["manual_cleanup_paths"] = [
                str(p) for p in self.manual_cleanup_paths
            ]
        return result

    def __repr__(self) -> str:
        return (
            f"CreationError(operation={self.operation.value!r}, "
            f"path={self.path!r}, "
            f"rollback_complete={self.rollback_complete})"
        )
