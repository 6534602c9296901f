"""Scaffold chain for running generation on behalf of a user-facing caller.

This module provides the ScaffoldChain class that wraps the generator,
converts failures into a ScaffoldResult instead of raising, and reports the
outcome through structured logging and Rich console output.
"""

from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from dirforge.core.errors import CreationError, DirForgeError
from dirforge.core.preflight import plan_scaffold
from dirforge.core.schemas import (
    DirectoryNode,
    MetadataStamp,
    PlannedPath,
    ScaffoldResult,
)
from dirforge.core.scaffold_generator import ScaffoldGenerator
from dirforge.fs.paths import normalize_path


class ScaffoldChain:
    """Orchestrates a scaffold run with structured logging and Rich output.

    Unlike the generator, ``run`` never raises DirForgeError: failures are
    returned as an unsuccessful ScaffoldResult whose ``error`` payload says
    which step failed, whether rollback completed, and which paths may need
    manual cleanup.
    """

    def __init__(
        self,
        generator: ScaffoldGenerator | None = None,
        logger: Any = None,
        ui: Console | None = None,
    ) -> None:
        """Initialize scaffold chain.

        Args:
            generator: Generator to run; a default one is created if omitted
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._logger = logger or structlog.get_logger()
        self._generator = generator or ScaffoldGenerator(logger=self._logger)
        self._ui = ui or Console(stderr=True)

    @property
    def generator(self) -> ScaffoldGenerator:
        return self._generator

    def run(
        self,
        root: DirectoryNode,
        base_path: Path | str,
        stamp: MetadataStamp | None = None,
        *,
        quiet: bool = False,
    ) -> ScaffoldResult:
        """Generate the scaffold and report the outcome.

        Args:
            root: Specification tree
            base_path: Directory to materialize under
            stamp: Creation values for metadata files
            quiet: Suppress console output

        Returns:
            ScaffoldResult; ``success`` is False on any failure
        """
        base = normalize_path(base_path)
        bound_logger = self._logger.bind(base_path=str(base), root=root.name)

        try:
            with self._create_progress(quiet) as progress:
                task = progress.add_task(f"Scaffolding {root.name}", total=None)
                result = self._generator.generate(root, base, stamp)
                progress.update(task, completed=1, total=1)
        except DirForgeError as e:
            failed = ScaffoldResult(base_path=base, success=False, error=e.to_dict())
            bound_logger.warning("scaffold.chain.failed", error=failed.error)
            if not quiet:
                self._show_failure(e)
            return failed

        if not quiet:
            self._show_result(result)
        return result

    def plan(self, root: DirectoryNode, base_path: Path | str) -> list[PlannedPath]:
        """Return the scaffold plan without touching the filesystem."""
        return plan_scaffold(
            root, normalize_path(base_path), self._generator.integrity_dir_name
        )

    def _create_progress(self, quiet: bool) -> Progress:
        """Create Rich progress display."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            console=self._ui,
            transient=True,
            disable=quiet,
        )

    def _show_result(self, result: ScaffoldResult) -> None:
        """Show Rich output for a successful run."""
        if result.is_noop:
            base = escape(str(result.base_path))
            self._ui.print(f"✅ [green]UP TO DATE[/green] {base} (nothing to create)")
            return
        for path in result.created_directories:
            self._ui.print(f"✅ [green]MKDIR[/green] {escape(str(path))}")
        for path in result.created_files:
            self._ui.print(f"✅ [green]CREATE[/green] {escape(str(path))}")
        self._ui.print(
            f"[bold]{len(result.created_directories)} directories, "
            f"{len(result.created_files)} files[/bold]"
        )

    def _show_failure(self, error: DirForgeError) -> None:
        """Show Rich output for a failed run."""
        self._ui.print(f"❌ [red]FAILED[/red] {escape(str(error))}")
        if not isinstance(error, CreationError):
            self._ui.print("   Nothing was changed.")
            return
        if error.rollback_complete:
            self._ui.print("↩️ [blue]Rolled back[/blue] all changes.")
            return
        warnings = error.rollback.warnings if error.rollback is not None else []
        for warning in warnings:
            step = escape(warning.undo.describe())
            self._ui.print(
                f"⚠️ [yellow]ROLLBACK INCOMPLETE[/yellow] {step} ({escape(warning.reason)})"
            )
        self._ui.print("[yellow]Inspect these paths manually:[/yellow]")
        for path in error.manual_cleanup_paths:
            self._ui.print(f"   {escape(str(path))}")
