"""CLI commands for generating and previewing scaffolds."""

from __future__ import annotations

import importlib
import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import yaml
from pydantic import ValidationError

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from dirforge.chains.scaffold_chain import ScaffoldChain
from dirforge.core.metadata import default_stamp
from dirforge.core.schemas import DirectoryNode, MetadataStamp
from dirforge.core.scaffold_generator import ScaffoldGenerator, ScaffoldOptions
from dirforge.fs.paths import resolve_integrity_dir_name
from dirforge.fs.transaction import register_exit_rollback
from dirforge.utils.log import configure_logging

app: TyperType = typer.Typer(help="Materialize directory scaffolds atomically.")


SpecOption = Annotated[
    Path,
    typer.Option("--spec", help="YAML or JSON file describing the directory tree."),
]
BaseOption = Annotated[
    Path,
    typer.Option("--base", help="Directory to create the scaffold in."),
]
ActorOption = Annotated[
    str | None,
    typer.Option("--actor", help="Creator recorded in metadata files."),
]
IntegrityDirOption = Annotated[
    str | None,
    typer.Option(
        "--integrity-dir",
        help=(
            "Name of restricted metadata directories (default: .integrity, "
            "or DIRFORGE_INTEGRITY_DIR when set)."
        ),
    ),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of console output."),
]
VerboseFlag = Annotated[
    bool,
    typer.Option("--verbose", help="Log transaction and rollback steps."),
]


def load_tree(spec_path: Path) -> DirectoryNode:
    """Load a specification tree from a YAML or JSON document.

    The document is either the root node itself or a mapping with a
    ``root`` key holding it.

    Raises:
        ValueError: If the file cannot be read or does not describe a tree
    """
    try:
        document = yaml.safe_load(spec_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ValueError(f"Cannot read spec {spec_path}: {exc}") from exc

    if isinstance(document, dict) and isinstance(document.get("root"), dict):
        document = document["root"]
    if not isinstance(document, dict):
        raise ValueError(f"Spec {spec_path} must contain a mapping")

    try:
        return DirectoryNode.model_validate(document)
    except ValidationError as exc:
        raise ValueError(f"Invalid spec {spec_path}: {exc}") from exc


def _load_or_exit(spec_path: Path) -> DirectoryNode:
    try:
        return load_tree(spec_path)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc


def _build_chain(integrity_dir: str | None, verbose: bool) -> ScaffoldChain:
    try:
        resolve_integrity_dir_name(integrity_dir)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    options = ScaffoldOptions(integrity_dir_name=integrity_dir, verbose=verbose)
    return ScaffoldChain(ScaffoldGenerator(options=options))


def scaffold(
    spec: SpecOption,
    base: BaseOption,
    actor: ActorOption = None,
    integrity_dir: IntegrityDirOption = None,
    json_output: JsonFlag = False,
    verbose: VerboseFlag = False,
) -> None:
    """Create the directory tree described by SPEC under BASE, or nothing at all."""

    configure_logging(verbose)
    root = _load_or_exit(spec)
    chain = _build_chain(integrity_dir, verbose)

    stamp = default_stamp()
    if actor:
        stamp = MetadataStamp(created_by=actor, created_at=stamp.created_at)

    # An interpreter exit mid-run still rolls back
    unregister = register_exit_rollback(chain.generator.manager)
    try:
        result = chain.run(root, base, stamp, quiet=json_output)
    finally:
        unregister()

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))

    if not result.success:
        raise typer.Exit(code=1)


def plan(
    spec: SpecOption,
    base: BaseOption,
    integrity_dir: IntegrityDirOption = None,
    json_output: JsonFlag = False,
) -> None:
    """Show the paths SPEC would create under BASE without changing anything."""

    configure_logging()
    root = _load_or_exit(spec)
    chain = _build_chain(integrity_dir, verbose=False)
    entries = chain.plan(root, base)

    if json_output:
        typer.echo(json.dumps([e.to_dict() for e in entries], indent=2))
    else:
        for entry in entries:
            if entry.conflict:
                typer.secho(
                    f"conflict  {entry.kind:<14} {entry.path} ({entry.conflict})",
                    fg=typer.colors.RED,
                )
            elif entry.exists:
                typer.echo(f"exists    {entry.kind:<14} {entry.path}")
            else:
                typer.secho(
                    f"create    {entry.kind:<14} {entry.path}", fg=typer.colors.GREEN
                )

    if any(entry.conflict for entry in entries):
        raise typer.Exit(code=1)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)


app.command("scaffold")(scaffold)
app.command("plan")(plan)
