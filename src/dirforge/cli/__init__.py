"""CLI entrypoints for DirForge."""

from dirforge.cli.scaffold import app, run_cli

__all__ = ["app", "run_cli"]
