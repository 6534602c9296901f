"""Pytest configuration and fixtures for DirForge tests."""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog

from dirforge.core.schemas import DirectoryNode, MetadataLevel, MetadataStamp
from dirforge.fs.transaction import TransactionManager


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep a developer's DIRFORGE_* settings and CLI logging config out of the tests."""
    monkeypatch.delenv("DIRFORGE_INTEGRITY_DIR", raising=False)
    yield
    # CLI runs bind structlog to a stream the runner closes afterwards
    structlog.reset_defaults()


@pytest.fixture
def manager() -> TransactionManager:
    """A fresh, independent transaction manager."""
    return TransactionManager()


@pytest.fixture
def stamp() -> MetadataStamp:
    """Caller-expanded metadata values."""
    return MetadataStamp(created_by="tester", created_at="2025-01-01T00:00:00Z")


@pytest.fixture
def project_tree() -> DirectoryNode:
    """Project root with one child and an integrity directory."""
    return DirectoryNode(
        name="proj",
        children=(DirectoryNode(name="data"),),
        requires_integrity_dir=True,
        metadata_level=MetadataLevel.PROJECT,
    )


@pytest.fixture
def research_tree() -> DirectoryNode:
    """A deeper tree with integrity directories at several levels."""
    return DirectoryNode(
        name="world",
        requires_integrity_dir=True,
        metadata_level=MetadataLevel.WORLD,
        children=(
            DirectoryNode(
                name="project_a",
                requires_integrity_dir=True,
                metadata_level=MetadataLevel.PROJECT,
                children=(
                    DirectoryNode(
                        name="study_1",
                        requires_integrity_dir=True,
                        metadata_level=MetadataLevel.STUDY,
                        children=(
                            DirectoryNode(name="raw"),
                            DirectoryNode(name="processed"),
                        ),
                    ),
                ),
            ),
            DirectoryNode(name="docs"),
        ),
    )


def _snapshot(base: Path) -> dict[str, int]:
    return {
        str(path.relative_to(base)): path.lstat().st_mode & 0o777
        for path in sorted(base.rglob("*"))
    }


@pytest.fixture
def snapshot() -> Callable[[Path], dict[str, int]]:
    """Map every path under a base to its permission bits."""
    return _snapshot
