"""Tests for permission class enforcement."""

import os
from pathlib import Path

import pytest

from dirforge.core.errors import CreationError, StateError
from dirforge.core.schemas import OperationKind
from dirforge.fs.paths import get_mode
from dirforge.fs.permissions import PermissionEnforcer, PermissionPolicy
from dirforge.fs.transaction import TransactionManager


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """A small tree with loose permissions everywhere."""
    root = tmp_path / "root"
    (root / "child" / ".integrity").mkdir(parents=True)
    (root / ".integrity" / "nested").mkdir(parents=True)
    (root / "readme.txt").write_text("x")
    (root / ".integrity" / "project.yaml").write_text("name: root\n")
    (root / "child" / ".integrity" / "study.yaml").write_text("name: child\n")

    for path in [root, *root.rglob("*")]:
        os.chmod(path, 0o777 if path.is_dir() else 0o666)
    return root


class TestPermissionEnforcer:
    """Test PermissionEnforcer.apply."""

    def test_assigns_both_classes(
        self, manager: TransactionManager, tree: Path, snapshot
    ) -> None:
        """Test default and restricted bits across the tree."""
        manager.begin()
        PermissionEnforcer(manager).apply(tree)
        manager.commit()

        assert get_mode(tree) == 0o755
        assert snapshot(tree) == {
            ".integrity": 0o700,
            ".integrity/nested": 0o700,
            ".integrity/project.yaml": 0o600,
            "child": 0o755,
            "child/.integrity": 0o700,
            "child/.integrity/study.yaml": 0o600,
            "readme.txt": 0o644,
        }

    def test_rollback_restores_original_bits(
        self, manager: TransactionManager, tree: Path, snapshot
    ) -> None:
        """Test that every chmod is undoable."""
        before = snapshot(tree)

        manager.begin()
        PermissionEnforcer(manager).apply(tree)
        result = manager.rollback()

        assert result.success
        assert snapshot(tree) == before
        assert get_mode(tree) == 0o777

    def test_second_pass_changes_nothing(
        self, manager: TransactionManager, tree: Path
    ) -> None:
        """Test that enforcement is idempotent."""
        manager.begin()
        PermissionEnforcer(manager).apply(tree)
        manager.commit()

        manager.begin()
        report = PermissionEnforcer(manager).apply(tree)

        assert report.mode_changes == []
        assert report.checked == 8
        assert manager.operation_log == ()
        manager.commit()

    def test_custom_integrity_name(
        self, manager: TransactionManager, tmp_path: Path
    ) -> None:
        """Test that only the configured integrity name is restricted."""
        root = tmp_path / "root"
        (root / ".meta").mkdir(parents=True)
        (root / ".integrity").mkdir()

        manager.begin()
        PermissionEnforcer(manager, PermissionPolicy(integrity_dir_name=".meta")).apply(root)
        manager.commit()

        assert get_mode(root / ".meta") == 0o700
        assert get_mode(root / ".integrity") == 0o755

    def test_symlinks_are_ignored(
        self, manager: TransactionManager, tree: Path, tmp_path: Path
    ) -> None:
        """Test that targets outside the tree are never touched via a link."""
        outside = tmp_path / "outside.txt"
        outside.write_text("x")
        os.chmod(outside, 0o666)
        (tree / "link").symlink_to(outside)

        manager.begin()
        PermissionEnforcer(manager).apply(tree)
        manager.commit()

        assert get_mode(outside) == 0o666

    def test_owner_enforced_and_undone(
        self,
        manager: TransactionManager,
        tree: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a configured owner is applied to every path and restored."""
        st = tree.lstat()
        owner = (st.st_uid + 1, st.st_gid + 1)
        chowned: list[tuple[Path, int, int]] = []

        def fake_chown(path, uid, gid, **kwargs) -> None:
            chowned.append((Path(path), uid, gid))

        monkeypatch.setattr(os, "chown", fake_chown)

        manager.begin()
        report = PermissionEnforcer(manager, PermissionPolicy(owner=owner)).apply(tree)

        assert len(report.owner_changes) == report.checked
        assert all((uid, gid) == owner for _, uid, gid in chowned)

        chowned.clear()
        manager.rollback()
        assert len(chowned) == report.checked
        assert all((uid, gid) == (st.st_uid, st.st_gid) for _, uid, gid in chowned)

    def test_unlistable_directory_fails(
        self,
        manager: TransactionManager,
        tree: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a directory that cannot be listed aborts enforcement."""
        locked = tree / "child"
        real_scandir = os.scandir

        def scandir(path=None):
            if path is not None and Path(path) == locked:
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        manager.begin()
        with monkeypatch.context() as m:
            m.setattr(os, "scandir", scandir)
            with pytest.raises(CreationError) as exc_info:
                PermissionEnforcer(manager).apply(tree)

        assert exc_info.value.operation is OperationKind.CHMOD
        assert exc_info.value.path == locked
        assert "cannot list directory" in exc_info.value.reason
        # Nothing was changed before the walk failed
        assert manager.operation_log == ()
        manager.abort()

    def test_target_mode(self, manager: TransactionManager, tmp_path: Path) -> None:
        """Test class lookup relative to the enforced root."""
        enforcer = PermissionEnforcer(manager)
        root = tmp_path / ".integrity" / "root"

        assert enforcer.target_mode(root / "a", root, is_dir=True) == 0o755
        assert enforcer.target_mode(root / ".integrity", root, is_dir=True) == 0o700
        assert enforcer.target_mode(root / ".integrity" / "f", root, is_dir=False) == 0o600
        assert enforcer.target_mode(root / "f", root, is_dir=False) == 0o644

    def test_requires_active_transaction(
        self, manager: TransactionManager, tree: Path
    ) -> None:
        """Test that enforcement outside a transaction is refused."""
        with pytest.raises(StateError):
            PermissionEnforcer(manager).apply(tree)
