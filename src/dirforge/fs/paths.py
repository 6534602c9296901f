"""Path utilities for scaffold filesystem operations.

This module provides path normalization, stat helpers and integrity-directory
recognition shared by the generator, validator and permission enforcer.
"""

import os
import stat
import unicodedata
from pathlib import Path

from dirforge.core.constants import ENV_INTEGRITY_DIR, INTEGRITY_DIR_NAME, PERMISSION_MASK


def normalize_path(path: Path | str, root: Path | None = None) -> Path:
    """Normalize a path for consistent handling.

    Args:
        path: Path to normalize
        root: Optional root directory for relative paths

    Returns:
        Normalized absolute path
    """
    if not isinstance(path, Path):
        path = Path(path)

    path = path.expanduser()
    if not path.is_absolute():
        path = (root / path) if root is not None else path.absolute()

    # Collapse '..' and '.' segments without following symlinks
    path = Path(os.path.normpath(path))

    if os.name == "posix":
        path = Path(unicodedata.normalize("NFC", str(path)))

    return path


def resolve_integrity_dir_name(name: str | None = None) -> str:
    """Resolve the integrity directory name.

    Args:
        name: Explicit name; wins over the environment

    Returns:
        The explicit name, DIRFORGE_INTEGRITY_DIR, or the built-in default
    """
    chosen = name or os.getenv(ENV_INTEGRITY_DIR) or INTEGRITY_DIR_NAME
    if "/" in chosen or chosen in (".", ".."):
        raise ValueError(f"Invalid integrity directory name: {chosen!r}")
    return chosen


def get_mode(path: Path) -> int:
    """Return the permission bits of a path without following symlinks."""
    return stat.S_IMODE(path.lstat().st_mode) & PERMISSION_MASK


def get_owner(path: Path) -> tuple[int, int]:
    """Return the ``(uid, gid)`` owning a path without following symlinks."""
    st = path.lstat()
    return st.st_uid, st.st_gid


def is_real_dir(path: Path) -> bool:
    """True for a directory that is not a symlink."""
    return path.is_dir() and not path.is_symlink()


def is_within_integrity_dir(path: Path, root: Path, integrity_name: str) -> bool:
    """Check whether a path is an integrity directory or lies inside one.

    Only the segments below ``root`` are considered, so an integrity-named
    directory above the scaffold never restricts it.
    """
    try:
        relative = path.relative_to(root)
    except ValueError:
        return False
    return integrity_name in relative.parts
