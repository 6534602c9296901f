"""Core constants for DirForge.

This module defines constants used throughout the scaffold engine:
- Permission bits for the default and restricted permission classes
- Integrity directory and metadata file naming
- Environment variable names
"""

# ============================================================================
# Permission Classes
# ============================================================================

#: Default directories: rwxr-xr-x
DEFAULT_DIR_MODE: int = 0o755

#: Default files: rw-r--r--
DEFAULT_FILE_MODE: int = 0o644

#: Integrity directories: rwx------
RESTRICTED_DIR_MODE: int = 0o700

#: Files inside integrity directories: rw-------
RESTRICTED_FILE_MODE: int = 0o600

#: Mask applied when comparing modes (permission bits only)
PERMISSION_MASK: int = 0o777

# ============================================================================
# Integrity Directories & Metadata
# ============================================================================

#: Default name of the restricted metadata subdirectory created beside a node;
#: `--integrity-dir .meta` or DIRFORGE_INTEGRITY_DIR=.meta overrides it
INTEGRITY_DIR_NAME: str = ".integrity"

#: Metadata file suffix; the file is named after its level (e.g. project.yaml)
METADATA_FILE_SUFFIX: str = ".yaml"

#: Keys written first in every metadata file, in this order
METADATA_STANDARD_KEYS: tuple[str, ...] = ("name", "level", "created_by", "created")

# ============================================================================
# Environment
# ============================================================================

#: Overrides the integrity directory name when no explicit option is given
ENV_INTEGRITY_DIR: str = "DIRFORGE_INTEGRITY_DIR"

#: Enables debug trace output
ENV_DEBUG: str = "DIRFORGE_DEBUG"

#: Label used when a transaction is started without one
DEFAULT_TRANSACTION_LABEL: str = "default"
