"""Debug utility for DirForge.

Provides a single debug() function that can be toggled via the
DIRFORGE_DEBUG environment variable. Output goes to stderr so that
``dirforge scaffold --json`` keeps stdout parseable.

A scaffold run traces these points, in order:
    - ``mkdir <path> (<mode>)`` and ``create <path> (<mode>)`` for each
      directory and metadata file written by the generator
    - ``Directory already exists: <path>`` and ``File already exists: <path>``
      when an existing path is kept on a re-run
    - ``chmod <path> <old> -> <new>`` and ``chown <path> <old> -> <new>``
      for every change the permission enforcer makes
    - ``Permissions enforced under <base>: N checked, M changed`` once the
      enforcer is done
    - ``Rolling back: <undo action>`` for each step of a rollback after a
      failure

Usage:
    from dirforge.utils.debug import debug

    debug(f"mkdir {path}")

Environment:
    DIRFORGE_DEBUG: Set to '1', 'true', 'yes' (case-insensitive) to enable
                    debug output. Any other value or unset disables it.

Example:
    $ DIRFORGE_DEBUG=1 dirforge scaffold --spec tree.yaml --base ~/ws 2> trace.log
"""

import os
import sys
from typing import Any

from dirforge.core.constants import ENV_DEBUG

# Determine if debug mode is enabled at module import time
_DEBUG_ENABLED = os.environ.get(ENV_DEBUG, "").lower() in (
    "1",
    "true",
    "yes",
)


def debug(msg: Any) -> None:
    """Print debug message if DIRFORGE_DEBUG is enabled.

    Args:
        msg: Message to print. Will be converted to string.

    Note:
        The environment variable is read at module import time. Changing it
        afterwards has no effect unless the module is reloaded.
    """
    if _DEBUG_ENABLED:
        print(f"[DEBUG] {msg}", file=sys.stderr)


def is_debug_enabled() -> bool:
    """Return True if DIRFORGE_DEBUG was set when this module was imported."""
    return _DEBUG_ENABLED
