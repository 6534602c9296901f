"""Structured logging setup for command-line runs.

Library code only calls ``structlog.get_logger()``; entry points call
``configure_logging`` once so events go to stderr and never mix with
machine-readable output on stdout.
"""

import logging
import sys

import structlog

from dirforge.utils.debug import is_debug_enabled


def configure_logging(verbose: bool = False) -> None:
    """Route structlog events to stderr at a level chosen by the caller.

    Args:
        verbose: Emit info-level events (transaction lifecycle, summaries).
            Warnings and errors are always emitted; DIRFORGE_DEBUG adds
            debug-level events.
    """
    if is_debug_enabled():
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
