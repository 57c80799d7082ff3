"""Logging setup for CLI runs."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Route ``sensleak.*`` loggers to stderr through rich.

    DEBUG with --debug, INFO with --verbose. Otherwise only errors are
    logged; recoverable warnings are summarized by the scan command instead.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.ERROR

    root = logging.getLogger("sensleak")
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
