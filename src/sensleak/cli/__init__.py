"""CLI interface using Typer."""

import typer

app = typer.Typer(name="sensleak", help="sensleak — detect secrets committed to a git repository")

# Import subcommand modules to register them
from . import scan_cmds  # noqa: F401, E402
from . import rules_cmds  # noqa: F401, E402
