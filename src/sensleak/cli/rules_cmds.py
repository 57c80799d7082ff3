"""Rule listing command."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import app

console = Console()


@app.command("rules")
def rules_cmd(
    config: Optional[str] = typer.Option(None, "--config", help="Path to a gitleaks-style TOML config"),
    repo: str = typer.Option(".", "--repo", help="Repository to read .gitleaks.toml from with --repo-config"),
    repo_config: bool = typer.Option(False, "--repo-config", help="Load .gitleaks.toml or gitleaks.toml from the repo"),
):
    """List the detection rules that a scan would use."""
    from ..core.config import load_config
    from ..core.errors import ConfigError

    try:
        scan_config = load_config(config, repo_path=repo, repo_config=repo_config)
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(2)

    ruleset = scan_config.ruleset
    table = Table(title=f"Rules ({len(ruleset)}) from {scan_config.source}")
    table.add_column("ID", style="cyan")
    table.add_column("Description")
    table.add_column("Keywords", style="dim")
    table.add_column("Allowlist", justify="center")

    for rule in ruleset:
        has_allowlist = rule.allowlist is not None and not rule.allowlist.is_empty
        table.add_row(
            rule.id,
            rule.description,
            ", ".join(rule.keywords) or "[italic]every line[/italic]",
            "[green]✓[/green]" if has_allowlist else "",
        )

    console.print(table)
    allowlist = scan_config.allowlist
    if not allowlist.is_empty:
        console.print(
            f"Global allowlist: {len(allowlist.paths)} path(s), {len(allowlist.commits)} commit(s), "
            f"{len(allowlist.regexes)} regex(es), {len(allowlist.stopwords)} stopword(s)"
        )
