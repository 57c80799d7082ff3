"""Scan command."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import app

console = Console()

EXIT_LEAKS = 1
EXIT_FATAL = 2


def _split_commits(value: Optional[str]) -> Optional[tuple[str, ...]]:
    if value is None:
        return None
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _prepare_repo(repo: str, disk: Optional[str]) -> tuple[str, Optional[str]]:
    """Return the local repo root plus a temporary clone dir the caller must remove."""
    from ..core.errors import ResolutionError
    from ..core.git_utils import clone_repo, find_git_root, looks_like_url

    if looks_like_url(repo):
        if disk:
            return clone_repo(repo, Path(disk)), None
        scratch = tempfile.mkdtemp(prefix="sensleak-")
        try:
            return clone_repo(repo, Path(scratch) / "repo"), scratch
        except ResolutionError:
            shutil.rmtree(scratch, ignore_errors=True)
            raise

    path = Path(repo).expanduser()
    if not path.exists():
        raise ResolutionError(f"Repository path does not exist: {repo}", repo)
    root = find_git_root(path)
    if root is None:
        raise ResolutionError(f"Not a git repository: {repo}", repo)
    return root, None


def _redact(offender: str) -> str:
    if len(offender) <= 8:
        return "*" * len(offender)
    return offender[:4] + "****" + offender[-4:]


@app.command("scan")
def scan_cmd(
    repo: str = typer.Option(".", "--repo", help="Target repository (local path or URL)"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to a gitleaks-style TOML config"),
    repo_config: bool = typer.Option(False, "--repo-config", help="Load .gitleaks.toml or gitleaks.toml from the repo"),
    report: Optional[str] = typer.Option(None, "--report", help="Path to write the leaks report"),
    report_format: str = typer.Option("json", "--report-format", help="json, csv, sarif"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show leaks and warnings"),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty print JSON/SARIF reports"),
    commit: Optional[str] = typer.Option(None, "--commit", help="Commit id to scan, or 'latest'"),
    commits: Optional[str] = typer.Option(None, "--commits", help="Comma separated commit ids"),
    commits_file: Optional[str] = typer.Option(None, "--commits-file", help="File with one commit id per line"),
    commit_since: Optional[str] = typer.Option(None, "--commit-since", help="Scan commits at or after a date (2006-01-02 or 2023-01-02T15:04:05-0700)"),
    commit_until: Optional[str] = typer.Option(None, "--commit-until", help="Scan commits at or before a date"),
    commit_from: Optional[str] = typer.Option(None, "--commit-from", help="Oldest commit of the range (inclusive)"),
    commit_to: Optional[str] = typer.Option(None, "--commit-to", help="Newest commit of the range (inclusive, default HEAD)"),
    branch: Optional[str] = typer.Option(None, "--branch", help="Branch to scan"),
    uncommitted: bool = typer.Option(False, "--uncommitted", help="Scan uncommitted changes in the working tree"),
    user: Optional[str] = typer.Option(None, "--user", help="Only scan commits by this author name or email"),
    debug: bool = typer.Option(False, "--debug", help="Log debug messages"),
    disk: Optional[str] = typer.Option(None, "--disk", help="Directory to clone a remote repo into"),
    workers: int = typer.Option(4, "--workers", "-j", min=1, help="Parallel scan workers"),
    no_keyword_gating: bool = typer.Option(False, "--no-keyword-gating", help="Run every rule on every line"),
):
    """Scan a repository's history for committed secrets."""
    from ..core.config import load_config
    from ..core.errors import ConfigError, ResolutionError
    from ..core.models import ScanTarget
    from ..core.report import REPORT_FORMATS, write_report
    from ..core.session import ScanSession
    from .log import configure_logging

    configure_logging(verbose=verbose, debug=debug)

    if report_format.lower() not in REPORT_FORMATS:
        console.print(f"[red]Invalid --report-format '{report_format}'. Use one of: {', '.join(REPORT_FORMATS)}[/red]")
        raise typer.Exit(EXIT_FATAL)

    scratch = None
    try:
        repo_path, scratch = _prepare_repo(repo, disk)
        scan_config = load_config(config, repo_path=repo_path, repo_config=repo_config)
        target = ScanTarget(
            commit=commit,
            commits=_split_commits(commits),
            commits_file=commits_file,
            since=commit_since,
            until=commit_until,
            commit_from=commit_from,
            commit_to=commit_to,
            branch=branch,
            uncommitted=uncommitted,
            user=user or None,
        )
        session = ScanSession(
            scan_config,
            repo_path,
            target,
            workers=workers,
            keyword_gating=not no_keyword_gating,
        )
        results = session.run()
    except (ConfigError, ResolutionError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(EXIT_FATAL)
    finally:
        if scratch is not None:
            shutil.rmtree(scratch, ignore_errors=True)

    if report:
        descriptions = {rule.id: rule.description for rule in scan_config.ruleset}
        written = write_report(results, report, report_format, pretty=pretty, descriptions=descriptions)
        console.print(f"Report written to {written}")

    if verbose and results.outputs:
        table = Table(title=f"Leaks ({len(results.outputs)})")
        table.add_column("Rule", style="cyan")
        table.add_column("File")
        table.add_column("Line", justify="right")
        table.add_column("Commit", style="dim", max_width=12)
        table.add_column("Author")
        table.add_column("Offender", style="red")
        for leak in results.outputs:
            table.add_row(
                leak.rule,
                leak.file,
                str(leak.line_number),
                leak.commit[:12],
                leak.author,
                _redact(leak.offender),
            )
        console.print(table)

    if results.warnings:
        if verbose:
            for warning in results.warnings:
                console.print(f"[yellow]Warning: {warning}[/yellow]")
        else:
            console.print(f"[dim]{len(results.warnings)} warning(s); rerun with --verbose to list them.[/dim]")

    style = "red" if results.outputs else "green"
    console.print(
        f"[bold]{results.commits_number}[/bold] commit(s) scanned, "
        f"[{style}]{len(results.outputs)} leak(s) found[/{style}]"
    )
    if results.outputs:
        raise typer.Exit(EXIT_LEAKS)
