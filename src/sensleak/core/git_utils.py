"""Git object-store access through the git executable."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .errors import ReadError, ResolutionError

logger = logging.getLogger(__name__)

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
_FIELD_SEP = "\x00"


def _run_git(
    args: list[str],
    cwd: str | Path,
    *,
    timeout: int = 30,
    text: bool = True,
) -> subprocess.CompletedProcess:
    kwargs = {"encoding": "utf-8", "errors": "replace"} if text else {}
    return subprocess.run(
        ["git", "-c", "core.quotepath=off"] + args,
        cwd=str(cwd),
        capture_output=True,
        text=text,
        timeout=timeout,
        **kwargs,
    )


def _make_error(error: type, message: str, target: str) -> Exception:
    if issubclass(error, ReadError):
        return error(message, commit=target)
    return error(message, target)


def _git_or_raise(args: list[str], cwd: str | Path, error: type, target: str, *, timeout: int = 30):
    try:
        result = _run_git(args, cwd, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise _make_error(error, f"git {args[0]} timed out after {timeout}s", target) from exc
    except FileNotFoundError as exc:
        raise _make_error(error, "git executable not found", target) from exc
    if result.returncode != 0:
        raise _make_error(error, result.stderr.strip() or f"git {args[0]} exited with {result.returncode}", target)
    return result


def find_git_root(path: str | Path = ".") -> str | None:
    """Find git repo root from given path."""
    try:
        result = _run_git(["rev-parse", "--show-toplevel"], path, timeout=5)
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def get_current_commit(repo_path: str) -> str | None:
    """Get current HEAD commit hash via git rev-parse HEAD."""
    try:
        result = _run_git(["rev-parse", "--verify", "--quiet", "HEAD^{commit}"], repo_path, timeout=5)
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def get_current_branch(repo_path: str) -> str | None:
    """Get current branch name via git rev-parse --abbrev-ref HEAD."""
    try:
        result = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], repo_path, timeout=5)
        if result.returncode == 0:
            branch = result.stdout.strip()
            return branch if branch != "HEAD" else None
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def resolve_ref(repo_path: str, ref: str) -> str:
    """Resolve *ref* (id, prefix, branch, tag, HEAD) to a full commit id."""
    if not ref or ref.startswith("-"):
        raise ResolutionError(f"Invalid reference {ref!r}", ref)
    try:
        result = _run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], repo_path, timeout=10)
    except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
        raise ResolutionError(f"Cannot resolve {ref!r}: {exc}", ref) from exc
    if result.returncode != 0 or not result.stdout.strip():
        raise ResolutionError(f"Cannot resolve {ref!r} to a commit", ref)
    return result.stdout.strip()


def resolve_branch(repo_path: str, branch: str) -> str:
    """Resolve a local or remote-tracking branch name to its tip commit."""
    for ref in (f"refs/heads/{branch}", f"refs/remotes/{branch}", f"refs/remotes/origin/{branch}"):
        try:
            return resolve_ref(repo_path, ref)
        except ResolutionError:
            continue
    raise ResolutionError(f"Branch {branch!r} not found", branch)


def is_ancestor(repo_path: str, ancestor: str, descendant: str) -> bool:
    try:
        result = _run_git(["merge-base", "--is-ancestor", ancestor, descendant], repo_path, timeout=30)
    except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
        raise ResolutionError(f"Cannot compare {ancestor} and {descendant}: {exc}", ancestor) from exc
    if result.returncode in (0, 1):
        return result.returncode == 0
    raise ResolutionError(result.stderr.strip() or "git merge-base failed", ancestor)


def read_commit_meta(repo_path: str, commit: str) -> dict:
    """Read id, parents, author, email, committer date and message of one commit."""
    fmt = "%x00".join(["%H", "%P", "%an", "%ae", "%cI", "%ct", "%B"])
    result = _git_or_raise(["show", "-s", f"--format={fmt}", commit], repo_path, ReadError, commit)
    parts = result.stdout.split(_FIELD_SEP, 6)
    if len(parts) != 7:
        raise ReadError(f"Unexpected commit header for {commit}", commit=commit)
    full_id, parents, author, email, date, timestamp, message = parts
    return {
        "commit": full_id.strip(),
        "parents": parents.split(),
        "author": author,
        "email": email,
        "date": date.strip(),
        "timestamp": int(timestamp.strip() or 0),
        "message": message.rstrip("\n"),
    }


def list_changed_files(repo_path: str, commit: str, parent: str | None) -> list[tuple[str, str]]:
    """List (status, path) of files changed by *commit* relative to *parent*.

    With no parent the commit is compared against the empty tree. Renames are
    reported as delete + add. Submodule entries are left out.
    """
    base = parent if parent else EMPTY_TREE
    args = ["diff-tree", "-r", "-z", "--no-renames", "--no-commit-id", "--raw", base, commit]
    result = _git_or_raise(args, repo_path, ReadError, commit, timeout=60)
    tokens = result.stdout.split("\x00")
    changes = []
    # Format: ":<old mode> <new mode> <old sha> <new sha> <status>" NUL "<path>" NUL
    for i in range(0, len(tokens) - 1, 2):
        header, path = tokens[i], tokens[i + 1]
        if not header.startswith(":"):
            continue
        fields = header[1:].split()
        if len(fields) < 5:
            continue
        new_mode, status = fields[1], fields[4][:1]
        if new_mode == "160000":
            continue
        changes.append((status, path))
    return changes


def log_commits(repo_path: str, args: list[str], *, target: str = "") -> list[dict]:
    """List commits selected by rev-list style *args* with committer time and author, newest first."""
    fmt = "%x00".join(["%H", "%ct", "%an", "%ae"])
    result = _git_or_raise(["log", f"--format={fmt}"] + args, repo_path, ResolutionError, target or " ".join(args), timeout=120)
    commits = []
    for line in result.stdout.splitlines():
        parts = line.split("\x00")
        if len(parts) != 4:
            continue
        commits.append(
            {
                "commit": parts[0].strip(),
                "timestamp": int(parts[1] or 0),
                "author": parts[2],
                "email": parts[3],
            }
        )
    return commits


def read_blob(repo_path: str, commit: str, path: str) -> bytes:
    try:
        result = _run_git(["cat-file", "blob", f"{commit}:{path}"], repo_path, timeout=60, text=False)
    except subprocess.TimeoutExpired as exc:
        raise ReadError("timed out reading blob", commit=commit, path=path) from exc
    except FileNotFoundError as exc:
        raise ReadError("git executable not found", commit=commit, path=path) from exc
    if result.returncode != 0:
        message = result.stderr.decode("utf-8", "replace").strip() or "cannot read blob"
        raise ReadError(message, commit=commit, path=path)
    return result.stdout


def list_tags(repo_path: str) -> dict[str, list[str]]:
    """Map commit id -> tag names pointing at it (annotated tags are peeled)."""
    fmt = "%(objectname)%00%(*objectname)%00%(refname:short)"
    try:
        result = _run_git(["for-each-ref", f"--format={fmt}", "refs/tags"], repo_path, timeout=30)
    except (subprocess.TimeoutExpired, FileNotFoundError):
        logger.debug("Tag listing failed for %s", repo_path, exc_info=True)
        return {}
    if result.returncode != 0:
        return {}
    tags: dict[str, list[str]] = {}
    for line in result.stdout.splitlines():
        parts = line.split("\x00")
        if len(parts) != 3:
            continue
        target = parts[1] or parts[0]
        tags.setdefault(target, []).append(parts[2])
    for names in tags.values():
        names.sort()
    return tags


def working_tree_changes(repo_path: str, head: str | None) -> list[str]:
    """Paths that differ from *head* in the working tree, plus untracked files."""
    if head:
        tracked = _git_or_raise(
            ["diff", "--name-only", "-z", "--no-renames", "--diff-filter=d", head],
            repo_path,
            ReadError,
            "working tree",
        )
        paths = [p for p in tracked.stdout.split("\x00") if p]
    else:
        cached = _git_or_raise(["ls-files", "-z", "--cached"], repo_path, ReadError, "working tree")
        paths = [p for p in cached.stdout.split("\x00") if p]
    untracked = _git_or_raise(["ls-files", "-z", "--others", "--exclude-standard"], repo_path, ReadError, "working tree")
    for path in untracked.stdout.split("\x00"):
        if path and path not in paths:
            paths.append(path)
    return sorted(paths)


def get_user_identity(repo_path: str) -> tuple[str, str]:
    identity = []
    for key in ("user.name", "user.email"):
        try:
            result = _run_git(["config", "--get", key], repo_path, timeout=5)
            identity.append(result.stdout.strip() if result.returncode == 0 else "")
        except (subprocess.TimeoutExpired, FileNotFoundError):
            identity.append("")
    return identity[0], identity[1]


def looks_like_url(repo: str) -> bool:
    return "://" in repo or repo.startswith("git@")


def clone_repo(url: str, dest: str | Path) -> str:
    """Clone *url* into *dest* (full history, no checkout of submodules)."""
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s into %s", url, dest)
    _git_or_raise(["clone", "--quiet", url, str(dest)], dest.parent, ResolutionError, url, timeout=600)
    return str(dest.resolve())
