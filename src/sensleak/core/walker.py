"""Commit walker — resolves a scan target into a stream of CommitInfo.

Resolution (turning selectors into an ordered list of commit ids) is done
eagerly so that a bad reference aborts the target before anything is
scanned. Reading the diff content of each commit is lazy.

Merge commits are diffed against their first parent only; root commits
against the empty tree. For ``from``/``to`` ranges, ``from`` is the older
bound and ``to`` the newer one, both inclusive.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from . import git_utils
from .errors import ReadError, ResolutionError
from .matcher import decode_text, is_binary
from .models import OPERATION_COMMIT, OPERATION_UNCOMMITTED, CommitId, CommitInfo, ScanTarget

logger = logging.getLogger(__name__)

LATEST = "latest"

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S%z")


def parse_date_bound(value: str) -> datetime:
    """Parse a ``since``/``until`` bound.

    Accepts ``YYYY-MM-DD`` (normalized to midnight UTC) or a full timestamp
    with offset such as ``2023-01-02T15:04:05-0700``, ``...-07:00`` or ``...Z``.
    """
    text = value.strip()
    if len(text) == 10:
        try:
            return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ResolutionError(
        f"Invalid date {value!r}. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS±HHMM.",
        value,
    )


def read_commits_file(path: str) -> list[str]:
    """One commit id per line; blank lines and ``#`` comments are ignored."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ResolutionError(f"Cannot read commits file {path}: {exc}", path) from exc
    ids = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            ids.append(line)
    return ids


class CommitWalker:
    """Turns a ScanTarget into CommitInfo records for one repository."""

    def __init__(
        self,
        repo_path: str,
        target: ScanTarget | None = None,
        *,
        repo_name: str | None = None,
        on_warning: Callable[[ReadError], None] | None = None,
    ):
        self.repo_path = str(repo_path)
        self.target = target if target is not None else ScanTarget()
        self.repo_name = repo_name if repo_name is not None else Path(self.repo_path).resolve().name
        self._on_warning = on_warning
        self._tags: dict[str, list[str]] | None = None

    # --- resolution ---

    def resolve(self) -> list[str]:
        """Return the commit ids to scan, newest first.

        Raises ResolutionError when a reference, branch, date or range
        cannot be resolved. The uncommitted mode resolves to an empty list.
        """
        mode = self.target.mode
        if mode == "uncommitted":
            return []
        if mode == "commit":
            ids = [self._resolve_single(self.target.commit or "")]
            commits = self._describe(ids)
        elif mode in ("commits", "commits_file"):
            if mode == "commits":
                refs = list(self.target.commits or ())
            else:
                refs = read_commits_file(self.target.commits_file or "")
            ids = []
            for ref in refs:
                commit = git_utils.resolve_ref(self.repo_path, ref)
                if commit not in ids:
                    ids.append(commit)
            commits = self._describe(ids)
        elif mode == "commit_range":
            commits = self._resolve_range()
        elif mode == "branch":
            tip = git_utils.resolve_branch(self.repo_path, self.target.branch or "")
            commits = git_utils.log_commits(self.repo_path, [tip], target=self.target.branch or "")
        else:
            head = git_utils.get_current_commit(self.repo_path)
            if head is None:
                if git_utils.find_git_root(self.repo_path) is None:
                    raise ResolutionError(f"{self.repo_path} is not a git repository", self.repo_path)
                logger.info("Repository %s has no commits", self.repo_path)
                return []
            commits = git_utils.log_commits(self.repo_path, [head], target="HEAD")
            if mode == "date_range":
                commits = self._filter_dates(commits)

        if self.target.user is not None:
            user = self.target.user
            commits = [c for c in commits if user in (c["author"], c["email"])]
        return [c["commit"] for c in commits]

    def _resolve_single(self, ref: str) -> str:
        if ref.lower() == LATEST:
            head = git_utils.get_current_commit(self.repo_path)
            if head is None:
                raise ResolutionError("Repository has no commits; 'latest' cannot be resolved", ref)
            branch = git_utils.get_current_branch(self.repo_path)
            logger.debug("'latest' is %s on %s", head[:12], branch or "detached HEAD")
            return head
        return git_utils.resolve_ref(self.repo_path, ref)

    def _describe(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        return git_utils.log_commits(self.repo_path, ["--no-walk=unsorted"] + ids, target=" ".join(ids))

    def _resolve_range(self) -> list[dict]:
        to_ref = self.target.commit_to or "HEAD"
        to_id = git_utils.resolve_ref(self.repo_path, to_ref)
        if self.target.commit_from is None:
            return git_utils.log_commits(self.repo_path, [to_id], target=to_ref)
        from_id = git_utils.resolve_ref(self.repo_path, self.target.commit_from)
        if not git_utils.is_ancestor(self.repo_path, from_id, to_id):
            raise ResolutionError(
                f"Commit {self.target.commit_from} is not an ancestor of {to_ref}",
                f"{self.target.commit_from}..{to_ref}",
            )
        if from_id == to_id:
            return self._describe([to_id])
        commits = git_utils.log_commits(self.repo_path, [to_id, f"^{from_id}"], target=f"{from_id}..{to_id}")
        return commits + self._describe([from_id])

    def _filter_dates(self, commits: list[dict]) -> list[dict]:
        since = parse_date_bound(self.target.since) if self.target.since else None
        until = parse_date_bound(self.target.until) if self.target.until else None
        if since and until and since > until:
            raise ResolutionError(f"since {self.target.since} is after until {self.target.until}", "date range")
        low = since.timestamp() if since else None
        high = until.timestamp() if until else None
        return [
            c
            for c in commits
            if (low is None or c["timestamp"] >= low) and (high is None or c["timestamp"] <= high)
        ]

    # --- reading ---

    def _warn(self, error: ReadError) -> None:
        logger.warning("Skipping %s", error)
        if self._on_warning is not None:
            self._on_warning(error)

    def tags_for(self, commit: str) -> list[str]:
        if self._tags is None:
            self._tags = git_utils.list_tags(self.repo_path)
        return list(self._tags.get(commit, []))

    def read_commit(self, commit: str, path_filter: Callable[[str], bool] | None = None) -> CommitInfo:
        """Load metadata and changed-file content for one commit.

        Files for which *path_filter* returns True are not read. Unreadable
        entries are reported as warnings and left out; binary content is
        dropped silently.
        """
        meta = git_utils.read_commit_meta(self.repo_path, commit)
        full_id = meta["commit"]
        parent = meta["parents"][0] if meta["parents"] else None
        info = CommitInfo(
            repo=self.repo_name,
            commit=CommitId.from_hex(full_id),
            author=meta["author"],
            email=meta["email"],
            commit_message=meta["message"],
            date=datetime.fromisoformat(meta["date"]),
            tags=self.tags_for(full_id),
            operation=OPERATION_COMMIT,
        )
        for status, path in git_utils.list_changed_files(self.repo_path, full_id, parent):
            if status == "D":
                continue
            if path_filter is not None and path_filter(path):
                logger.debug("Path %s allowlisted in %s", path, full_id[:12])
                continue
            try:
                data = git_utils.read_blob(self.repo_path, full_id, path)
            except ReadError as exc:
                self._warn(exc)
                continue
            if is_binary(data):
                logger.debug("Binary file %s skipped in %s", path, full_id[:12])
                continue
            info.files.append((path, decode_text(data)))
        return info

    def uncommitted_info(self, path_filter: Callable[[str], bool] | None = None) -> CommitInfo | None:
        """One synthetic CommitInfo for the working tree diffed against HEAD.

        Paths are relative to the work tree root even when the walker was
        given a subdirectory. Returns None when the ``user`` filter excludes
        the configured identity.
        """
        top = git_utils.find_git_root(self.repo_path)
        if top is None:
            raise ResolutionError(f"{self.repo_path} is not a git repository", self.repo_path)
        head = git_utils.get_current_commit(top)
        author, email = git_utils.get_user_identity(top)
        if self.target.user is not None and self.target.user not in (author, email):
            return None
        info = CommitInfo(
            repo=self.repo_name,
            commit=CommitId.zero(),
            author=author,
            email=email,
            commit_message="",
            date=datetime.now(timezone.utc).replace(microsecond=0),
            operation=OPERATION_UNCOMMITTED,
        )
        root = Path(top)
        for path in git_utils.working_tree_changes(top, head):
            if path_filter is not None and path_filter(path):
                continue
            try:
                data = (root / path).read_bytes()
            except OSError as exc:
                self._warn(ReadError(str(exc), path=path))
                continue
            if is_binary(data):
                continue
            info.files.append((path, decode_text(data)))
        return info

    def walk(self, path_filter: Callable[[str], bool] | None = None) -> Iterator[CommitInfo]:
        """Lazily yield CommitInfo in traversal order. Single use; call again to rescan."""
        if self.target.mode == "uncommitted":
            info = self.uncommitted_info(path_filter)
            if info is not None:
                yield info
            return
        for commit in self.resolve():
            try:
                yield self.read_commit(commit, path_filter)
            except ReadError as exc:
                self._warn(exc)
