"""Tests for commit resolution and reading."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sensleak.core.errors import ResolutionError
from sensleak.core.models import OPERATION_UNCOMMITTED, ScanTarget
from sensleak.core.walker import CommitWalker, parse_date_bound, read_commits_file

from conftest import SECRET, git


def _resolve(repo, **selectors):
    return CommitWalker(str(repo), ScanTarget(**selectors)).resolve()


class TestParseDateBound:
    def test_date_only_is_midnight_utc(self):
        assert parse_date_bound("2024-02-01") == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_timestamp_with_offset(self):
        parsed = parse_date_bound("2023-01-02T15:04:05-0700")
        assert parsed.utcoffset().total_seconds() == -7 * 3600

    def test_invalid(self):
        with pytest.raises(ResolutionError, match="Invalid date"):
            parse_date_bound("yesterday")


class TestReadCommitsFile:
    def test_skips_blank_and_comments(self, tmp_path):
        path = tmp_path / "commits.txt"
        path.write_text("# header\nabc\n\n  def  \n")
        assert read_commits_file(str(path)) == ["abc", "def"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResolutionError):
            read_commits_file(str(tmp_path / "missing.txt"))


class TestResolveModes:
    def test_full_history_newest_first(self, git_repo, leaky_history):
        assert _resolve(git_repo) == [leaky_history["later"], leaky_history["leaky"], leaky_history["clean"]]

    def test_empty_repository(self, git_repo):
        assert _resolve(git_repo) == []

    def test_not_a_repository(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(ResolutionError, match="not a git repository"):
            _resolve(plain)

    def test_single_commit_and_latest(self, git_repo, leaky_history):
        assert _resolve(git_repo, commit=leaky_history["leaky"][:8]) == [leaky_history["leaky"]]
        assert _resolve(git_repo, commit="latest") == [leaky_history["later"]]

    def test_unknown_commit(self, git_repo, leaky_history):
        with pytest.raises(ResolutionError):
            _resolve(git_repo, commit="0badc0de")

    def test_commits_list_keeps_order_and_dedupes(self, git_repo, leaky_history):
        commits = [leaky_history["clean"], leaky_history["later"], leaky_history["clean"][:10]]
        assert _resolve(git_repo, commits=commits) == [leaky_history["clean"], leaky_history["later"]]

    def test_commits_file(self, git_repo, leaky_history, tmp_path):
        path = tmp_path / "ids.txt"
        path.write_text(f"{leaky_history['leaky']}\n")
        assert _resolve(git_repo, commits_file=str(path)) == [leaky_history["leaky"]]

    def test_branch(self, git_repo, commit_files, leaky_history):
        git(git_repo, "checkout", "-q", "-b", "feature", leaky_history["leaky"])
        extra = commit_files({"feature.txt": "f\n"}, "feature work")
        git(git_repo, "checkout", "-q", "main")
        assert _resolve(git_repo, branch="feature") == [extra, leaky_history["leaky"], leaky_history["clean"]]

    def test_unknown_branch(self, git_repo, leaky_history):
        with pytest.raises(ResolutionError, match="not found"):
            _resolve(git_repo, branch="missing")

    def test_user_filter(self, git_repo, commit_files):
        commit_files({"a.txt": "1\n"}, author=("Alice", "alice@example.com"))
        bob = commit_files({"a.txt": "2\n"}, author=("Bob", "bob@example.com"))
        assert _resolve(git_repo, user="bob@example.com") == [bob]
        assert _resolve(git_repo, user="Bob") == [bob]
        assert _resolve(git_repo, user="bob") == []


class TestCommitRange:
    def test_both_bounds_inclusive(self, git_repo, leaky_history):
        ids = _resolve(git_repo, commit_from=leaky_history["clean"], commit_to=leaky_history["leaky"])
        assert ids == [leaky_history["leaky"], leaky_history["clean"]]

    def test_to_defaults_to_head(self, git_repo, leaky_history):
        ids = _resolve(git_repo, commit_from=leaky_history["leaky"])
        assert ids == [leaky_history["later"], leaky_history["leaky"]]

    def test_same_commit(self, git_repo, leaky_history):
        ids = _resolve(git_repo, commit_from=leaky_history["leaky"], commit_to=leaky_history["leaky"])
        assert ids == [leaky_history["leaky"]]

    def test_reversed_range_raises(self, git_repo, leaky_history):
        with pytest.raises(ResolutionError, match="not an ancestor"):
            _resolve(git_repo, commit_from=leaky_history["later"], commit_to=leaky_history["clean"])

    def test_unrelated_branch_raises(self, git_repo, commit_files, leaky_history):
        git(git_repo, "checkout", "-q", "--orphan", "other")
        git(git_repo, "rm", "-rqf", ".")
        orphan = commit_files({"orphan.txt": "o\n"}, "orphan root")
        with pytest.raises(ResolutionError):
            _resolve(git_repo, commit_from=orphan, commit_to=leaky_history["later"])


class TestDateRange:
    def test_inclusive_bounds(self, git_repo, leaky_history):
        ids = _resolve(git_repo, since="2024-02-01T12:00:00+00:00", until="2024-03-01T12:00:00+00:00")
        assert ids == [leaky_history["later"], leaky_history["leaky"]]

    def test_since_only(self, git_repo, leaky_history):
        assert _resolve(git_repo, since="2024-02-15") == [leaky_history["later"]]

    def test_until_only(self, git_repo, leaky_history):
        assert _resolve(git_repo, until="2024-01-15") == [leaky_history["clean"]]

    def test_since_after_until(self, git_repo, leaky_history):
        with pytest.raises(ResolutionError):
            _resolve(git_repo, since="2024-03-01", until="2024-01-01")


class TestReadCommit:
    def test_post_image_of_changed_files(self, git_repo, leaky_history):
        walker = CommitWalker(str(git_repo))
        info = walker.read_commit(leaky_history["leaky"])
        assert info.commit.hex == leaky_history["leaky"]
        assert info.author == "Test"
        assert info.commit_message == "add config"
        assert info.date == datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)
        assert [path for path, _ in info.files] == ["config.py"]
        assert SECRET in info.files[0][1]
        assert info.repo == "repo"

    def test_root_commit_diffs_against_empty_tree(self, git_repo, leaky_history):
        info = CommitWalker(str(git_repo)).read_commit(leaky_history["clean"])
        assert info.files == [("README.md", "# project\n")]

    def test_deleted_and_binary_files_skipped(self, git_repo, commit_files):
        commit_files({"gone.txt": "g\n"})
        sha = commit_files({"gone.txt": None, "image.png": b"\x89PNG\x00\x00", "ok.txt": "fine\n"})
        info = CommitWalker(str(git_repo)).read_commit(sha)
        assert [path for path, _ in info.files] == ["ok.txt"]

    def test_path_filter(self, git_repo, commit_files):
        sha = commit_files({"vendor/lib.py": "x\n", "src/app.py": "y\n"})
        info = CommitWalker(str(git_repo)).read_commit(sha, lambda p: p.startswith("vendor/"))
        assert [path for path, _ in info.files] == ["src/app.py"]

    def test_merge_uses_first_parent(self, git_repo, commit_files):
        commit_files({"base.txt": "b\n"})
        git(git_repo, "checkout", "-q", "-b", "side")
        commit_files({"side.txt": "from side\n"}, "side work")
        git(git_repo, "checkout", "-q", "main")
        commit_files({"main.txt": "from main\n"}, "main work")
        git(git_repo, "merge", "-q", "--no-ff", "--no-edit", "side")
        merge = git(git_repo, "rev-parse", "HEAD")
        info = CommitWalker(str(git_repo)).read_commit(merge)
        assert [path for path, _ in info.files] == ["side.txt"]

    def test_tags(self, git_repo, leaky_history):
        git(git_repo, "tag", "v2", leaky_history["leaky"])
        git(git_repo, "tag", "v1", leaky_history["leaky"])
        info = CommitWalker(str(git_repo)).read_commit(leaky_history["leaky"])
        assert info.tags == ["v1", "v2"]

    def test_walk_is_lazy_and_ordered(self, git_repo, leaky_history):
        walker = CommitWalker(str(git_repo), ScanTarget(commit_from=leaky_history["clean"]))
        stream = walker.walk()
        first = next(stream)
        assert first.commit.hex == leaky_history["later"]
        assert [info.commit.hex for info in stream] == [leaky_history["leaky"], leaky_history["clean"]]


class TestUncommitted:
    def test_working_tree_changes(self, git_repo, leaky_history):
        (git_repo / "config.py").write_text(f'api_key = "{SECRET}"\n')
        (git_repo / "new.txt").write_text("new\n")
        infos = list(CommitWalker(str(git_repo), ScanTarget(uncommitted=True)).walk())
        assert len(infos) == 1
        info = infos[0]
        assert info.operation == OPERATION_UNCOMMITTED
        assert info.commit.is_zero
        assert info.author == "Test"
        assert [path for path, _ in info.files] == ["config.py", "new.txt"]

    def test_resolve_is_empty(self, git_repo, leaky_history):
        assert _resolve(git_repo, uncommitted=True) == []

    def test_user_filter_excludes(self, git_repo, leaky_history):
        walker = CommitWalker(str(git_repo), ScanTarget(uncommitted=True, user="someone-else"))
        assert list(walker.walk()) == []

    def test_before_first_commit(self, git_repo):
        (git_repo / "draft.txt").write_text("draft\n")
        info = CommitWalker(str(git_repo), ScanTarget(uncommitted=True)).uncommitted_info()
        assert info.files == [("draft.txt", "draft\n")]

    def test_subdirectory_repo_path(self, git_repo, commit_files):
        commit_files({"pkg/x.txt": "x\n", "top.txt": "t\n"})
        (git_repo / "pkg" / "x.txt").write_text(f'api_key = "{SECRET}"\n')
        (git_repo / "pkg" / "new.txt").write_text("new\n")
        (git_repo / "top.txt").write_text("changed\n")
        walker = CommitWalker(str(git_repo / "pkg"), ScanTarget(uncommitted=True), on_warning=lambda err: pytest.fail(str(err)))
        info = walker.uncommitted_info()
        assert [path for path, _ in info.files] == ["pkg/new.txt", "pkg/x.txt", "top.txt"]
        assert SECRET in dict(info.files)["pkg/x.txt"]
