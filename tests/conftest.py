"""Shared fixtures: throwaway git repositories and scan configs."""

from __future__ import annotations

import os
import subprocess

import pytest

API_KEY_RULE = {
    "id": "generic-api-key",
    "description": "Generic API key",
    "regex": r"""(?i)api_key\s*=\s*['"]([a-z0-9]{16,})['"]""",
    "keywords": ["api_key"],
}

GITHUB_RULE = {
    "id": "github-pat",
    "description": "GitHub personal access token",
    "regex": r"ghp_[0-9a-zA-Z]{36}",
    "keywords": ["ghp_"],
}

SECRET = "abcd1234abcd1234"
GITHUB_TOKEN = "ghp_" + "a1B2c3D4e5" * 3 + "f6G7h8"


def git(repo, *args, env=None) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path):
    """Create an empty git repo (branch main, no commits) in a temp directory."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def commit_files(git_repo):
    """Factory that writes files and commits them, returning the new commit id.

    A value of None deletes the path; bytes are written verbatim.
    """

    def _commit(
        files: dict,
        message: str = "update",
        *,
        author: tuple[str, str] = ("Test", "test@test.com"),
        date: str = "2024-01-01T12:00:00+00:00",
    ) -> str:
        for path, content in files.items():
            target = git_repo / path
            if content is None:
                git(git_repo, "rm", "-q", "--", path)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        git(git_repo, "add", "-A")
        env = dict(os.environ)
        env.update(
            {
                "GIT_AUTHOR_NAME": author[0],
                "GIT_AUTHOR_EMAIL": author[1],
                "GIT_COMMITTER_NAME": author[0],
                "GIT_COMMITTER_EMAIL": author[1],
                "GIT_AUTHOR_DATE": date,
                "GIT_COMMITTER_DATE": date,
            }
        )
        git(git_repo, "commit", "-q", "--allow-empty", "-m", message, env=env)
        return git(git_repo, "rev-parse", "HEAD")

    return _commit


@pytest.fixture
def make_config():
    """Factory building a ScanConfig from plain rule/allowlist dicts."""
    from sensleak.core.config import build_config

    def _make(rules=None, allowlist=None):
        data = {"rules": rules if rules is not None else [API_KEY_RULE, GITHUB_RULE]}
        if allowlist is not None:
            data["allowlist"] = allowlist
        return build_config(data, source="test")

    return _make


@pytest.fixture
def leaky_history(commit_files):
    """Three linear commits: clean, one with an API key at line 5, one clean."""
    clean = commit_files({"README.md": "# project\n"}, "initial", date="2024-01-01T12:00:00+00:00")
    leaky = commit_files(
        {"config.py": f'import os\n\n\nDEBUG = True\nAPI_KEY = "{SECRET}"\n'},
        "add config",
        date="2024-02-01T12:00:00+00:00",
    )
    later = commit_files({"README.md": "# project\n\nDocs.\n"}, "docs", date="2024-03-01T12:00:00+00:00")
    return {"clean": clean, "leaky": leaky, "later": later}
