"""Data model — rules, allowlists, commits, leaks and results."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

import regex

from .errors import ConfigError

OPERATION_COMMIT = "commit"
OPERATION_UNCOMMITTED = "uncommitted"


class RegexTarget(str, Enum):
    """Which text an allowlist's regexes and stopwords are checked against."""

    MATCH = "match"
    LINE = "line"

    @classmethod
    def parse(cls, value: str | RegexTarget | None) -> RegexTarget:
        if value is None or value == "":
            return cls.MATCH
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(f"Invalid regexTarget {value!r}. Must be 'match' or 'line'.") from None


def _compile(pattern: str, what: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid {what} regex {pattern!r}: {exc}") from exc


@dataclass(frozen=True)
class Allowlist:
    """Suppression policy over paths, commit ids, regexes and stopwords.

    The four lists are independent predicates. An allowlist whose lists are
    all empty never suppresses anything.
    """

    paths: tuple[str, ...] = ()
    commits: tuple[str, ...] = ()
    regex_target: RegexTarget = RegexTarget.MATCH
    regexes: tuple[str, ...] = ()
    stopwords: tuple[str, ...] = ()
    description: str = ""

    _path_patterns: tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)
    _regex_patterns: tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)
    _commit_set: frozenset[str] = field(default=frozenset(), init=False, repr=False, compare=False)
    _stopwords_lower: tuple[str, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("paths", "commits", "regexes", "stopwords"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, "regex_target", RegexTarget.parse(self.regex_target))
        object.__setattr__(self, "_path_patterns", tuple(_compile(p, "allowlist path") for p in self.paths))
        object.__setattr__(self, "_regex_patterns", tuple(_compile(r, "allowlist") for r in self.regexes))
        object.__setattr__(self, "_commit_set", frozenset(c.strip().lower() for c in self.commits))
        object.__setattr__(self, "_stopwords_lower", tuple(s.lower() for s in self.stopwords if s))

    @property
    def is_empty(self) -> bool:
        return not (self.paths or self.commits or self.regexes or self.stopwords)

    def allows_path(self, path: str) -> bool:
        return any(p.search(path) for p in self._path_patterns)

    def allows_commit(self, commit: str) -> bool:
        return commit.lower() in self._commit_set

    def allows_regex(self, text: str) -> bool:
        return any(r.search(text) for r in self._regex_patterns)

    def allows_stopword(self, text: str) -> bool:
        if not self._stopwords_lower:
            return False
        lowered = text.lower()
        return any(s in lowered for s in self._stopwords_lower)

    def target_text(self, offender: str, line: str) -> str:
        return line if self.regex_target is RegexTarget.LINE else offender


@dataclass(frozen=True)
class Rule:
    """A named regex detector gated by optional keywords.

    The regex is compiled on construction with the ``regex`` engine so that
    matching can be bounded by a timeout; an invalid pattern raises
    ConfigError. Keywords are stored lowercased. An empty keyword tuple makes
    the rule a candidate for every line.
    """

    id: str
    regex: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    allowlist: Allowlist | None = None

    pattern: regex.Pattern = field(default=None, init=False, repr=False, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigError("Rule is missing an id")
        object.__setattr__(self, "keywords", tuple(k.lower() for k in self.keywords if k))
        try:
            compiled = regex.compile(self.regex)
        except regex.error as exc:
            raise ConfigError(f"Rule '{self.id}' has an invalid regex {self.regex!r}: {exc}") from exc
        object.__setattr__(self, "pattern", compiled)

    def admits_line(self, lowered_line: str) -> bool:
        """Keyword condition: no keywords, or at least one occurs in the lowercased line."""
        if not self.keywords:
            return True
        return any(k in lowered_line for k in self.keywords)


@dataclass(frozen=True, order=True)
class CommitId:
    """Content hash of a commit, held as raw bytes (20 for SHA-1, 32 for SHA-256)."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) not in (20, 32):
            raise ValueError(f"Commit id must be 20 or 32 bytes, got {len(self.raw)}")

    @classmethod
    def from_hex(cls, value: str) -> CommitId:
        value = value.strip()
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            raise ValueError(f"Not a hex commit id: {value!r}") from None
        return cls(raw)

    @classmethod
    def zero(cls) -> CommitId:
        return cls(bytes(20))

    @property
    def is_zero(self) -> bool:
        return not any(self.raw)

    @property
    def hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.hex


@dataclass
class CommitInfo:
    """Normalized per-commit metadata plus the content of the files it changed."""

    repo: str
    commit: CommitId
    author: str = ""
    email: str = ""
    commit_message: str = ""
    date: datetime | None = None
    files: list[tuple[str, str]] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    operation: str = OPERATION_COMMIT


@dataclass(frozen=True)
class MatchCandidate:
    rule_id: str
    offender: str


@dataclass(frozen=True)
class Leak:
    """One reported secret. Field order is the report schema order."""

    line: str
    line_number: int
    offender: str
    commit: str
    repo: str
    rule: str
    commit_message: str
    author: str
    email: str
    file: str
    date: str
    tags: str
    operation: str

    @classmethod
    def from_match(
        cls,
        info: CommitInfo,
        path: str,
        line: str,
        line_number: int,
        candidate: MatchCandidate,
    ) -> Leak:
        return cls(
            line=line,
            line_number=line_number,
            offender=candidate.offender,
            commit=info.commit.hex,
            repo=info.repo or "",
            rule=candidate.rule_id,
            commit_message=info.commit_message or "",
            author=info.author or "",
            email=info.email or "",
            file=path,
            date=info.date.isoformat() if info.date is not None else "",
            tags=",".join(info.tags),
            operation=info.operation or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_csv_row(self) -> dict[str, Any]:
        row = self.to_dict()
        row.pop("tags")
        row.pop("operation")
        return row


LEAK_FIELDS = tuple(f.name for f in fields(Leak))
CSV_FIELDS = tuple(name for name in LEAK_FIELDS if name not in ("tags", "operation"))


@dataclass
class Results:
    """Outcome of a scan: commits visited plus leaks in traversal order."""

    commits_number: int = 0
    outputs: list[Leak] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "commits_number": self.commits_number,
            "outputs": [leak.to_dict() for leak in self.outputs],
        }


@dataclass(frozen=True)
class ScanTarget:
    """Which commits to scan.

    At most one selection mode may be set; ``None`` means the selector is not
    configured. With no mode set, the whole history reachable from HEAD is
    scanned. ``user`` narrows any mode to one author.
    """

    commit: str | None = None
    commits: tuple[str, ...] | None = None
    commits_file: str | None = None
    since: str | None = None
    until: str | None = None
    commit_from: str | None = None
    commit_to: str | None = None
    branch: str | None = None
    uncommitted: bool = False
    user: str | None = None

    def __post_init__(self) -> None:
        if self.commits is not None:
            object.__setattr__(self, "commits", tuple(self.commits))
        active = self.active_modes()
        if len(active) > 1:
            raise ConfigError(f"Scan selectors are mutually exclusive, got: {', '.join(active)}")

    def active_modes(self) -> list[str]:
        modes = []
        if self.commit is not None:
            modes.append("commit")
        if self.commits is not None:
            modes.append("commits")
        if self.commits_file is not None:
            modes.append("commits_file")
        if self.since is not None or self.until is not None:
            modes.append("date_range")
        if self.commit_from is not None or self.commit_to is not None:
            modes.append("commit_range")
        if self.branch is not None:
            modes.append("branch")
        if self.uncommitted:
            modes.append("uncommitted")
        return modes

    @property
    def mode(self) -> str:
        active = self.active_modes()
        return active[0] if active else "history"

    def describe(self) -> str:
        mode = self.mode
        if mode == "commit":
            label = f"commit {self.commit}"
        elif mode == "commits":
            label = f"{len(self.commits or ())} listed commits"
        elif mode == "commits_file":
            label = f"commits from {self.commits_file}"
        elif mode == "date_range":
            label = f"commits since {self.since or '-'} until {self.until or '-'}"
        elif mode == "commit_range":
            label = f"commits {self.commit_from or 'root'}..{self.commit_to or 'HEAD'}"
        elif mode == "branch":
            label = f"branch {self.branch}"
        elif mode == "uncommitted":
            label = "uncommitted changes"
        else:
            label = "full history"
        if self.user is not None:
            label += f" by {self.user}"
        return label
