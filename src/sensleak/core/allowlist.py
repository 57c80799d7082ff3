"""Allowlist suppression — global and per-rule, cheapest predicates first."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable

from .models import Allowlist, MatchCandidate, Rule

logger = logging.getLogger(__name__)


class Predicate(str, Enum):
    PATH = "path"
    COMMIT = "commit"
    REGEX = "regex"
    STOPWORD = "stopword"


_CHECKS: dict[Predicate, Callable[[Allowlist, str], bool]] = {
    Predicate.PATH: Allowlist.allows_path,
    Predicate.COMMIT: Allowlist.allows_commit,
    Predicate.REGEX: Allowlist.allows_regex,
    Predicate.STOPWORD: Allowlist.allows_stopword,
}


def allowlist_hit(allowlist: Allowlist | None, predicate: Predicate, text: str) -> bool:
    """Evaluate a single suppression predicate. ``None`` never suppresses."""
    if allowlist is None:
        return False
    return _CHECKS[predicate](allowlist, text)


class AllowlistFilter:
    """Decides which raw matches survive.

    Tier 1 uses the global allowlist: a matching path drops the whole file and
    a listed commit drops the whole commit. Tier 2 is reached only for raw
    matches: the rule's own allowlist (paths and commits for that rule, then
    regexes and stopwords against the offender or the line), followed by the
    global regexes and stopwords. Every check can only remove matches.
    """

    def __init__(self, global_allowlist: Allowlist | None = None):
        self.global_allowlist = global_allowlist if global_allowlist is not None else Allowlist()

    def skips_commit(self, commit: str) -> bool:
        return allowlist_hit(self.global_allowlist, Predicate.COMMIT, commit)

    def skips_file(self, path: str) -> bool:
        return allowlist_hit(self.global_allowlist, Predicate.PATH, path)

    def suppresses(self, rule: Rule, candidate: MatchCandidate, *, line: str, path: str, commit: str) -> bool:
        local = rule.allowlist
        if local is not None and not local.is_empty:
            if allowlist_hit(local, Predicate.PATH, path) or allowlist_hit(local, Predicate.COMMIT, commit):
                return True
            text = local.target_text(candidate.offender, line)
            if allowlist_hit(local, Predicate.REGEX, text) or allowlist_hit(local, Predicate.STOPWORD, text):
                return True
        glob = self.global_allowlist
        if glob.is_empty:
            return False
        text = glob.target_text(candidate.offender, line)
        return allowlist_hit(glob, Predicate.REGEX, text) or allowlist_hit(glob, Predicate.STOPWORD, text)

    def filter(
        self,
        candidates: Iterable[MatchCandidate],
        rules: dict[str, Rule],
        *,
        line: str,
        path: str,
        commit: str,
    ) -> list[MatchCandidate]:
        survivors = []
        for candidate in candidates:
            if self.suppresses(rules[candidate.rule_id], candidate, line=line, path=path, commit=commit):
                logger.debug("Allowlisted %s match in %s@%s", candidate.rule_id, path, commit[:12])
                continue
            survivors.append(candidate)
        return survivors
