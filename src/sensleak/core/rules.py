"""Rule set and keyword pre-filter index."""

from __future__ import annotations

from typing import Iterable

from .errors import ConfigError
from .models import Allowlist, Rule


class KeywordIndex:
    """Maps lowercased keywords to the rules that declare them.

    Rules without keywords are "always candidates" and are returned for every
    line. Candidate lists always come back in rule-set order so that the
    matching pipeline stays deterministic.
    """

    def __init__(self, rules: Iterable[Rule]):
        self._rules: tuple[Rule, ...] = tuple(rules)
        by_keyword: dict[str, set[int]] = {}
        always: list[int] = []
        for index, rule in enumerate(self._rules):
            if not rule.keywords:
                always.append(index)
                continue
            for keyword in rule.keywords:
                by_keyword.setdefault(keyword, set()).add(index)
        self._by_keyword: dict[str, frozenset[int]] = {k: frozenset(v) for k, v in by_keyword.items()}
        self._always: frozenset[int] = frozenset(always)

    @property
    def keywords(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_keyword))

    @property
    def has_always_candidates(self) -> bool:
        return bool(self._always)

    def candidate_indices(self, lowered_line: str) -> list[int]:
        hits = set(self._always)
        for keyword, indices in self._by_keyword.items():
            if keyword in lowered_line:
                hits.update(indices)
        return sorted(hits)

    def may_match(self, lowered_content: str) -> bool:
        """Cheap whole-file check: can any rule be a candidate for some line of this content?"""
        if self._always:
            return True
        return any(keyword in lowered_content for keyword in self._by_keyword)


class RuleSet:
    """Compiled, immutable rules plus the global allowlist.

    Safe to share between worker threads without locking.
    """

    def __init__(self, rules: Iterable[Rule], allowlist: Allowlist | None = None):
        rules = tuple(rules)
        seen: set[str] = set()
        for rule in rules:
            if rule.id in seen:
                raise ConfigError(f"Duplicate rule id '{rule.id}'")
            seen.add(rule.id)
        self._rules = rules
        self._by_id = {rule.id: rule for rule in rules}
        self.allowlist = allowlist if allowlist is not None else Allowlist()
        self.index = KeywordIndex(rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def candidate_rules(self, line: str, *, gating: bool = True) -> list[Rule]:
        """Rules worth running against *line*.

        With gating on, the line is lowercased once and only rules whose
        keyword occurs in it (plus the keyword-less rules) are returned. With
        gating off every rule is returned and the caller applies
        ``Rule.admits_line`` to the matches instead, which yields the same
        leaks at a higher cost.
        """
        if not gating:
            return list(self._rules)
        return [self._rules[i] for i in self.index.candidate_indices(line.lower())]

    def content_may_match(self, content: str, *, gating: bool = True) -> bool:
        if not gating:
            return True
        return self.index.may_match(content.lower())
