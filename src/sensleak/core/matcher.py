"""Line matcher — runs candidate rule regexes over one line of text."""

from __future__ import annotations

import time
from typing import Iterable

from .errors import MatchError, ReadError
from .models import MatchCandidate, Rule

DEFAULT_LINE_TIMEOUT = 1.0
DEFAULT_MAX_LINE_LENGTH = 20_000
BINARY_SNIFF_BYTES = 8000


def is_binary(data: bytes) -> bool:
    """Same heuristic git uses: a NUL byte near the start means binary."""
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def split_lines(content: str) -> list[str]:
    """Split on ``\\n`` only, dropping a trailing ``\\r``, so numbering agrees with git."""
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _offender(match) -> str:
    if match.re.groups:
        group = match.group(1)
        if group is not None:
            return group
    return match.group(0)


def _timed_out(timeout: float, rule: Rule, line_number: int) -> ReadError:
    return ReadError(f"matching exceeded {timeout}s (rule '{rule.id}')", line_number=line_number)


def scan_line(
    line: str,
    line_number: int,
    candidate_rules: Iterable[Rule],
    *,
    timeout: float | None = DEFAULT_LINE_TIMEOUT,
    max_line_length: int | None = DEFAULT_MAX_LINE_LENGTH,
) -> list[MatchCandidate]:
    """Return one MatchCandidate per (rule, match) pair on *line*.

    The offender is the first capturing group when the rule's regex has one,
    else the whole match. Empty offenders are dropped. Lines longer than
    *max_line_length*, or whose matching overruns *timeout* seconds, raise
    ReadError so the caller can skip the line and keep going. The remaining
    budget is handed to the regex engine, which aborts a backtracking match
    in progress.
    """
    if max_line_length is not None and len(line) > max_line_length:
        raise ReadError(
            f"line is {len(line)} characters long, limit is {max_line_length}",
            line_number=line_number,
        )

    deadline = time.monotonic() + timeout if timeout is not None else None
    found: list[MatchCandidate] = []
    for rule in candidate_rules:
        remaining = None
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise _timed_out(timeout, rule, line_number)
        try:
            for match in rule.pattern.finditer(line, timeout=remaining):
                offender = _offender(match)
                if offender:
                    found.append(MatchCandidate(rule_id=rule.id, offender=offender))
                if deadline is not None and time.monotonic() > deadline:
                    break
        except TimeoutError as exc:
            raise _timed_out(timeout, rule, line_number) from exc
        except (RuntimeError, RecursionError, MemoryError) as exc:
            raise MatchError(f"rule '{rule.id}' failed: {exc}", line_number=line_number) from exc
        if deadline is not None and time.monotonic() > deadline:
            raise _timed_out(timeout, rule, line_number)
    return found
