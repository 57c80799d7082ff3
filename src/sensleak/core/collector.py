"""Result collector — the only shared mutable state of a scan."""

from __future__ import annotations

from threading import Lock

from .models import Leak, Results


class ResultCollector:
    """Thread-safe accumulator for commit counts, leaks and warnings.

    Workers finish commits out of order, so each submission carries the
    commit's position in the traversal. Leaks are appended to the output only
    once every earlier position has been submitted, which keeps ``outputs``
    in traversal -> file -> line -> rule order without reordering anything
    already appended.

    Example:
        >>> collector = ResultCollector()
        >>> collector.submit(1, [])
        >>> collector.submit(0, [])
        >>> collector.results().commits_number
        2
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._results = Results()
        self._pending: dict[int, list[Leak]] = {}
        self._next = 0

    def submit(self, position: int, leaks: list[Leak]) -> None:
        """Record one visited commit and its surviving leaks."""
        with self._lock:
            self._results.commits_number += 1
            self._pending[position] = list(leaks)
            while self._next in self._pending:
                self._results.outputs.extend(self._pending.pop(self._next))
                self._next += 1

    def warn(self, message: str) -> None:
        with self._lock:
            self._results.warnings.append(message)

    @property
    def commits_number(self) -> int:
        with self._lock:
            return self._results.commits_number

    def results(self) -> Results:
        """Finalize: flush positions left behind by a cancelled scan, in order."""
        with self._lock:
            for position in sorted(self._pending):
                self._results.outputs.extend(self._pending[position])
            self._pending.clear()
            return self._results
