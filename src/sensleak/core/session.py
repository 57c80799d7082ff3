"""Scan session — drives walker, keyword gating, matcher, allowlist and collector.

The calling thread feeds resolved commit ids, in traversal order, into a
bounded queue; a pool of worker threads reads each commit's diff and runs the
matching pipeline independently. The rule set is shared read-only; the
collector is the only shared mutable state.
"""

from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path

from .allowlist import AllowlistFilter
from .collector import ResultCollector
from .config import ScanConfig
from .errors import ReadError
from .matcher import DEFAULT_LINE_TIMEOUT, DEFAULT_MAX_LINE_LENGTH, scan_line, split_lines
from .models import CommitInfo, Leak, Results, ScanTarget
from .walker import CommitWalker

logger = logging.getLogger(__name__)

_DONE = object()


class ScanSession:
    """Scan one repository target with a fixed configuration.

    ``run()`` raises ConfigError/ResolutionError before scanning anything
    when the target is invalid. Recoverable read and match failures become
    entries in ``Results.warnings``. ``cancel()`` may be called from another
    thread; the partial Results gathered so far are returned.
    """

    def __init__(
        self,
        config: ScanConfig,
        repo_path: str,
        target: ScanTarget | None = None,
        *,
        workers: int = 4,
        queue_size: int = 64,
        keyword_gating: bool = True,
        line_timeout: float | None = DEFAULT_LINE_TIMEOUT,
        max_line_length: int | None = DEFAULT_MAX_LINE_LENGTH,
        repo_name: str | None = None,
    ):
        self.config = config
        self.repo_path = str(Path(repo_path))
        self.target = target if target is not None else ScanTarget()
        self.workers = max(1, workers)
        self.queue_size = max(1, queue_size)
        self.keyword_gating = keyword_gating
        self.line_timeout = line_timeout
        self.max_line_length = max_line_length
        self.allowlist = AllowlistFilter(config.allowlist)
        self._rules_by_id = {rule.id: rule for rule in config.ruleset}
        self._cancel = threading.Event()
        self._collector = ResultCollector()
        self.walker = CommitWalker(
            self.repo_path,
            self.target,
            repo_name=repo_name,
            on_warning=self._record_warning,
        )

    # --- control ---

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _record_warning(self, error: ReadError) -> None:
        self._collector.warn(str(error))

    # --- pipeline ---

    def scan_commit(self, info: CommitInfo) -> list[Leak]:
        """Run gating -> matching -> allowlist over every line of one commit."""
        commit = info.commit.hex
        if self.allowlist.skips_commit(commit):
            logger.debug("Commit %s allowlisted", commit[:12])
            return []
        ruleset = self.config.ruleset
        leaks: list[Leak] = []
        for path, content in info.files:
            if self.allowlist.skips_file(path):
                continue
            if not ruleset.content_may_match(content, gating=self.keyword_gating):
                continue
            for line_number, line in enumerate(split_lines(content), start=1):
                leaks.extend(self._scan_one_line(info, path, line, line_number))
        return leaks

    def _scan_one_line(self, info: CommitInfo, path: str, line: str, line_number: int) -> list[Leak]:
        ruleset = self.config.ruleset
        candidates = ruleset.candidate_rules(line, gating=self.keyword_gating)
        if not candidates:
            return []
        commit = info.commit.hex
        try:
            matches = scan_line(
                line,
                line_number,
                candidates,
                timeout=self.line_timeout,
                max_line_length=self.max_line_length,
            )
        except ReadError as exc:
            exc.commit = exc.commit or commit
            exc.path = exc.path or path
            logger.warning("Skipping %s", exc)
            self._collector.warn(str(exc))
            return []
        if not matches:
            return []
        if not self.keyword_gating:
            lowered = line.lower()
            matches = [m for m in matches if self._rules_by_id[m.rule_id].admits_line(lowered)]
        survivors = self.allowlist.filter(matches, self._rules_by_id, line=line, path=path, commit=commit)
        return [Leak.from_match(info, path, line, line_number, m) for m in survivors]

    def _read(self, commit: str) -> CommitInfo | None:
        if self.allowlist.skips_commit(commit):
            return None
        try:
            return self.walker.read_commit(commit, path_filter=self.allowlist.skips_file)
        except ReadError as exc:
            logger.warning("Skipping commit %s", exc)
            self._collector.warn(str(exc))
            return None

    def _process(self, position: int, commit: str) -> None:
        try:
            info = self._read(commit)
            leaks = self.scan_commit(info) if info is not None else []
        except Exception as exc:
            logger.warning("Failed to scan commit %s: %s", commit[:12], exc, exc_info=True)
            self._collector.warn(f"{commit[:12]}: {exc}")
            leaks = []
        self._collector.submit(position, leaks)
        if leaks:
            logger.debug("Commit %s: %d leak(s)", commit[:12], len(leaks))

    def _produce(self, commits: list[str], work: queue.Queue) -> None:
        try:
            for position, commit in enumerate(commits):
                while not self._cancel.is_set():
                    try:
                        work.put((position, commit), timeout=0.1)
                        break
                    except queue.Full:
                        continue
                if self._cancel.is_set():
                    break
        finally:
            for _ in range(self.workers):
                work.put(_DONE)

    def _consume(self, work: queue.Queue) -> None:
        while True:
            item = work.get()
            if item is _DONE:
                return
            if self._cancel.is_set():
                continue
            position, commit = item
            self._process(position, commit)

    def run(self) -> Results:
        """Resolve the target, scan every commit and return Results."""
        logger.info("Scanning %s in %s", self.target.describe(), self.repo_path)
        if self.target.mode == "uncommitted":
            for position, info in enumerate(self.walker.walk(path_filter=self.allowlist.skips_file)):
                if self._cancel.is_set():
                    break
                self._collector.submit(position, self.scan_commit(info))
            return self._collector.results()

        commits = self.walker.resolve()
        logger.debug("Resolved %d commit(s)", len(commits))

        if self.workers == 1 or len(commits) <= 1:
            try:
                for position, commit in enumerate(commits):
                    if self._cancel.is_set():
                        break
                    self._process(position, commit)
            except KeyboardInterrupt:
                logger.warning("Interrupted, returning partial results")
                self.cancel()
            return self._collector.results()

        work: queue.Queue = queue.Queue(maxsize=self.queue_size)
        threads = [
            threading.Thread(target=self._consume, args=(work,), name=f"sensleak-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for thread in threads:
            thread.start()
        try:
            self._produce(commits, work)
            for thread in threads:
                thread.join()
        except KeyboardInterrupt:
            logger.warning("Interrupted, returning partial results")
            self.cancel()
            for thread in threads:
                thread.join()
        return self._collector.results()


def scan(config: ScanConfig, repo_path: str, target: ScanTarget | None = None, **options) -> Results:
    """Convenience wrapper: build a ScanSession and run it."""
    return ScanSession(config, repo_path, target, **options).run()
