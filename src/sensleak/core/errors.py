"""Error taxonomy for the scan engine."""

from __future__ import annotations


class SensleakError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(SensleakError):
    """Invalid rule/allowlist configuration or conflicting scan selectors. Fatal."""


class ResolutionError(SensleakError):
    """A commit, branch or date reference could not be resolved. Fatal for the target."""

    def __init__(self, message: str, target: str = ""):
        super().__init__(message)
        self.target = target


class ReadError(SensleakError):
    """An object, file or line could not be read or scanned. Recoverable."""

    def __init__(
        self,
        message: str,
        *,
        commit: str = "",
        path: str = "",
        line_number: int | None = None,
    ):
        super().__init__(message)
        self.commit = commit
        self.path = path
        self.line_number = line_number

    def location(self) -> str:
        parts = [p for p in (self.commit[:12], self.path) if p]
        if self.line_number is not None:
            parts.append(f"line {self.line_number}")
        return ":".join(parts)

    def __str__(self) -> str:
        message = super().__str__()
        where = self.location()
        return f"{where}: {message}" if where else message


class MatchError(ReadError):
    """Runtime fault while evaluating a rule's regex. Handled like ReadError."""
