"""Core scan engine for sensleak."""

from .allowlist import AllowlistFilter
from .collector import ResultCollector
from .config import ScanConfig, load_config
from .errors import ConfigError, MatchError, ReadError, ResolutionError, SensleakError
from .matcher import scan_line
from .models import Allowlist, CommitId, CommitInfo, Leak, MatchCandidate, RegexTarget, Results, Rule, ScanTarget
from .report import write_report
from .rules import KeywordIndex, RuleSet
from .session import ScanSession, scan
from .walker import CommitWalker

__all__ = [
    "Allowlist",
    "AllowlistFilter",
    "CommitId",
    "CommitInfo",
    "CommitWalker",
    "ConfigError",
    "KeywordIndex",
    "Leak",
    "MatchCandidate",
    "MatchError",
    "ReadError",
    "RegexTarget",
    "ResolutionError",
    "ResultCollector",
    "Results",
    "Rule",
    "RuleSet",
    "ScanConfig",
    "ScanSession",
    "ScanTarget",
    "SensleakError",
    "load_config",
    "scan",
    "scan_line",
    "write_report",
]
