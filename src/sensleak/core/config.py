"""Configuration management — gitleaks-style TOML rules and allowlists."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .models import Allowlist, Rule
from .rules import RuleSet

REPO_CONFIG_NAMES = (".gitleaks.toml", "gitleaks.toml")

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "sensleak default rules",
    "allowlist": {
        "description": "global allowlist",
        "paths": [r"(^|/)(go\.sum|package-lock\.json|yarn\.lock|poetry\.lock)$"],
    },
    "rules": [
        {
            "id": "aws-access-token",
            "description": "AWS access key id",
            "regex": r"\b((?:A3T[A-Z0-9]|AKIA|ASIA|ABIA|ACCA)[A-Z0-9]{16})\b",
            "keywords": ["akia", "asia", "abia", "acca", "a3t"],
        },
        {
            "id": "github-pat",
            "description": "GitHub personal access token",
            "regex": r"ghp_[0-9a-zA-Z]{36}",
            "keywords": ["ghp_"],
        },
        {
            "id": "github-fine-grained-pat",
            "description": "GitHub fine-grained personal access token",
            "regex": r"github_pat_[0-9a-zA-Z_]{82}",
            "keywords": ["github_pat_"],
        },
        {
            "id": "slack-bot-token",
            "description": "Slack bot token",
            "regex": r"(xoxb-[0-9]{10,13}-[0-9]{10,13}[a-zA-Z0-9-]*)",
            "keywords": ["xoxb"],
        },
        {
            "id": "openai-api-key",
            "description": "OpenAI API key",
            "regex": r"\b(sk-[a-zA-Z0-9]{20}T3BlbkFJ[a-zA-Z0-9]{20})\b",
            "keywords": ["t3blbkfj"],
        },
        {
            "id": "stripe-access-token",
            "description": "Stripe secret or restricted key",
            "regex": r"\b((?:sk|rk)_(?:test|live|prod)_[0-9a-zA-Z]{10,99})\b",
            "keywords": ["sk_test", "sk_live", "sk_prod", "rk_test", "rk_live", "rk_prod"],
        },
        {
            "id": "private-key",
            "description": "PEM encoded private key header",
            "regex": r"-----BEGIN[ A-Z0-9_-]{0,100}PRIVATE KEY( BLOCK)?-----",
            "keywords": ["-----begin"],
        },
        {
            "id": "generic-api-key",
            "description": "Generic API key assignment",
            "regex": r"""(?i)(?:api_?key|apikey|secret_?key|access_?token|auth_?token)\s*[:=]\s*['"]([0-9a-zA-Z\-_=+/]{16,})['"]""",
            "keywords": ["api_key", "apikey", "api-key", "secret_key", "secretkey", "access_token", "accesstoken", "auth_token", "authtoken"],
            "allowlist": {
                "stopwords": ["example", "placeholder", "xxxxxxxx", "changeme"],
            },
        },
    ],
}


@dataclass(frozen=True)
class ScanConfig:
    """Explicit configuration value handed to a scan session."""

    ruleset: RuleSet
    source: str = "default"
    title: str = ""

    @property
    def allowlist(self) -> Allowlist:
        return self.ruleset.allowlist


def _string_list(data: dict, key: str, where: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}: '{key}' must be a list of strings")
    return tuple(value)


def parse_allowlist(data: Any, where: str) -> Allowlist:
    if data is None:
        return Allowlist()
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: allowlist must be a table")
    try:
        return Allowlist(
            paths=_string_list(data, "paths", where),
            commits=_string_list(data, "commits", where),
            regex_target=data.get("regexTarget", data.get("regex_target", "match")),
            regexes=_string_list(data, "regexes", where),
            stopwords=_string_list(data, "stopwords", where),
            description=str(data.get("description", "")),
        )
    except ConfigError as exc:
        raise ConfigError(f"{where}: {exc}") from exc


def parse_rule(data: Any, where: str) -> Rule:
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: each [[rules]] entry must be a table")
    rule_id = data.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        raise ConfigError(f"{where}: rule is missing a string 'id'")
    where = f"{where} rule '{rule_id}'"
    regex = data.get("regex")
    if not isinstance(regex, str) or not regex:
        raise ConfigError(f"{where}: missing a string 'regex'")
    allowlist = parse_allowlist(data["allowlist"], where) if "allowlist" in data else None
    return Rule(
        id=rule_id,
        regex=regex,
        description=str(data.get("description", "")),
        keywords=_string_list(data, "keywords", where),
        allowlist=allowlist,
    )


def build_config(data: dict[str, Any], source: str = "default") -> ScanConfig:
    """Validate a parsed configuration document and compile it."""
    rules_data = data.get("rules", [])
    if not isinstance(rules_data, list):
        raise ConfigError(f"{source}: 'rules' must be an array of tables")
    rules = [parse_rule(entry, source) for entry in rules_data]
    allowlist = parse_allowlist(data.get("allowlist"), f"{source} [allowlist]")
    try:
        ruleset = RuleSet(rules, allowlist)
    except ConfigError as exc:
        raise ConfigError(f"{source}: {exc}") from exc
    return ScanConfig(ruleset=ruleset, source=source, title=str(data.get("title", "")))


def read_config_file(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: invalid TOML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def find_repo_config(repo_path: str | Path) -> Path | None:
    for name in REPO_CONFIG_NAMES:
        candidate = Path(repo_path) / name
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: str | Path | None = None,
    repo_path: str | Path | None = None,
    repo_config: bool = False,
) -> ScanConfig:
    """Load scan config: explicit file <- repo config file <- built-in defaults."""
    if path is not None:
        return build_config(read_config_file(path), source=str(path))

    if repo_config:
        if repo_path is None:
            raise ConfigError("repo_config requires a repository path")
        found = find_repo_config(repo_path)
        if found is None:
            raise ConfigError(f"No {' or '.join(REPO_CONFIG_NAMES)} found in {repo_path}")
        return build_config(read_config_file(found), source=str(found))

    return build_config(DEFAULT_CONFIG, source="default")
