"""Report writers — JSON, CSV and SARIF serialization of scan Results."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any

from .. import __version__
from .models import CSV_FIELDS, Results

REPORT_FORMATS = ("json", "csv", "sarif")

_SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
_INFORMATION_URI = "https://github.com/open-rust-initiative/sensleak-rs"


def render_json(results: Results, *, pretty: bool = False) -> str:
    leaks = [leak.to_dict() for leak in results.outputs]
    if pretty:
        return json.dumps(leaks, indent=2, ensure_ascii=False) + "\n"
    return json.dumps(leaks, ensure_ascii=False) + "\n"


def render_csv(results: Results) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(CSV_FIELDS), lineterminator="\n")
    writer.writeheader()
    for leak in results.outputs:
        writer.writerow(leak.to_csv_row())
    return buffer.getvalue()


def build_sarif(results: Results, descriptions: dict[str, str] | None = None) -> dict[str, Any]:
    """Build a SARIF 2.1.0 log with one result per leak."""
    descriptions = descriptions or {}
    rule_ids: list[str] = []
    for leak in results.outputs:
        if leak.rule not in rule_ids:
            rule_ids.append(leak.rule)

    sarif_results = []
    for leak in results.outputs:
        sarif_results.append(
            {
                "ruleId": leak.rule,
                "message": {"text": f"{leak.rule} has detected secret for file {leak.file}."},
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": leak.file},
                            "region": {
                                "startLine": leak.line_number,
                                "snippet": {"text": leak.offender},
                            },
                        }
                    }
                ],
                "partialFingerprints": {
                    "commitSha": leak.commit,
                    "email": leak.email,
                    "author": leak.author,
                    "date": leak.date,
                    "commitMessage": leak.commit_message,
                },
            }
        )

    return {
        "$schema": _SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "sensleak",
                        "semanticVersion": __version__,
                        "informationUri": _INFORMATION_URI,
                        "rules": [
                            {
                                "id": rule_id,
                                "name": rule_id,
                                "shortDescription": {"text": descriptions.get(rule_id) or rule_id},
                            }
                            for rule_id in rule_ids
                        ],
                    }
                },
                "results": sarif_results,
            }
        ],
    }


def render_report(
    results: Results,
    fmt: str = "json",
    *,
    pretty: bool = False,
    descriptions: dict[str, str] | None = None,
) -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return render_json(results, pretty=pretty)
    if fmt == "csv":
        return render_csv(results)
    if fmt == "sarif":
        indent = 2 if pretty else None
        return json.dumps(build_sarif(results, descriptions), indent=indent, ensure_ascii=False) + "\n"
    raise ValueError(f"Invalid report format '{fmt}'. Must be one of: {REPORT_FORMATS}")


def write_report(
    results: Results,
    path: str | Path,
    fmt: str = "json",
    *,
    pretty: bool = False,
    descriptions: dict[str, str] | None = None,
) -> Path:
    """Serialize *results* to *path* and return the path written."""
    content = render_report(results, fmt, pretty=pretty, descriptions=descriptions)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
