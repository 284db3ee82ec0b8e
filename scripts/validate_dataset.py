#!/usr/bin/env python3
"""
Dataset Validation Script for Phaseguard

Validates client, worker and task exports (JSON arrays of records) together with
an optional JSON array of business rules. Outputs a findings report for CI.

Usage:
    python scripts/validate_dataset.py --clients clients.json --tasks tasks.json
    python scripts/validate_dataset.py --workers workers.json --rules rules.json
    python scripts/validate_dataset.py --tasks tasks.json --format json
    python scripts/validate_dataset.py --tasks tasks.json --fail-on-error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from phaseguard.logger import configure_logging
from phaseguard.schemas import Severity, ValidationFinding, ValidationSummary
from phaseguard.validation import summarize, validate


logger = logging.getLogger("phaseguard.scripts.validate_dataset")


def load_records(path: str | None) -> list[dict[str, Any]] | None:
    """Read one JSON array of objects; a missing option means the collection is absent."""
    if path is None:
        return None
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path}: expected a JSON array of objects")
    logger.info("loaded %d records from %s", len(data), path)
    return data


def build_report(
    *,
    clients: list[dict[str, Any]] | None = None,
    workers: list[dict[str, Any]] | None = None,
    tasks: list[dict[str, Any]] | None = None,
    rules: list[dict[str, Any]] | None = None,
) -> tuple[list[ValidationFinding], ValidationSummary]:
    findings = validate({"clients": clients, "workers": workers, "tasks": tasks}, rules or [])
    return findings, summarize(findings)


def format_text_report(findings: list[ValidationFinding], summary: ValidationSummary) -> str:
    """Format findings as human-readable text."""
    lines = []
    lines.append("=" * 80)
    lines.append("DATASET VALIDATION REPORT")
    lines.append("=" * 80)
    lines.append(f"Generated: {datetime.now(timezone.utc).isoformat()}")
    lines.append("")

    for entity_type in ("clients", "workers", "tasks"):
        scoped = [finding for finding in findings if finding.entity_type == entity_type]
        status = "FAIL" if any(f.severity == Severity.ERROR for f in scoped) else "PASS"
        lines.append(f"\n{'-' * 80}")
        lines.append(f"Entity: {entity_type:10} | Status: {status} | Findings: {len(scoped)}")
        lines.append("-" * 80)

        if scoped:
            for finding in scoped:
                target = finding.entity_id or "-"
                lines.append(
                    f"  [{finding.severity.value:7}] {finding.type:26} | {target:10} | {finding.message}"
                )
                if finding.suggestion:
                    lines.append(f"  {'':9} {'':26} | {'':10} | -> {finding.suggestion}")
        else:
            lines.append("  No findings")

    lines.append("\n" + "=" * 80)
    lines.append("SUMMARY")
    lines.append("=" * 80)
    lines.append(f"Total Findings: {summary.total}")
    lines.append(f"  - ERROR:   {summary.by_severity.get('error', 0)}")
    lines.append(f"  - WARNING: {summary.by_severity.get('warning', 0)}")
    lines.append(f"  - INFO:    {summary.by_severity.get('info', 0)}")
    lines.append(f"Quality Score: {summary.quality_score}")
    lines.append("=" * 80)

    return "\n".join(lines)


def format_json_report(findings: list[ValidationFinding], summary: ValidationSummary) -> str:
    """Format findings as JSON."""
    data = {
        "findings": [finding.model_dump(mode="json", by_alias=True) for finding in findings],
        "summary": summary.model_dump(mode="json"),
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate client, worker and task data against business rules"
    )
    parser.add_argument("--clients", help="Path to a JSON array of client records")
    parser.add_argument("--workers", help="Path to a JSON array of worker records")
    parser.add_argument("--tasks", help="Path to a JSON array of task records")
    parser.add_argument("--rules", help="Path to a JSON array of business rules")
    parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )
    parser.add_argument(
        "--fail-on-error",
        action="store_true",
        help="Exit with non-zero status if any error findings are reported",
    )
    parser.add_argument("--log-level", default=None, help="Override PHASEGUARD_LOG_LEVEL")

    args = parser.parse_args(argv)

    # Reports go to stdout; keep log lines out of the way of JSON output.
    configure_logging(level=args.log_level, stream=sys.stderr)

    findings, summary = build_report(
        clients=load_records(args.clients),
        workers=load_records(args.workers),
        tasks=load_records(args.tasks),
        rules=load_records(args.rules),
    )

    if args.format == "json":
        print(format_json_report(findings, summary))
    else:
        print(format_text_report(findings, summary))

    if args.fail_on_error and summary.by_severity.get("error", 0) > 0:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
