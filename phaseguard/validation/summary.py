from __future__ import annotations

from typing import Iterable

from phaseguard.schemas import FindingDiff, Severity, ValidationFinding, ValidationSummary
from phaseguard.validation.parsing import ENTITY_TYPES


ERROR_WEIGHT = 3
WARNING_WEIGHT = 1
PENALTY_PER_WEIGHT = 5
MAX_SCORE = 100


def quality_score(errors: int, warnings: int) -> int:
    weight = errors * ERROR_WEIGHT + warnings * WARNING_WEIGHT
    return max(0, MAX_SCORE - weight * PENALTY_PER_WEIGHT)


def summarize(findings: Iterable[ValidationFinding]) -> ValidationSummary:
    findings_list = list(findings)
    by_severity = {severity.value: 0 for severity in Severity}
    by_entity_type = {entity_type: 0 for entity_type in ENTITY_TYPES}
    for finding in findings_list:
        by_severity[Severity(finding.severity).value] += 1
        by_entity_type[finding.entity_type] += 1
    return ValidationSummary(
        total=len(findings_list),
        by_severity=by_severity,
        by_entity_type=by_entity_type,
        quality_score=quality_score(by_severity["error"], by_severity["warning"]),
    )


def _key(finding: ValidationFinding) -> tuple:
    return tuple(finding.model_dump(mode="json").values())


def diff_findings(
    previous: Iterable[ValidationFinding],
    current: Iterable[ValidationFinding],
) -> FindingDiff:
    """Compare two finding lists by value; each side keeps its own order."""
    previous_list = list(previous)
    current_list = list(current)
    previous_keys = {_key(finding) for finding in previous_list}
    current_keys = {_key(finding) for finding in current_list}
    return FindingDiff(
        added=[finding for finding in current_list if _key(finding) not in previous_keys],
        resolved=[finding for finding in previous_list if _key(finding) not in current_keys],
    )
