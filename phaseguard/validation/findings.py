from __future__ import annotations

from phaseguard.schemas import FindingType, Severity, ValidationFinding


def make_finding(
    finding_type: FindingType,
    message: str,
    entity_type: str,
    *,
    severity: Severity = Severity.ERROR,
    entity_id: str | None = None,
    field: str | None = None,
    suggestion: str | None = None,
) -> ValidationFinding:
    return ValidationFinding(
        type=finding_type.value,
        severity=severity,
        message=message,
        entity_type=entity_type,
        entity_id=entity_id,
        field=field,
        suggestion=suggestion,
    )
