"""Checks confined to a single entity collection."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from phaseguard.schemas import FindingType, Severity, ValidationFinding
from phaseguard.validation.findings import make_finding
from phaseguard.validation.parsing import (
    REQUIRED_COLUMNS,
    Ok,
    ParseError,
    entity_id,
    is_blank,
    is_number,
    is_phase_number,
    parse_json,
    parse_number,
)


Records = Sequence[Mapping[str, Any]]

PRIORITY_MIN = 1
PRIORITY_MAX = 5
MIN_DURATION = 1


def check_required_columns(records: Records, entity_type: str) -> list[ValidationFinding]:
    # The first record stands in for the schema of the whole collection.
    if not records:
        return []
    present = set(records[0].keys())
    missing = [column for column in REQUIRED_COLUMNS[entity_type] if column not in present]
    if not missing:
        return []
    return [
        make_finding(
            FindingType.MISSING_COLUMNS,
            f"Missing required columns: {', '.join(missing)}",
            entity_type,
            suggestion=f"Add the missing columns to your {entity_type} data",
        )
    ]


def check_unique_ids(records: Records, entity_type: str) -> list[ValidationFinding]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in records:
        value = entity_id(record, entity_type)
        if value is None:
            continue
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return [
        make_finding(
            FindingType.DUPLICATE_ID,
            f"Duplicate ID found: {value}",
            entity_type,
            entity_id=value,
            suggestion="Ensure all IDs are unique",
        )
        for value in duplicates
    ]


def check_priority_levels(clients: Records) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for client in clients:
        value = client.get("PriorityLevel")
        if is_blank(value):
            continue
        parsed = parse_number(value)
        if isinstance(parsed, Ok) and PRIORITY_MIN <= parsed.value <= PRIORITY_MAX:
            continue
        findings.append(
            make_finding(
                FindingType.INVALID_PRIORITY,
                f"Priority level must be between {PRIORITY_MIN}-{PRIORITY_MAX}, found: {value}",
                "clients",
                entity_id=entity_id(client, "clients"),
                field="PriorityLevel",
                suggestion=f"Set priority level to a value between {PRIORITY_MIN} and {PRIORITY_MAX}",
            )
        )
    return findings


def check_attributes_json(clients: Records) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for client in clients:
        attrs = client.get("AttributesJSON")
        if not isinstance(attrs, str) or is_blank(attrs):
            continue
        client_id = entity_id(client, "clients")
        text = attrs.strip()
        if text.startswith("{") or text.startswith("["):
            if isinstance(parse_json(text), ParseError):
                findings.append(
                    make_finding(
                        FindingType.INVALID_JSON,
                        "Invalid JSON format in AttributesJSON",
                        "clients",
                        entity_id=client_id,
                        field="AttributesJSON",
                        suggestion="Fix JSON syntax or convert to valid JSON format",
                    )
                )
        else:
            findings.append(
                make_finding(
                    FindingType.NON_JSON_ATTRIBUTES,
                    "AttributesJSON contains text instead of JSON",
                    "clients",
                    severity=Severity.WARNING,
                    entity_id=client_id,
                    field="AttributesJSON",
                    suggestion="Consider converting to JSON format for better structure",
                )
            )
    return findings


def check_available_slots(workers: Records) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for worker in workers:
        slots = worker.get("AvailableSlots")
        if is_blank(slots):
            continue
        worker_id = entity_id(worker, "workers")
        if isinstance(slots, (list, tuple)):
            parsed: Ok[Any] | ParseError = Ok(list(slots))
        else:
            parsed = parse_json(str(slots))

        if isinstance(parsed, ParseError):
            findings.append(
                make_finding(
                    FindingType.UNPARSEABLE_SLOTS,
                    "AvailableSlots contains invalid JSON",
                    "workers",
                    entity_id=worker_id,
                    field="AvailableSlots",
                    suggestion="Use valid JSON array format like [1,2,3]",
                )
            )
        elif not isinstance(parsed.value, list):
            findings.append(
                make_finding(
                    FindingType.INVALID_SLOTS_FORMAT,
                    "AvailableSlots must be an array",
                    "workers",
                    entity_id=worker_id,
                    field="AvailableSlots",
                    suggestion="Use array format like [1,2,3]",
                )
            )
        elif not all(is_phase_number(slot) for slot in parsed.value):
            findings.append(
                make_finding(
                    FindingType.INVALID_SLOT_VALUES,
                    "AvailableSlots must contain positive numbers",
                    "workers",
                    entity_id=worker_id,
                    field="AvailableSlots",
                    suggestion="Use positive phase numbers like [1,2,3]",
                )
            )
    return findings


def check_task_durations(tasks: Records) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for task in tasks:
        value = task.get("Duration")
        if is_blank(value):
            continue
        # Numeric text is reported, not coerced.
        if is_number(value) and value >= MIN_DURATION:
            continue
        findings.append(
            make_finding(
                FindingType.INVALID_DURATION,
                f"Task duration must be >= {MIN_DURATION}, found: {value}",
                "tasks",
                entity_id=entity_id(task, "tasks"),
                field="Duration",
                suggestion="Set duration to a positive number",
            )
        )
    return findings
