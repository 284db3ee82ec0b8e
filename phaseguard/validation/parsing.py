from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Generic, Mapping, TypeVar, Union


T = TypeVar("T")

ENTITY_TYPES: tuple[str, ...] = ("clients", "workers", "tasks")

ID_FIELDS: dict[str, str] = {
    "clients": "ClientID",
    "workers": "WorkerID",
    "tasks": "TaskID",
}

REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "clients": ("ClientID", "ClientName", "PriorityLevel", "RequestedTaskIDs"),
    "workers": ("WorkerID", "WorkerName", "Skills", "AvailableSlots", "MaxLoadPerPhase"),
    "tasks": ("TaskID", "TaskName", "Duration", "RequiredSkills"),
}

DEFAULT_PHASE = 1
ALL_PHASES: tuple[int, ...] = (1, 2, 3, 4, 5)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParseError:
    reason: str


ParseResult = Union[Ok[T], ParseError]


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def entity_id(record: Mapping[str, Any], entity_type: str) -> str | None:
    value = record.get(ID_FIELDS[entity_type])
    if is_blank(value):
        return None
    return str(value)


def parse_number(value: Any) -> ParseResult[float]:
    """Coerce a loosely typed cell into a finite number.

    Ints and floats pass through; strings are accepted when they hold a decimal
    number, since spreadsheet ingestion hands numbers over as text. Booleans are
    rejected.
    """
    if isinstance(value, bool):
        return ParseError("boolean is not a number")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ParseError("number is not finite")
        return Ok(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            return ParseError(f"not a number: {value!r}")
        if not math.isfinite(number):
            return ParseError("number is not finite")
        return Ok(int(number) if number.is_integer() else number)
    return ParseError(f"unsupported type {type(value).__name__}")


def is_number(value: Any) -> bool:
    """True for a finite int or float already typed as a number; text and booleans are not."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_json(text: str) -> ParseResult[Any]:
    try:
        return Ok(json.loads(text))
    except (TypeError, ValueError) as exc:
        return ParseError(str(exc))


def split_list(value: Any, *, lower: bool = False) -> list[str]:
    """Split a comma list cell into trimmed, non-empty tokens in source order."""
    if is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        raw = [str(item) for item in value if item is not None]
    else:
        raw = str(value).split(",")
    tokens = [token.strip() for token in raw]
    if lower:
        tokens = [token.lower() for token in tokens]
    return [token for token in tokens if token]


def parse_slots(value: Any) -> ParseResult[list[Any]]:
    """Parse a worker's AvailableSlots cell into a JSON array.

    A missing cell is an empty array. Elements are returned unchecked; callers that
    need phase numbers filter them with ``slot_phases``.
    """
    if is_blank(value):
        return Ok([])
    if isinstance(value, (list, tuple)):
        return Ok(list(value))
    parsed = parse_json(str(value))
    if isinstance(parsed, ParseError):
        return parsed
    if not isinstance(parsed.value, list):
        return ParseError("not an array")
    return Ok(parsed.value)


def _as_phase(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    return int(value)


def is_phase_number(value: Any) -> bool:
    phase = _as_phase(value)
    return phase is not None and phase >= 1


def slot_phases(slots: list[Any]) -> list[int]:
    return [int(item) for item in slots if is_phase_number(item)]


def _leading_int(text: str) -> int | None:
    match = _LEADING_INT.match(text)
    if match is None:
        return None
    return int(match.group(1))


def parse_preferred_phases(value: Any) -> list[int]:
    """Expand a PreferredPhases cell into phase numbers.

    ``"[1,3]"`` is read as a JSON array (silently empty when malformed), ``"2-4"`` as
    an inclusive range, and anything else, including an empty result, falls back to
    phase 1. Phase saturation and co-run conflict checks both go through here.
    """
    phases: list[int] = []
    if isinstance(value, (list, tuple)):
        phases = [phase for phase in (_as_phase(item) for item in value) if phase is not None]
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        phase = _as_phase(value)
        phases = [phase] if phase is not None else []
    elif value is not None:
        text = str(value)
        if "[" in text and "]" in text:
            parsed = parse_json(text)
            if isinstance(parsed, Ok) and isinstance(parsed.value, list):
                phases = [phase for phase in (_as_phase(item) for item in parsed.value) if phase is not None]
        elif "-" in text:
            parts = text.split("-")
            start = _leading_int(parts[0])
            end = _leading_int(parts[1])
            if start is not None and end is not None:
                phases = list(range(start, end + 1))
    if not phases:
        phases = [DEFAULT_PHASE]
    return phases
