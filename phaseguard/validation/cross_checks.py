"""Checks spanning two entity collections."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Mapping, Sequence

from phaseguard.schemas import FindingType, ValidationFinding
from phaseguard.validation.findings import make_finding
from phaseguard.validation.parsing import (
    ParseError,
    entity_id,
    is_blank,
    is_number,
    parse_number,
    parse_preferred_phases,
    parse_slots,
    slot_phases,
    split_list,
)


Records = Sequence[Mapping[str, Any]]


def _max_load(worker: Mapping[str, Any]) -> float:
    parsed = parse_number(worker.get("MaxLoadPerPhase"))
    if isinstance(parsed, ParseError):
        return 0
    return parsed.value


def _task_duration(task: Mapping[str, Any]) -> float:
    # Invalid durations are reported by check_task_durations; count them as one unit.
    duration = task.get("Duration")
    if is_number(duration) and duration >= 1:
        return duration
    return 1


def _worker_skills(worker: Mapping[str, Any]) -> set[str]:
    return set(split_list(worker.get("Skills"), lower=True))


def _required_skills(task: Mapping[str, Any]) -> list[str]:
    return list(dict.fromkeys(split_list(task.get("RequiredSkills"), lower=True)))


def check_task_references(clients: Records, tasks: Records) -> list[ValidationFinding]:
    known = {task_id for task_id in (entity_id(task, "tasks") for task in tasks) if task_id is not None}
    findings: list[ValidationFinding] = []
    for client in clients:
        requested = dict.fromkeys(split_list(client.get("RequestedTaskIDs")))
        missing = [task_id for task_id in requested if task_id not in known]
        if not missing:
            continue
        findings.append(
            make_finding(
                FindingType.MISSING_TASK_REFERENCES,
                f"Referenced tasks don't exist: {', '.join(missing)}",
                "clients",
                entity_id=entity_id(client, "clients"),
                field="RequestedTaskIDs",
                suggestion="Remove invalid task references or add the missing tasks",
            )
        )
    return findings


def check_overloaded_workers(workers: Records) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for worker in workers:
        slots = parse_slots(worker.get("AvailableSlots"))
        if isinstance(slots, ParseError):
            continue
        slot_count = len(slots.value)
        max_load = _max_load(worker)
        if slot_count >= max_load:
            continue
        findings.append(
            make_finding(
                FindingType.OVERLOADED_WORKER,
                f"Worker has {slot_count} available slots but max load is {max_load}",
                "workers",
                entity_id=entity_id(worker, "workers"),
                field="MaxLoadPerPhase",
                suggestion=f"Reduce MaxLoadPerPhase to {slot_count} or add more available slots",
            )
        )
    return findings


def check_skill_coverage(workers: Records, tasks: Records) -> list[ValidationFinding]:
    covered: set[str] = set()
    for worker in workers:
        covered |= _worker_skills(worker)

    findings: list[ValidationFinding] = []
    for task in tasks:
        missing = [skill for skill in _required_skills(task) if skill not in covered]
        if not missing:
            continue
        skills = ", ".join(missing)
        findings.append(
            make_finding(
                FindingType.MISSING_SKILL_COVERAGE,
                f"No workers have required skills: {skills}",
                "tasks",
                entity_id=entity_id(task, "tasks"),
                field="RequiredSkills",
                suggestion=f"Hire workers with skills: {skills} or modify task requirements",
            )
        )
    return findings


def check_max_concurrency(workers: Records, tasks: Records) -> list[ValidationFinding]:
    worker_skills = [_worker_skills(worker) for worker in workers]
    findings: list[ValidationFinding] = []
    for task in tasks:
        value = task.get("MaxConcurrent")
        if is_blank(value):
            continue
        parsed = parse_number(value)
        if isinstance(parsed, ParseError):
            continue
        required = set(_required_skills(task))
        qualified = sum(1 for skills in worker_skills if required <= skills)
        if parsed.value <= qualified:
            continue
        findings.append(
            make_finding(
                FindingType.MAX_CONCURRENCY_INFEASIBLE,
                f"Task requires {parsed.value} concurrent workers but only {qualified} are qualified",
                "tasks",
                entity_id=entity_id(task, "tasks"),
                field="MaxConcurrent",
                suggestion=f"Reduce MaxConcurrent to {qualified} or hire more qualified workers",
            )
        )
    return findings


def phase_capacity(workers: Records) -> dict[int, float]:
    capacity: dict[int, float] = defaultdict(int)
    for worker in workers:
        slots = parse_slots(worker.get("AvailableSlots"))
        if isinstance(slots, ParseError):
            continue
        max_load = _max_load(worker)
        for phase in slot_phases(slots.value):
            capacity[phase] += max_load
    return dict(capacity)


def phase_demand(tasks: Records) -> dict[int, float]:
    demand: dict[int, float] = defaultdict(int)
    for task in tasks:
        duration = _task_duration(task)
        for phase in parse_preferred_phases(task.get("PreferredPhases")):
            demand[phase] += duration
    return dict(demand)


def check_phase_saturation(workers: Records, tasks: Records) -> list[ValidationFinding]:
    capacity = phase_capacity(workers)
    demand = phase_demand(tasks)
    findings: list[ValidationFinding] = []
    for phase in sorted(demand):
        available = capacity.get(phase, 0)
        if demand[phase] <= available:
            continue
        findings.append(
            make_finding(
                FindingType.PHASE_SLOT_SATURATION,
                f"Phase {phase} is overloaded: {demand[phase]} task duration units vs {available} worker capacity",
                "tasks",
                field="PreferredPhases",
                suggestion=f"Redistribute tasks from phase {phase} or increase worker capacity",
            )
        )
    return findings
