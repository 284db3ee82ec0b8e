"""Consistency checks over the active business rules."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from phaseguard.schemas import CoRunRule, FindingType, PhaseWindowRule, RuleBase, ValidationFinding
from phaseguard.validation.findings import make_finding
from phaseguard.validation.parsing import ALL_PHASES, entity_id, is_blank, parse_preferred_phases


Records = Sequence[Mapping[str, Any]]


def _active(rules: Sequence[RuleBase], rule_cls: type) -> list:
    return [rule for rule in rules if isinstance(rule, rule_cls) and rule.is_active]


def corun_graph(rules: Sequence[RuleBase]) -> dict[str, dict[str, None]]:
    """Adjacency map linking every pair of tasks that share a co-run rule.

    Nodes and neighbours keep first-seen order so traversal is reproducible.
    """
    graph: dict[str, dict[str, None]] = {}
    for rule in _active(rules, CoRunRule):
        task_ids = rule.parameters.task_ids
        for task_id in task_ids:
            neighbours = graph.setdefault(task_id, {})
            for other in task_ids:
                if other != task_id:
                    neighbours[other] = None
    return graph


def find_corun_cycles(graph: dict[str, dict[str, None]]) -> list[list[str]]:
    visited: set[str] = set()
    on_stack: set[str] = set()

    def _walk(node: str, path: list[str]) -> list[str] | None:
        if node in on_stack:
            return path[path.index(node):] + [node]
        if node in visited:
            return None
        visited.add(node)
        on_stack.add(node)
        for neighbour in graph.get(node, {}):
            cycle = _walk(neighbour, path + [node])
            if cycle is not None:
                return cycle
        on_stack.discard(node)
        return None

    cycles: list[list[str]] = []
    for node in graph:
        if node in visited:
            continue
        # A traversal stops at its first cycle; nothing from it may stay on the stack.
        on_stack.clear()
        cycle = _walk(node, [])
        if cycle is not None:
            cycles.append(cycle)
    return cycles


def check_circular_corun_groups(rules: Sequence[RuleBase]) -> list[ValidationFinding]:
    return [
        make_finding(
            FindingType.CIRCULAR_CORUN_GROUP,
            f"Circular co-run dependency detected: {' → '.join(cycle)}",
            "tasks",
            suggestion="Remove conflicting co-run rules to break the cycle",
        )
        for cycle in find_corun_cycles(corun_graph(rules))
    ]


def allowed_phases(
    task_id: str,
    windows: Sequence[PhaseWindowRule],
    tasks_by_id: Mapping[str, Mapping[str, Any]],
) -> list[int]:
    for window in windows:
        if window.parameters.task_id == task_id:
            return list(window.parameters.allowed_phases)
    task = tasks_by_id.get(task_id)
    if task is not None and not is_blank(task.get("PreferredPhases")):
        return parse_preferred_phases(task.get("PreferredPhases"))
    return list(ALL_PHASES)


def check_rule_conflicts(rules: Sequence[RuleBase], tasks: Records) -> list[ValidationFinding]:
    co_runs: list[CoRunRule] = _active(rules, CoRunRule)
    windows: list[PhaseWindowRule] = _active(rules, PhaseWindowRule)
    if not co_runs or not windows:
        return []

    tasks_by_id: dict[str, Mapping[str, Any]] = {}
    for task in tasks:
        task_id = entity_id(task, "tasks")
        if task_id is not None:
            tasks_by_id.setdefault(task_id, task)

    findings: list[ValidationFinding] = []
    for rule in co_runs:
        task_ids = rule.parameters.task_ids
        constraints = {task_id: allowed_phases(task_id, windows, tasks_by_id) for task_id in task_ids}
        if len(constraints) < 2:
            continue
        phase_sets = [set(phases) for phases in constraints.values()]
        if set.intersection(*phase_sets):
            continue
        findings.append(
            make_finding(
                FindingType.CONFLICTING_RULES,
                f"Co-run rule for tasks [{', '.join(task_ids)}] conflicts with phase-window constraints"
                " - no common phases available",
                "tasks",
                suggestion="Modify phase-window rules or remove co-run constraint for conflicting tasks",
            )
        )
    return findings
