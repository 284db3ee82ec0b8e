from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from phaseguard.schemas import EntitySet, RuleBase, ValidationFinding, parse_rule
from phaseguard.validation import cross_checks, entity_checks, rule_checks
from phaseguard.validation.parsing import ENTITY_TYPES


logger = logging.getLogger(__name__)


def _collections(entities: Mapping[str, Any] | EntitySet | None) -> dict[str, list[Mapping[str, Any]] | None]:
    if entities is None:
        return {entity_type: None for entity_type in ENTITY_TYPES}
    if isinstance(entities, EntitySet):
        return {entity_type: getattr(entities, entity_type) for entity_type in ENTITY_TYPES}
    return {entity_type: entities.get(entity_type) for entity_type in ENTITY_TYPES}


def validate(
    entities: Mapping[str, Any] | EntitySet | None,
    rules: Iterable[RuleBase | Mapping[str, Any]] | None = None,
) -> list[ValidationFinding]:
    """Run every check over the entity collections and active rules.

    Collections may be missing (``None``) or empty. Per-entity checks run for
    clients, workers and tasks in that order, followed by the cross-entity checks
    and the rule-consistency checks. Each call builds its own finding list and
    never touches its arguments; malformed cells come back as findings.

    Rules may be given as models or plain mappings. A mapping whose parameters do
    not match its ``type`` raises ``pydantic.ValidationError``.
    """
    collections = _collections(entities)
    clients = collections["clients"]
    workers = collections["workers"]
    tasks = collections["tasks"]
    active_rules = [parse_rule(rule) for rule in rules or []]

    findings: list[ValidationFinding] = []

    if clients is not None:
        findings += entity_checks.check_required_columns(clients, "clients")
        findings += entity_checks.check_unique_ids(clients, "clients")
        findings += entity_checks.check_priority_levels(clients)
        findings += entity_checks.check_attributes_json(clients)

    if workers is not None:
        findings += entity_checks.check_required_columns(workers, "workers")
        findings += entity_checks.check_unique_ids(workers, "workers")
        findings += entity_checks.check_available_slots(workers)

    if tasks is not None:
        findings += entity_checks.check_required_columns(tasks, "tasks")
        findings += entity_checks.check_unique_ids(tasks, "tasks")
        findings += entity_checks.check_task_durations(tasks)

    logger.debug("per-entity checks produced %d findings", len(findings))

    # Cross-entity checks run when the collection they report on is present; the
    # counterpart collection counts as empty when it was not supplied.
    if clients is not None:
        findings += cross_checks.check_task_references(clients, tasks or [])
    if workers is not None:
        findings += cross_checks.check_overloaded_workers(workers)
    if tasks is not None:
        findings += cross_checks.check_skill_coverage(workers or [], tasks)
        findings += cross_checks.check_max_concurrency(workers or [], tasks)
        findings += cross_checks.check_phase_saturation(workers or [], tasks)

    findings += rule_checks.check_circular_corun_groups(active_rules)
    findings += rule_checks.check_rule_conflicts(active_rules, tasks or [])

    logger.debug(
        "validated %s with %d rules: %d findings",
        {name: len(records) for name, records in collections.items() if records is not None},
        len(active_rules),
        len(findings),
    )
    return findings
