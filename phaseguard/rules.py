"""Business rule authoring: typed construction, defaults and preconditions."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from phaseguard.schemas import (
    PARAMETER_MODELS,
    BusinessRule,
    CamelModel,
    CoRunParameters,
    CreateRuleRequest,
    EntitySet,
    LoadLimitParameters,
    PatternMatchParameters,
    PhaseWindowParameters,
    PrecedenceParameters,
    RuleBase,
    RuleCatalog,
    SlotRestrictionParameters,
    parse_rule,
)
from phaseguard.validation.parsing import entity_id, is_blank


def _new_rule_id() -> str:
    return f"rule_{uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _join(values: list[Any]) -> str:
    return ", ".join(str(value) for value in values)


def _check_corun(params: CoRunParameters) -> None:
    if len(dict.fromkeys(params.task_ids)) < 2:
        raise ValueError("CORUN_TASKS_REQUIRED")


def _check_load_limit(params: LoadLimitParameters) -> None:
    if not params.worker_group.strip():
        raise ValueError("WORKER_GROUP_REQUIRED")


def _check_phase_window(params: PhaseWindowParameters) -> None:
    if not params.task_id.strip() or not params.allowed_phases:
        raise ValueError("PHASE_WINDOW_INCOMPLETE")


def _check_slot_restriction(params: SlotRestrictionParameters) -> None:
    if not params.client_group.strip() or not params.worker_group.strip():
        raise ValueError("SLOT_GROUPS_REQUIRED")


def _check_pattern_match(params: PatternMatchParameters) -> None:
    if not params.regex or not params.rule_template.strip():
        raise ValueError("INVALID_PATTERN")
    try:
        re.compile(params.regex)
    except re.error as exc:
        raise ValueError("INVALID_PATTERN") from exc


def _check_precedence(params: PrecedenceParameters) -> None:
    if not params.global_rule.strip() or not params.specific_rule.strip():
        raise ValueError("PRECEDENCE_INCOMPLETE")


_PRECONDITIONS: dict[str, Callable[[Any], None]] = {
    "coRun": _check_corun,
    "loadLimit": _check_load_limit,
    "phaseWindow": _check_phase_window,
    "slotRestriction": _check_slot_restriction,
    "patternMatch": _check_pattern_match,
    "precedence": _check_precedence,
}


def default_name(rule_type: str, params: Any) -> str:
    if rule_type == "coRun":
        return f"Co-run: {_join(params.task_ids)}"
    if rule_type == "loadLimit":
        return f"Load limit: {params.worker_group}"
    if rule_type == "phaseWindow":
        return f"Phase window: {params.task_id}"
    if rule_type == "slotRestriction":
        return f"Slot restriction: {params.client_group}"
    if rule_type == "patternMatch":
        return f"Pattern: {params.regex}"
    return f"Precedence: {params.specific_rule} over {params.global_rule}"


def default_description(rule_type: str, params: Any) -> str:
    if rule_type == "coRun":
        return f"Tasks {_join(params.task_ids)} must run together"
    if rule_type == "loadLimit":
        return f"{params.worker_group} max {params.max_slots_per_phase} tasks per phase"
    if rule_type == "phaseWindow":
        return f"Task {params.task_id} restricted to phases {_join(params.allowed_phases)}"
    if rule_type == "slotRestriction":
        return f"{params.client_group} requires {params.min_common_slots} common slots with {params.worker_group}"
    if rule_type == "patternMatch":
        return f"Tasks matching /{params.regex}/ get {params.rule_template} treatment"
    return f"{params.specific_rule} overrides {params.global_rule} with priority {params.priority}"


def build_rule(
    request: CreateRuleRequest,
    *,
    rule_id: str | None = None,
    created_at: datetime | None = None,
) -> BusinessRule:
    """Create an active rule from an authoring request.

    Parameters are validated against the record for ``request.type``
    (``pydantic.ValidationError`` on a shape mismatch); incomplete but well-shaped
    parameters raise ``ValueError`` carrying an error code.
    """
    params: CamelModel = PARAMETER_MODELS[request.type].model_validate(request.parameters)
    _PRECONDITIONS[request.type](params)
    return parse_rule(
        {
            "id": rule_id or _new_rule_id(),
            "type": request.type,
            "name": request.name or default_name(request.type, params),
            "description": request.description or default_description(request.type, params),
            "parameters": params.model_dump(by_alias=True),
            "isActive": True,
            "createdAt": created_at or _now(),
        }
    )


def toggle_rule(rule: RuleBase) -> RuleBase:
    return rule.model_copy(update={"is_active": not rule.is_active})


def _unique(values: list[Any]) -> list[str]:
    return list(dict.fromkeys(str(value) for value in values if not is_blank(value)))


def rule_catalog(entities: EntitySet | Mapping[str, Any]) -> RuleCatalog:
    """Task ids and group tags a rule may reference, in first-seen order."""
    if isinstance(entities, EntitySet):
        clients, workers, tasks = entities.clients, entities.workers, entities.tasks
    else:
        clients, workers, tasks = entities.get("clients"), entities.get("workers"), entities.get("tasks")
    return RuleCatalog(
        task_ids=_unique([entity_id(task, "tasks") for task in tasks or []]),
        worker_groups=_unique([worker.get("WorkerGroup") for worker in workers or []]),
        client_groups=_unique([client.get("GroupTag") for client in clients or []]),
    )
