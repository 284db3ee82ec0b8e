from __future__ import annotations

from typing import Any

from phaseguard.rules import build_rule
from phaseguard.schemas import CreateRuleRequest, EntitySet, parse_rule
from phaseguard.store import STORE, SqlStore
from phaseguard.validation import summarize, validate


def _store(s: SqlStore | None) -> SqlStore:
    return s or STORE


def validate_dataset(
    *,
    clients: list[dict[str, Any]] | None = None,
    workers: list[dict[str, Any]] | None = None,
    tasks: list[dict[str, Any]] | None = None,
    rules: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    findings = validate(
        EntitySet(clients=clients, workers=workers, tasks=tasks),
        [parse_rule(rule) for rule in rules or []],
    )
    return {
        "findings": [finding.model_dump(mode="json", by_alias=True) for finding in findings],
        "summary": summarize(findings).model_dump(mode="json"),
    }


def create_workspace(name: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).create_workspace(name=name)


def upload_entities(
    *,
    workspace_id: str,
    entity_type: str,
    records: list[dict[str, Any]],
    store: SqlStore | None = None,
) -> dict[str, Any]:
    selected = _store(store)
    selected.replace_entities(workspace_id, entity_type, records)
    return selected.get_workspace(workspace_id)


def create_rule(
    *,
    workspace_id: str,
    type: str,
    parameters: dict[str, Any],
    name: str | None = None,
    description: str | None = None,
    store: SqlStore | None = None,
) -> dict[str, Any]:
    selected = _store(store)
    if not selected.workspace_exists(workspace_id):
        raise KeyError("WORKSPACE_NOT_FOUND")
    request = CreateRuleRequest(type=type, name=name, description=description, parameters=parameters)
    return selected.add_rule(workspace_id, build_rule(request))


def list_rules(*, workspace_id: str, store: SqlStore | None = None) -> dict[str, Any]:
    return {"items": _store(store).list_rules(workspace_id)}


def toggle_rule(*, workspace_id: str, rule_id: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).toggle_rule(workspace_id, rule_id)


def run_validation(*, workspace_id: str, store: SqlStore | None = None) -> dict[str, Any]:
    return _store(store).run_validation(workspace_id)
