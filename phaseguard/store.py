from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select

from phaseguard.db import SessionLocal, init_db, reset_db
from phaseguard.models import (
    BusinessRuleModel,
    EntityKind,
    EntityRecordModel,
    ValidationRunModel,
    WorkspaceModel,
)
from phaseguard.schemas import BusinessRule, RuleBase, parse_rule
from phaseguard.validation import summarize, validate
from phaseguard.validation.parsing import ENTITY_TYPES


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def _entity_kind(entity_type: str) -> EntityKind:
    try:
        return EntityKind(entity_type)
    except ValueError as exc:
        raise ValueError("INVALID_ENTITY_TYPE") from exc


def _rule_from_model(model: BusinessRuleModel) -> BusinessRule:
    created_at = model.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return parse_rule(
        {
            "id": model.id,
            "type": model.rule_type,
            "name": model.name,
            "description": model.description,
            "parameters": model.parameters,
            "isActive": model.is_active,
            "createdAt": created_at,
        }
    )


def _rule_to_dict(model: BusinessRuleModel) -> dict[str, Any]:
    return _rule_from_model(model).model_dump(mode="json", by_alias=True)


def _run_to_dict(model: ValidationRunModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "workspace_id": model.workspace_id,
        "findings": model.findings or [],
        "summary": model.summary or {},
        "created_at": _iso(model.created_at),
    }


class SqlStore:
    def __init__(self) -> None:
        init_db()

    def reset(self) -> None:
        reset_db()

    def _require_workspace(self, session, workspace_id: str) -> WorkspaceModel:
        workspace = session.get(WorkspaceModel, workspace_id)
        if workspace is None:
            raise KeyError("WORKSPACE_NOT_FOUND")
        return workspace

    def _entity_counts(self, session, workspace: WorkspaceModel) -> dict[str, int]:
        rows = session.execute(
            select(EntityRecordModel.entity_type, func.count(EntityRecordModel.id))
            .where(EntityRecordModel.workspace_id == workspace.id)
            .group_by(EntityRecordModel.entity_type)
        ).all()
        counts = {entity_type: 0 for entity_type in workspace.loaded_collections or []}
        for entity_type, count in rows:
            counts[entity_type.value] = count
        return {entity_type: counts[entity_type] for entity_type in ENTITY_TYPES if entity_type in counts}

    def _workspace_to_dict(self, session, workspace: WorkspaceModel) -> dict[str, Any]:
        return {
            "id": workspace.id,
            "name": workspace.name,
            "entity_counts": self._entity_counts(session, workspace),
            "created_at": _iso(workspace.created_at),
            "updated_at": _iso(workspace.updated_at),
        }

    def workspace_exists(self, workspace_id: str) -> bool:
        with SessionLocal() as session:
            return (
                session.execute(select(WorkspaceModel.id).where(WorkspaceModel.id == workspace_id)).first()
                is not None
            )

    def create_workspace(self, name: str) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            workspace = WorkspaceModel(name=name, loaded_collections=[])
            session.add(workspace)
            session.flush()
            logger.info("created workspace %s", workspace.id)
            return self._workspace_to_dict(session, workspace)

    def get_workspace(self, workspace_id: str) -> dict[str, Any] | None:
        with SessionLocal() as session:
            workspace = session.get(WorkspaceModel, workspace_id)
            if workspace is None:
                return None
            return self._workspace_to_dict(session, workspace)

    def list_workspaces(self) -> list[dict[str, Any]]:
        with SessionLocal() as session:
            workspaces = session.execute(
                select(WorkspaceModel).order_by(WorkspaceModel.created_at, WorkspaceModel.id)
            ).scalars().all()
            return [self._workspace_to_dict(session, workspace) for workspace in workspaces]

    def replace_entities(
        self,
        workspace_id: str,
        entity_type: str,
        records: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        kind = _entity_kind(entity_type)
        with SessionLocal.begin() as session:
            workspace = self._require_workspace(session, workspace_id)
            session.execute(
                delete(EntityRecordModel).where(
                    EntityRecordModel.workspace_id == workspace_id,
                    EntityRecordModel.entity_type == kind,
                )
            )
            for position, record in enumerate(records):
                session.add(
                    EntityRecordModel(
                        workspace_id=workspace_id,
                        entity_type=kind,
                        position=position,
                        payload=dict(record),
                    )
                )
            loaded = list(workspace.loaded_collections or [])
            if kind.value not in loaded:
                loaded.append(kind.value)
            workspace.loaded_collections = loaded
            workspace.updated_at = _now()
            session.flush()
            logger.info("workspace %s: loaded %d %s", workspace_id, len(records), kind.value)
            return [dict(record) for record in records]

    def update_record(
        self,
        workspace_id: str,
        entity_type: str,
        position: int,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        kind = _entity_kind(entity_type)
        with SessionLocal.begin() as session:
            workspace = self._require_workspace(session, workspace_id)
            record = session.execute(
                select(EntityRecordModel).where(
                    EntityRecordModel.workspace_id == workspace_id,
                    EntityRecordModel.entity_type == kind,
                    EntityRecordModel.position == position,
                )
            ).scalar_one_or_none()
            if record is None:
                raise KeyError("RECORD_NOT_FOUND")
            # Reassign so the JSON column registers the change.
            record.payload = {**record.payload, **changes}
            record.updated_at = _now()
            workspace.updated_at = _now()
            session.flush()
            return dict(record.payload)

    def get_entities(self, workspace_id: str) -> dict[str, list[dict[str, Any]]]:
        with SessionLocal() as session:
            workspace = self._require_workspace(session, workspace_id)
            entities: dict[str, list[dict[str, Any]]] = {
                entity_type: [] for entity_type in ENTITY_TYPES if entity_type in (workspace.loaded_collections or [])
            }
            records = session.execute(
                select(EntityRecordModel)
                .where(EntityRecordModel.workspace_id == workspace_id)
                .order_by(EntityRecordModel.entity_type, EntityRecordModel.position)
            ).scalars().all()
            for record in records:
                entities.setdefault(record.entity_type.value, []).append(dict(record.payload))
            return entities

    def _next_sequence(self, session, model, workspace_id: str) -> int:
        current = session.execute(
            select(func.max(model.sequence)).where(model.workspace_id == workspace_id)
        ).scalar_one()
        return int(current or 0) + 1

    def add_rule(self, workspace_id: str, rule: RuleBase) -> dict[str, Any]:
        payload = rule.model_dump(mode="json", by_alias=True)
        with SessionLocal.begin() as session:
            self._require_workspace(session, workspace_id)
            if session.get(BusinessRuleModel, (workspace_id, rule.id)) is not None:
                raise ValueError("RULE_EXISTS")
            model = BusinessRuleModel(
                id=rule.id,
                workspace_id=workspace_id,
                rule_type=rule.type,
                name=rule.name,
                description=rule.description,
                parameters=payload["parameters"],
                is_active=rule.is_active,
                sequence=self._next_sequence(session, BusinessRuleModel, workspace_id),
                created_at=rule.created_at or _now(),
            )
            session.add(model)
            session.flush()
            logger.info("workspace %s: added %s rule %s", workspace_id, rule.type, rule.id)
            return _rule_to_dict(model)

    def get_rules(self, workspace_id: str) -> list[BusinessRule]:
        with SessionLocal() as session:
            self._require_workspace(session, workspace_id)
            models = session.execute(
                select(BusinessRuleModel)
                .where(BusinessRuleModel.workspace_id == workspace_id)
                .order_by(BusinessRuleModel.sequence)
            ).scalars().all()
            return [_rule_from_model(model) for model in models]

    def list_rules(self, workspace_id: str) -> list[dict[str, Any]]:
        return [rule.model_dump(mode="json", by_alias=True) for rule in self.get_rules(workspace_id)]

    def _require_rule(self, session, workspace_id: str, rule_id: str) -> BusinessRuleModel:
        self._require_workspace(session, workspace_id)
        model = session.get(BusinessRuleModel, (workspace_id, rule_id))
        if model is None:
            raise KeyError("RULE_NOT_FOUND")
        return model

    def set_rule_active(self, workspace_id: str, rule_id: str, is_active: bool) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            model = self._require_rule(session, workspace_id, rule_id)
            model.is_active = is_active
            session.flush()
            logger.info("workspace %s: rule %s active=%s", workspace_id, rule_id, is_active)
            return _rule_to_dict(model)

    def toggle_rule(self, workspace_id: str, rule_id: str) -> dict[str, Any]:
        with SessionLocal.begin() as session:
            model = self._require_rule(session, workspace_id, rule_id)
            model.is_active = not model.is_active
            session.flush()
            logger.info("workspace %s: rule %s active=%s", workspace_id, rule_id, model.is_active)
            return _rule_to_dict(model)

    def delete_rule(self, workspace_id: str, rule_id: str) -> None:
        with SessionLocal.begin() as session:
            model = self._require_rule(session, workspace_id, rule_id)
            session.delete(model)
            logger.info("workspace %s: deleted rule %s", workspace_id, rule_id)

    def run_validation(self, workspace_id: str) -> dict[str, Any]:
        entities = self.get_entities(workspace_id)
        rules = self.get_rules(workspace_id)
        findings = validate(entities, rules)
        summary = summarize(findings)
        with SessionLocal.begin() as session:
            self._require_workspace(session, workspace_id)
            run = ValidationRunModel(
                workspace_id=workspace_id,
                findings=[finding.model_dump(mode="json", by_alias=True) for finding in findings],
                summary=summary.model_dump(mode="json"),
                sequence=self._next_sequence(session, ValidationRunModel, workspace_id),
            )
            session.add(run)
            session.flush()
            logger.info(
                "workspace %s: validation run %s recorded %d findings",
                workspace_id,
                run.id,
                summary.total,
            )
            return _run_to_dict(run)

    def list_validation_runs(self, workspace_id: str) -> list[dict[str, Any]]:
        with SessionLocal() as session:
            self._require_workspace(session, workspace_id)
            runs = session.execute(
                select(ValidationRunModel)
                .where(ValidationRunModel.workspace_id == workspace_id)
                .order_by(ValidationRunModel.sequence.desc())
            ).scalars().all()
            return [_run_to_dict(run) for run in runs]


STORE = SqlStore()
