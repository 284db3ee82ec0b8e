from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, JSON, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class EntityKind(str, Enum):
    CLIENTS = "clients"
    WORKERS = "workers"
    TASKS = "tasks"


UUID_TEXT = Uuid(as_uuid=False)
JSON_DOC = JSON().with_variant(JSONB, "postgresql")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class WorkspaceModel(Base):
    __tablename__ = "workspace"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Collections that were uploaded, even when empty; absent ones are skipped by validation.
    loaded_collections: Mapped[list[str]] = mapped_column(JSON_DOC, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class EntityRecordModel(Base):
    __tablename__ = "entity_record"
    __table_args__ = (UniqueConstraint("workspace_id", "entity_type", "position"),)

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(
        UUID_TEXT, ForeignKey("workspace.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[EntityKind] = mapped_column(
        SAEnum(EntityKind, values_callable=_enum_values), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class BusinessRuleModel(Base):
    __tablename__ = "business_rule"

    # Rule ids are unique within a workspace only.
    workspace_id: Mapped[str] = mapped_column(
        UUID_TEXT, ForeignKey("workspace.id", ondelete="CASCADE"), primary_key=True
    )
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    rule_type: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    parameters: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class ValidationRunModel(Base):
    __tablename__ = "validation_run"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(
        UUID_TEXT, ForeignKey("workspace.id", ondelete="CASCADE"), nullable=False
    )
    findings: Mapped[list] = mapped_column(JSON_DOC, nullable=False, default=list)
    summary: Mapped[dict] = mapped_column(JSON_DOC, nullable=False, default=dict)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
