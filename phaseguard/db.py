from __future__ import annotations

import os

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from phaseguard.models import Base


DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./phaseguard.db"


def _database_url() -> str:
    return os.getenv("PHASEGUARD_DATABASE_URL", DEFAULT_DATABASE_URL)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


DATABASE_URL = _database_url()
ENGINE = create_engine(DATABASE_URL, future=True, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False, expire_on_commit=False)


REQUIRED_SCHEMA: dict[str, set[str]] = {
    "workspace": {"id", "name", "loaded_collections", "created_at", "updated_at"},
    "entity_record": {"id", "workspace_id", "entity_type", "position", "payload", "updated_at"},
    "business_rule": {
        "id",
        "workspace_id",
        "rule_type",
        "name",
        "description",
        "parameters",
        "is_active",
        "sequence",
        "created_at",
    },
    "validation_run": {"id", "workspace_id", "findings", "summary", "sequence", "created_at"},
}


def verify_schema(engine: Engine, required: dict[str, set[str]] | None = None) -> None:
    inspector = inspect(engine)
    required_schema = required or REQUIRED_SCHEMA
    existing_tables = set(inspector.get_table_names())
    missing_columns: list[str] = []
    for table_name, required_columns in required_schema.items():
        if table_name not in existing_tables:
            missing_columns.extend(f"{table_name}.{column}" for column in sorted(required_columns))
            continue
        existing_columns = {column["name"] for column in inspector.get_columns(table_name)}
        for required_column in sorted(required_columns):
            if required_column not in existing_columns:
                missing_columns.append(f"{table_name}.{required_column}")
    if missing_columns:
        detail = ", ".join(missing_columns)
        raise RuntimeError(f"Schema verification failed; missing columns: {detail}")


def init_db() -> None:
    Base.metadata.create_all(bind=ENGINE)
    verify_schema(ENGINE)


def reset_db() -> None:
    Base.metadata.drop_all(bind=ENGINE)
    Base.metadata.create_all(bind=ENGINE)
