from __future__ import annotations

import json
import sys
import inspect
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from phaseguard import mcp_tools
from phaseguard.logger import configure_logging


MCP_TOOL_NAMES = [
    "validate_dataset",
    "create_workspace",
    "upload_entities",
    "create_rule",
    "list_rules",
    "toggle_rule",
    "run_validation",
]


_DOMAIN_ERRORS: dict[str, tuple[str, bool]] = {
    "WORKSPACE_NOT_FOUND": ("Workspace not found", False),
    "RULE_NOT_FOUND": ("Rule not found", False),
    "RECORD_NOT_FOUND": ("Record not found", False),
    "RULE_EXISTS": ("A rule with this id already exists", False),
    "INVALID_ENTITY_TYPE": ("Entity type must be clients, workers or tasks", False),
    "CORUN_TASKS_REQUIRED": ("Co-run rules need at least two distinct tasks", False),
    "WORKER_GROUP_REQUIRED": ("Load limit rules need a worker group", False),
    "PHASE_WINDOW_INCOMPLETE": ("Phase window rules need a task and at least one phase", False),
    "SLOT_GROUPS_REQUIRED": ("Slot restriction rules need a client group and a worker group", False),
    "INVALID_PATTERN": ("Pattern rules need a valid regex and a rule template", False),
    "PRECEDENCE_INCOMPLETE": ("Precedence rules need a global and a specific rule", False),
}


def _normalize_tool_exception(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, SQLAlchemyError):
        return {
            "code": "DB_ERROR",
            "message": "Database operation failed",
            "retryable": False,
        }

    if isinstance(exc, ValidationError):
        return {
            "code": "INVALID_RULE_PARAMETERS",
            "message": "Rule parameters do not match the rule type",
            "retryable": False,
        }

    token = exc.args[0] if exc.args else str(exc)
    token_str = str(token)
    if token_str in _DOMAIN_ERRORS:
        message, retryable = _DOMAIN_ERRORS[token_str]
        return {
            "code": token_str,
            "message": message,
            "retryable": retryable,
        }

    return {
        "code": "INVARIANT_VIOLATION",
        "message": "Operation failed due to invalid state",
        "retryable": False,
    }


def _wrap_tool(tool_fn: Callable[..., Any]) -> Callable[..., Any]:
    def _wrapped(*args: Any, **kwargs: Any) -> Any:
        try:
            return tool_fn(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            payload = {"error": _normalize_tool_exception(exc)}
            raise RuntimeError(json.dumps(payload)) from exc

    _wrapped.__name__ = tool_fn.__name__
    _wrapped.__doc__ = tool_fn.__doc__
    _wrapped.__signature__ = inspect.signature(tool_fn)  # type: ignore[attr-defined]
    return _wrapped


def create_mcp_server():
    try:
        from mcp.server.fastmcp import FastMCP
    except ImportError as exc:
        raise RuntimeError("Install the 'mcp' package to run the MCP server") from exc

    server = FastMCP("phaseguard")

    for tool_name in MCP_TOOL_NAMES:
        server.tool(name=tool_name)(_wrap_tool(getattr(mcp_tools, tool_name)))

    return server


def main() -> None:
    # stdout carries the MCP stdio transport
    configure_logging(stream=sys.stderr)
    server = create_mcp_server()
    server.run()


if __name__ == "__main__":
    main()
