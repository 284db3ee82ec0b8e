import json

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from phaseguard.mcp_server import _normalize_tool_exception, _wrap_tool
from phaseguard.schemas import LoadLimitParameters


def test_normalize_domain_error_code():
    payload = _normalize_tool_exception(KeyError("WORKSPACE_NOT_FOUND"))
    assert payload["code"] == "WORKSPACE_NOT_FOUND"
    assert payload["message"] == "Workspace not found"
    assert payload["retryable"] is False


def test_normalize_rule_precondition_error_code():
    payload = _normalize_tool_exception(ValueError("CORUN_TASKS_REQUIRED"))
    assert payload["code"] == "CORUN_TASKS_REQUIRED"
    assert payload["message"] == "Co-run rules need at least two distinct tasks"


def test_normalize_invalid_entity_type_error_code():
    payload = _normalize_tool_exception(ValueError("INVALID_ENTITY_TYPE"))
    assert payload["code"] == "INVALID_ENTITY_TYPE"
    assert payload["message"] == "Entity type must be clients, workers or tasks"


def test_normalize_parameter_shape_error():
    with pytest.raises(ValidationError) as exc_info:
        LoadLimitParameters.model_validate({"taskIds": ["T1"]})
    payload = _normalize_tool_exception(exc_info.value)
    assert payload["code"] == "INVALID_RULE_PARAMETERS"


def test_normalize_unknown_error_is_invariant_violation():
    payload = _normalize_tool_exception(ValueError("something odd"))
    assert payload == {
        "code": "INVARIANT_VIOLATION",
        "message": "Operation failed due to invalid state",
        "retryable": False,
    }


def test_normalize_db_error_hides_raw_driver_details():
    exc = IntegrityError("insert failed", params={"id": 1}, orig=Exception("sqlite details"))
    payload = _normalize_tool_exception(exc)
    assert payload == {
        "code": "DB_ERROR",
        "message": "Database operation failed",
        "retryable": False,
    }


def test_wrap_tool_emits_json_error_payload():
    wrapped = _wrap_tool(lambda: (_ for _ in ()).throw(KeyError("RULE_NOT_FOUND")))
    try:
        wrapped()
        raise AssertionError("Expected RuntimeError")
    except RuntimeError as exc:
        payload = json.loads(str(exc))
    assert payload["error"]["code"] == "RULE_NOT_FOUND"


def test_wrap_tool_passes_results_through():
    def sample(*, value: int) -> dict:
        return {"value": value}

    wrapped = _wrap_tool(sample)
    assert wrapped(value=3) == {"value": 3}
    assert wrapped.__name__ == "sample"
