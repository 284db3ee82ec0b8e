import pytest

from phaseguard.rules import build_rule
from phaseguard.schemas import CoRunRule, CreateRuleRequest
from phaseguard.store import STORE


def _corun_rule(rule_id: str = "rule_corun") -> CoRunRule:
    return build_rule(
        CreateRuleRequest(type="coRun", parameters={"taskIds": ["T1", "T2"]}), rule_id=rule_id
    )


def test_get_entities_returns_only_loaded_collections_in_position_order():
    workspace = STORE.create_workspace("store-entities")
    STORE.replace_entities(workspace["id"], "tasks", [{"TaskID": "T2"}, {"TaskID": "T1"}])
    STORE.replace_entities(workspace["id"], "clients", [])

    entities = STORE.get_entities(workspace["id"])
    assert entities == {"clients": [], "tasks": [{"TaskID": "T2"}, {"TaskID": "T1"}]}


def test_replace_entities_overwrites_previous_upload():
    workspace = STORE.create_workspace("store-replace")
    STORE.replace_entities(workspace["id"], "workers", [{"WorkerID": "W1"}, {"WorkerID": "W2"}])
    STORE.replace_entities(workspace["id"], "workers", [{"WorkerID": "W3"}])
    assert STORE.get_entities(workspace["id"])["workers"] == [{"WorkerID": "W3"}]


def test_update_record_merges_changes():
    workspace = STORE.create_workspace("store-update")
    STORE.replace_entities(workspace["id"], "clients", [{"ClientID": "C1", "PriorityLevel": 9}])
    updated = STORE.update_record(workspace["id"], "clients", 0, {"PriorityLevel": 2})
    assert updated == {"ClientID": "C1", "PriorityLevel": 2}
    assert STORE.get_entities(workspace["id"])["clients"] == [updated]


def test_unknown_workspace_raises_key_error():
    with pytest.raises(KeyError) as exc_info:
        STORE.get_entities("00000000-0000-0000-0000-000000000000")
    assert exc_info.value.args[0] == "WORKSPACE_NOT_FOUND"


def test_rules_round_trip_as_typed_models():
    workspace = STORE.create_workspace("store-rules")
    STORE.add_rule(workspace["id"], _corun_rule())

    rules = STORE.get_rules(workspace["id"])
    assert len(rules) == 1
    assert isinstance(rules[0], CoRunRule)
    assert rules[0].parameters.task_ids == ["T1", "T2"]
    assert rules[0].created_at is not None


def test_duplicate_rule_id_is_rejected():
    workspace = STORE.create_workspace("store-rule-dup")
    STORE.add_rule(workspace["id"], _corun_rule())
    with pytest.raises(ValueError) as exc_info:
        STORE.add_rule(workspace["id"], _corun_rule())
    assert exc_info.value.args[0] == "RULE_EXISTS"


def test_set_rule_active_and_delete():
    workspace = STORE.create_workspace("store-rule-active")
    STORE.add_rule(workspace["id"], _corun_rule())

    assert STORE.set_rule_active(workspace["id"], "rule_corun", False)["isActive"] is False
    assert STORE.get_rules(workspace["id"])[0].is_active is False

    STORE.delete_rule(workspace["id"], "rule_corun")
    assert STORE.list_rules(workspace["id"]) == []
    with pytest.raises(KeyError):
        STORE.delete_rule(workspace["id"], "rule_corun")


def test_rule_is_scoped_to_its_workspace():
    owner = STORE.create_workspace("store-owner")
    other = STORE.create_workspace("store-other")
    STORE.add_rule(owner["id"], _corun_rule())
    with pytest.raises(KeyError) as exc_info:
        STORE.toggle_rule(other["id"], "rule_corun")
    assert exc_info.value.args[0] == "RULE_NOT_FOUND"


def test_validation_runs_persist_findings_and_summary():
    workspace = STORE.create_workspace("store-runs")
    STORE.replace_entities(workspace["id"], "tasks", [{"TaskID": "T1", "Duration": 0}])

    run = STORE.run_validation(workspace["id"])
    types = [finding["type"] for finding in run["findings"]]
    assert types == ["missing_columns", "invalid_duration", "phase_slot_saturation"]
    assert run["summary"]["total"] == 3
    assert run["summary"]["quality_score"] == 55

    runs = STORE.list_validation_runs(workspace["id"])
    assert [item["id"] for item in runs] == [run["id"]]


def test_list_workspaces_includes_entity_counts():
    first = STORE.create_workspace("first")
    second = STORE.create_workspace("second")
    STORE.replace_entities(second["id"], "clients", [{"ClientID": "C1"}])

    listed = {item["id"]: item for item in STORE.list_workspaces()}
    assert listed[first["id"]]["entity_counts"] == {}
    assert listed[second["id"]]["entity_counts"] == {"clients": 1}


def test_same_rule_id_may_exist_in_two_workspaces():
    first = STORE.create_workspace("rules-first")
    second = STORE.create_workspace("rules-second")
    STORE.add_rule(first["id"], _corun_rule())
    STORE.add_rule(second["id"], _corun_rule())

    STORE.toggle_rule(second["id"], "rule_corun")
    assert STORE.get_rules(first["id"])[0].is_active is True
    assert STORE.get_rules(second["id"])[0].is_active is False
