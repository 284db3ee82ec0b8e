from fastapi.testclient import TestClient

from phaseguard.main import app


CLIENTS = [
    {"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 7, "RequestedTaskIDs": "T1,T9"},
]
WORKERS = [
    {"WorkerID": "W1", "WorkerName": "Ada", "Skills": "python", "AvailableSlots": "[1,2]", "MaxLoadPerPhase": 2},
]
TASKS = [
    {"TaskID": "T1", "TaskName": "Build", "Duration": 1, "RequiredSkills": "python", "PreferredPhases": "[1]"},
    {"TaskID": "T2", "TaskName": "Ship", "Duration": 1, "RequiredSkills": "python", "PreferredPhases": "[2]"},
]


def _create_workspace(client: TestClient, name: str = "demo") -> dict:
    response = client.post("/v1/workspaces", json={"name": name})
    assert response.status_code == 201
    return response.json()


def _load(client: TestClient, workspace_id: str, entity_type: str, records: list[dict]) -> dict:
    response = client.put(
        f"/v1/workspaces/{workspace_id}/entities/{entity_type}", json={"records": records}
    )
    assert response.status_code == 200
    return response.json()


def test_health():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok"}


class TestStatelessValidation:
    def test_validate_returns_camel_case_findings_and_summary(self):
        client = TestClient(app)
        response = client.post(
            "/v1/validate",
            json={"entities": {"clients": CLIENTS, "workers": WORKERS, "tasks": TASKS}},
        )
        assert response.status_code == 200
        body = response.json()
        assert [f["type"] for f in body["findings"]] == ["invalid_priority", "missing_task_references"]
        first = body["findings"][0]
        assert first["entityType"] == "clients"
        assert first["entityId"] == "C1"
        assert first["severity"] == "error"
        assert body["summary"]["total"] == 2
        assert body["summary"]["quality_score"] == 70

    def test_validate_accepts_rules(self):
        client = TestClient(app)
        response = client.post(
            "/v1/validate",
            json={
                "entities": {"tasks": TASKS},
                "rules": [
                    {"id": "r1", "type": "coRun", "parameters": {"taskIds": ["T1", "T2"]}},
                    {"id": "r2", "type": "phaseWindow", "parameters": {"taskId": "T1", "allowedPhases": [3]}},
                ],
            },
        )
        assert response.status_code == 200
        types = [f["type"] for f in response.json()["findings"]]
        assert "circular_corun_group" in types
        assert "conflicting_rules" in types

    def test_validate_empty_body(self):
        client = TestClient(app)
        response = client.post("/v1/validate", json={})
        assert response.status_code == 200
        assert response.json()["findings"] == []

    def test_validate_rejects_mismatched_rule_parameters(self):
        client = TestClient(app)
        response = client.post(
            "/v1/validate",
            json={"rules": [{"id": "r1", "type": "loadLimit", "parameters": {"taskIds": ["T1"]}}]},
        )
        assert response.status_code == 422


class TestWorkspaces:
    def test_create_and_load_entities(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        assert workspace["entity_counts"] == {}

        _load(client, workspace["id"], "tasks", TASKS)
        updated = _load(client, workspace["id"], "clients", [])
        assert updated["entity_counts"] == {"clients": 0, "tasks": 2}

        fetched = client.get(f"/v1/workspaces/{workspace['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["entity_counts"] == {"clients": 0, "tasks": 2}

    def test_unknown_workspace_is_404(self):
        client = TestClient(app)
        response = client.get("/v1/workspaces/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "WORKSPACE_NOT_FOUND"

    def test_invalid_entity_type_is_422(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        response = client.put(
            f"/v1/workspaces/{workspace['id']}/entities/vendors", json={"records": []}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_ENTITY_TYPE"

    def test_patch_record_returns_fresh_report(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        _load(client, workspace["id"], "clients", CLIENTS)
        _load(client, workspace["id"], "tasks", TASKS)
        _load(client, workspace["id"], "workers", WORKERS)

        response = client.patch(
            f"/v1/workspaces/{workspace['id']}/entities/clients/0",
            json={"changes": {"PriorityLevel": 3, "RequestedTaskIDs": "T1"}},
        )
        assert response.status_code == 200
        assert response.json()["findings"] == []

    def test_patch_missing_record_is_404(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        _load(client, workspace["id"], "clients", CLIENTS)
        response = client.patch(
            f"/v1/workspaces/{workspace['id']}/entities/clients/5",
            json={"changes": {"PriorityLevel": 3}},
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RECORD_NOT_FOUND"


class TestRules:
    def test_rule_lifecycle(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        base = f"/v1/workspaces/{workspace['id']}/rules"

        created = client.post(base, json={"type": "coRun", "parameters": {"taskIds": ["T1", "T2"]}})
        assert created.status_code == 201
        rule = created.json()
        assert rule["type"] == "coRun"
        assert rule["isActive"] is True
        assert rule["name"] == "Co-run: T1, T2"

        listed = client.get(base).json()["items"]
        assert [item["id"] for item in listed] == [rule["id"]]

        toggled = client.post(f"{base}/{rule['id']}/toggle")
        assert toggled.status_code == 200
        assert toggled.json()["isActive"] is False

        deleted = client.delete(f"{base}/{rule['id']}")
        assert deleted.status_code == 204
        assert client.get(base).json()["items"] == []

    def test_incomplete_rule_is_rejected_with_code(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        response = client.post(
            f"/v1/workspaces/{workspace['id']}/rules",
            json={"type": "coRun", "parameters": {"taskIds": ["T1"]}},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CORUN_TASKS_REQUIRED"

    def test_mismatched_rule_parameters_are_rejected_with_code(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        response = client.post(
            f"/v1/workspaces/{workspace['id']}/rules",
            json={"type": "phaseWindow", "parameters": {"taskIds": ["T1"]}},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_RULE_PARAMETERS"

    def test_toggle_unknown_rule_is_404(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        response = client.post(f"/v1/workspaces/{workspace['id']}/rules/rule_missing/toggle")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RULE_NOT_FOUND"

    def test_catalog_lists_rule_targets(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        _load(client, workspace["id"], "tasks", TASKS)
        _load(client, workspace["id"], "workers", [dict(WORKERS[0], WorkerGroup="GroupA")])
        response = client.get(f"/v1/workspaces/{workspace['id']}/rules/catalog")
        assert response.status_code == 200
        assert response.json() == {"task_ids": ["T1", "T2"], "worker_groups": ["GroupA"], "client_groups": []}


class TestValidationRuns:
    def test_runs_are_recorded_newest_first(self):
        client = TestClient(app)
        workspace = _create_workspace(client)
        base = f"/v1/workspaces/{workspace['id']}"
        _load(client, workspace["id"], "workers", WORKERS)
        _load(client, workspace["id"], "tasks", TASKS)

        first = client.post(f"{base}/validation")
        assert first.status_code == 200
        assert first.json()["findings"] == []

        client.post(f"{base}/rules", json={"type": "coRun", "parameters": {"taskIds": ["T1", "T2"]}})
        second = client.post(f"{base}/validation").json()
        assert [f["type"] for f in second["findings"]] == ["circular_corun_group"]

        runs = client.get(f"{base}/validation/runs").json()["items"]
        assert [run["id"] for run in runs] == [second["id"], first.json()["id"]]
        assert runs[0]["summary"]["total"] == 1
        assert runs[1]["summary"]["quality_score"] == 100

    def test_runs_for_unknown_workspace_are_404(self):
        client = TestClient(app)
        response = client.post("/v1/workspaces/00000000-0000-0000-0000-000000000000/validation")
        assert response.status_code == 404
