from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from phaseguard.logger import configure_logging
from phaseguard.rules import build_rule, rule_catalog
from phaseguard.schemas import (
    CreateRuleRequest,
    CreateWorkspaceRequest,
    ErrorResponse,
    ReplaceEntitiesRequest,
    RuleCatalog,
    RuleListResponse,
    UpdateRecordRequest,
    ValidateRequest,
    ValidationReport,
    ValidationRun,
    ValidationRunListResponse,
    Workspace,
)
from phaseguard.store import STORE
from phaseguard.validation import summarize, validate


configure_logging()

app = FastAPI(title="phaseguard")


_ERRORS: dict[str, tuple[int, str]] = {
    "WORKSPACE_NOT_FOUND": (404, "Workspace not found"),
    "RULE_NOT_FOUND": (404, "Rule not found"),
    "RECORD_NOT_FOUND": (404, "Record not found"),
    "INVALID_ENTITY_TYPE": (422, "Entity type must be clients, workers or tasks"),
    "RULE_EXISTS": (409, "A rule with this id already exists"),
    "CORUN_TASKS_REQUIRED": (422, "Co-run rules need at least two distinct tasks"),
    "WORKER_GROUP_REQUIRED": (422, "Load limit rules need a worker group"),
    "PHASE_WINDOW_INCOMPLETE": (422, "Phase window rules need a task and at least one phase"),
    "SLOT_GROUPS_REQUIRED": (422, "Slot restriction rules need a client group and a worker group"),
    "INVALID_PATTERN": (422, "Pattern rules need a valid regex and a rule template"),
    "PRECEDENCE_INCOMPLETE": (422, "Precedence rules need a global and a specific rule"),
}


def _domain_error(exc: Exception) -> HTTPException:
    code = str(exc.args[0]) if exc.args else "INVARIANT_VIOLATION"
    status_code, message = _ERRORS.get(code, (409, "Operation failed due to invalid state"))
    if code not in _ERRORS:
        code = "INVARIANT_VIOLATION"
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            error={"code": code, "message": message, "retryable": False}
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/v1/validate", response_model=ValidationReport)
def validate_dataset(payload: ValidateRequest) -> ValidationReport:
    findings = validate(payload.entities, payload.rules)
    return ValidationReport(findings=findings, summary=summarize(findings))


@app.post("/v1/workspaces", response_model=Workspace, status_code=status.HTTP_201_CREATED)
def create_workspace(payload: CreateWorkspaceRequest) -> Workspace:
    return Workspace(**STORE.create_workspace(payload.name))


@app.get("/v1/workspaces/{workspace_id}", response_model=Workspace)
def get_workspace(workspace_id: str) -> Workspace:
    workspace = STORE.get_workspace(workspace_id)
    if workspace is None:
        raise _domain_error(KeyError("WORKSPACE_NOT_FOUND"))
    return Workspace(**workspace)


@app.put("/v1/workspaces/{workspace_id}/entities/{entity_type}", response_model=Workspace)
def replace_entities(workspace_id: str, entity_type: str, payload: ReplaceEntitiesRequest) -> Workspace:
    try:
        STORE.replace_entities(workspace_id, entity_type, payload.records)
    except (KeyError, ValueError) as exc:
        raise _domain_error(exc)
    return Workspace(**STORE.get_workspace(workspace_id))


@app.patch(
    "/v1/workspaces/{workspace_id}/entities/{entity_type}/{position}",
    response_model=ValidationReport,
)
def update_record(
    workspace_id: str,
    entity_type: str,
    position: int,
    payload: UpdateRecordRequest,
) -> ValidationReport:
    try:
        STORE.update_record(workspace_id, entity_type, position, payload.changes)
    except (KeyError, ValueError) as exc:
        raise _domain_error(exc)
    findings = validate(STORE.get_entities(workspace_id), STORE.get_rules(workspace_id))
    return ValidationReport(findings=findings, summary=summarize(findings))


@app.get("/v1/workspaces/{workspace_id}/rules/catalog", response_model=RuleCatalog)
def get_rule_catalog(workspace_id: str) -> RuleCatalog:
    try:
        entities = STORE.get_entities(workspace_id)
    except KeyError as exc:
        raise _domain_error(exc)
    return rule_catalog(entities)


@app.post(
    "/v1/workspaces/{workspace_id}/rules",
    status_code=status.HTTP_201_CREATED,
)
def create_rule(workspace_id: str, payload: CreateRuleRequest) -> dict:
    if not STORE.workspace_exists(workspace_id):
        raise _domain_error(KeyError("WORKSPACE_NOT_FOUND"))
    try:
        rule = build_rule(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=ErrorResponse(
                error={
                    "code": "INVALID_RULE_PARAMETERS",
                    "message": f"Parameters do not match rule type {payload.type}",
                    "retryable": False,
                    "details": {"errors": exc.errors(include_url=False, include_context=False)},
                }
            ).model_dump(),
        )
    except ValueError as exc:
        raise _domain_error(exc)
    try:
        return STORE.add_rule(workspace_id, rule)
    except (KeyError, ValueError) as exc:
        raise _domain_error(exc)


@app.get("/v1/workspaces/{workspace_id}/rules", response_model=RuleListResponse)
def list_rules(workspace_id: str) -> RuleListResponse:
    try:
        return RuleListResponse(items=STORE.get_rules(workspace_id))
    except KeyError as exc:
        raise _domain_error(exc)


@app.post("/v1/workspaces/{workspace_id}/rules/{rule_id}/toggle")
def toggle_rule(workspace_id: str, rule_id: str) -> dict:
    try:
        return STORE.toggle_rule(workspace_id, rule_id)
    except KeyError as exc:
        raise _domain_error(exc)


@app.delete("/v1/workspaces/{workspace_id}/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(workspace_id: str, rule_id: str) -> Response:
    try:
        STORE.delete_rule(workspace_id, rule_id)
    except KeyError as exc:
        raise _domain_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/v1/workspaces/{workspace_id}/validation", response_model=ValidationRun)
def run_validation(workspace_id: str) -> ValidationRun:
    try:
        return ValidationRun(**STORE.run_validation(workspace_id))
    except KeyError as exc:
        raise _domain_error(exc)


@app.get("/v1/workspaces/{workspace_id}/validation/runs", response_model=ValidationRunListResponse)
def list_validation_runs(workspace_id: str) -> ValidationRunListResponse:
    try:
        runs = STORE.list_validation_runs(workspace_id)
    except KeyError as exc:
        raise _domain_error(exc)
    return ValidationRunListResponse(items=[ValidationRun(**run) for run in runs])
