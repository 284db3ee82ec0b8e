from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


EntityType = Literal["clients", "workers", "tasks"]
RuleType = Literal["coRun", "loadLimit", "phaseWindow", "slotRestriction", "patternMatch", "precedence"]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class FindingType(str, Enum):
    MISSING_COLUMNS = "missing_columns"
    DUPLICATE_ID = "duplicate_id"
    INVALID_PRIORITY = "invalid_priority"
    INVALID_JSON = "invalid_json"
    NON_JSON_ATTRIBUTES = "non_json_attributes"
    INVALID_SLOTS_FORMAT = "invalid_slots_format"
    INVALID_SLOT_VALUES = "invalid_slot_values"
    UNPARSEABLE_SLOTS = "unparseable_slots"
    INVALID_DURATION = "invalid_duration"
    MISSING_TASK_REFERENCES = "missing_task_references"
    OVERLOADED_WORKER = "overloaded_worker"
    MISSING_SKILL_COVERAGE = "missing_skill_coverage"
    MAX_CONCURRENCY_INFEASIBLE = "max_concurrency_infeasible"
    PHASE_SLOT_SATURATION = "phase_slot_saturation"
    CIRCULAR_CORUN_GROUP = "circular_corun_group"
    CONFLICTING_RULES = "conflicting_rules"


class ApiError(BaseModel):
    code: str
    message: str
    retryable: bool = False
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    error: ApiError


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationFinding(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: str
    severity: Severity
    message: str
    entity_type: EntityType
    entity_id: str | None = None
    field: str | None = None
    suggestion: str | None = None


# ---------------------------------------------------------------------------
# Business rules: one parameter record per rule type
# ---------------------------------------------------------------------------


class CoRunParameters(CamelModel):
    task_ids: list[str]


class LoadLimitParameters(CamelModel):
    worker_group: str
    max_slots_per_phase: int = Field(ge=0)


class PhaseWindowParameters(CamelModel):
    task_id: str
    allowed_phases: list[int]


class SlotRestrictionParameters(CamelModel):
    client_group: str
    worker_group: str
    min_common_slots: int = Field(default=2, ge=0)


class PatternMatchParameters(CamelModel):
    regex: str
    rule_template: str
    parameters: str = ""


class PrecedenceParameters(CamelModel):
    global_rule: str
    specific_rule: str
    priority: int = 1


class RuleBase(CamelModel):
    id: str
    name: str = ""
    description: str = ""
    is_active: bool = True
    created_at: datetime | None = None


class CoRunRule(RuleBase):
    type: Literal["coRun"] = "coRun"
    parameters: CoRunParameters


class LoadLimitRule(RuleBase):
    type: Literal["loadLimit"] = "loadLimit"
    parameters: LoadLimitParameters


class PhaseWindowRule(RuleBase):
    type: Literal["phaseWindow"] = "phaseWindow"
    parameters: PhaseWindowParameters


class SlotRestrictionRule(RuleBase):
    type: Literal["slotRestriction"] = "slotRestriction"
    parameters: SlotRestrictionParameters


class PatternMatchRule(RuleBase):
    type: Literal["patternMatch"] = "patternMatch"
    parameters: PatternMatchParameters


class PrecedenceRule(RuleBase):
    type: Literal["precedence"] = "precedence"
    parameters: PrecedenceParameters


BusinessRule = Annotated[
    Union[
        CoRunRule,
        LoadLimitRule,
        PhaseWindowRule,
        SlotRestrictionRule,
        PatternMatchRule,
        PrecedenceRule,
    ],
    Field(discriminator="type"),
]

BUSINESS_RULE_ADAPTER: TypeAdapter = TypeAdapter(BusinessRule)

PARAMETER_MODELS: dict[str, type[CamelModel]] = {
    "coRun": CoRunParameters,
    "loadLimit": LoadLimitParameters,
    "phaseWindow": PhaseWindowParameters,
    "slotRestriction": SlotRestrictionParameters,
    "patternMatch": PatternMatchParameters,
    "precedence": PrecedenceParameters,
}


def parse_rule(raw: Any) -> BusinessRule:
    if isinstance(raw, RuleBase):
        return raw
    return BUSINESS_RULE_ADAPTER.validate_python(raw)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class EntitySet(BaseModel):
    clients: list[dict[str, Any]] | None = None
    workers: list[dict[str, Any]] | None = None
    tasks: list[dict[str, Any]] | None = None


class ValidationSummary(BaseModel):
    total: int
    by_severity: dict[str, int]
    by_entity_type: dict[str, int]
    quality_score: int


class ValidationReport(BaseModel):
    findings: list[ValidationFinding]
    summary: ValidationSummary


class FindingDiff(BaseModel):
    added: list[ValidationFinding]
    resolved: list[ValidationFinding]


class ValidateRequest(BaseModel):
    entities: EntitySet = Field(default_factory=EntitySet)
    rules: list[BusinessRule] = Field(default_factory=list)


class CreateWorkspaceRequest(BaseModel):
    name: str = Field(min_length=1)


class Workspace(BaseModel):
    id: str
    name: str
    entity_counts: dict[str, int] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class ReplaceEntitiesRequest(BaseModel):
    records: list[dict[str, Any]]


class UpdateRecordRequest(BaseModel):
    changes: dict[str, Any] = Field(min_length=1)


class CreateRuleRequest(CamelModel):
    type: RuleType
    name: str | None = None
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class RuleListResponse(BaseModel):
    items: list[BusinessRule]


class RuleCatalog(BaseModel):
    task_ids: list[str]
    worker_groups: list[str]
    client_groups: list[str]


class ValidationRun(BaseModel):
    id: str
    workspace_id: str
    findings: list[ValidationFinding]
    summary: ValidationSummary
    created_at: str


class ValidationRunListResponse(BaseModel):
    items: list[ValidationRun]
