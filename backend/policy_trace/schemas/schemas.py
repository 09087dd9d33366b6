"""
Pydantic schemas for API request/response models.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RecordStatus = Literal["draft", "approved", "superseded"]
MappingType = Literal["service", "api", "data", "integration", "security"]
EvidenceKind = Literal["pr", "commit", "build", "deploy", "doc", "link"]
EvidenceStatus = Literal["draft", "approved"]


class _ORMSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── Policies ──

class PolicyCreate(BaseModel):
    title: str
    jurisdiction: str | None = None
    program: str | None = None
    source_citation: str | None = None
    effective_date: str | None = None


class PolicySummary(_ORMSchema):
    uid: str
    title: str
    jurisdiction: str | None = None
    program: str | None = None
    source_citation: str | None = None
    effective_date: str | None = None
    created_at: datetime | None = None


class PolicyListResponse(BaseModel):
    items: list[PolicySummary]


# ── Requirements ──

class RequirementCreate(BaseModel):
    statement: str
    status: RecordStatus = "draft"
    tags: str | None = Field(None, description="Comma-separated tags")


class RequirementSchema(_ORMSchema):
    uid: str
    statement: str
    status: str
    tags: str | None = None
    created_at: datetime | None = None


class PolicyDetail(PolicySummary):
    requirements: list[RequirementSchema] = []


# ── Decisions ──

class DecisionCreate(BaseModel):
    decision: str
    rationale: str | None = None
    alternatives: str | None = None
    owner: str | None = None
    status: RecordStatus = "draft"


class DecisionSchema(_ORMSchema):
    uid: str
    decision: str
    rationale: str | None = None
    alternatives: str | None = None
    owner: str | None = None
    status: str
    approved_at: datetime | None = None
    created_at: datetime | None = None


# ── Rules & test cases ──

class RuleCreate(BaseModel):
    name: str
    definition_text: str
    version: str = "0.1"
    inputs: str | None = Field(None, description="JSON text, stored verbatim")
    exceptions: str | None = Field(None, description="JSON text, stored verbatim")


class RuleSchema(_ORMSchema):
    uid: str
    name: str
    version: str
    definition_text: str
    inputs: str | None = None
    exceptions: str | None = None
    created_at: datetime | None = None


class TestCaseCreate(BaseModel):
    name: str
    given_json: str
    expected_json: str
    notes: str | None = None


class TestCaseSchema(_ORMSchema):
    uid: str
    name: str
    given_json: str
    expected_json: str
    notes: str | None = None
    created_at: datetime | None = None


# ── Mappings & evidence ──

class MappingCreate(BaseModel):
    type: MappingType = "service"
    ref: str
    notes: str | None = None


class MappingSchema(_ORMSchema):
    uid: str
    target_type: str
    target_id: str
    type: str
    ref: str
    notes: str | None = None
    created_at: datetime | None = None


class EvidenceCreate(BaseModel):
    kind: EvidenceKind = "link"
    ref: str
    status: EvidenceStatus | None = None
    notes: str | None = None


class EvidenceSchema(_ORMSchema):
    uid: str
    target_type: str
    target_id: str
    kind: str
    ref: str
    status: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class AttachmentsResponse(BaseModel):
    mappings: list[MappingSchema]
    evidence: list[EvidenceSchema]


# ── Dashboard ──

class RequirementCoverageItem(BaseModel):
    requirement: RequirementSchema
    decisions: int
    approved_decisions: int
    rules: int
    test_count: int
    evidence_count: int
    has_approved_decision: bool
    has_rule: bool
    has_tests: bool
    has_evidence: bool
    fully_traceable: bool


class CoverageTotals(BaseModel):
    requirements: int
    requirements_traceable: int
    requirements_with_approved_decision: int
    requirements_with_rule: int
    requirements_with_tests: int
    requirements_with_evidence: int
    decisions: int
    decisions_approved: int
    rules: int
    tests: int
    evidence: int


class CoveragePercentages(BaseModel):
    traceable: int
    with_approved_decision: int
    with_rule: int
    with_tests: int
    with_evidence: int
    decisions_approved: int


class DashboardResponse(BaseModel):
    policy: PolicySummary
    totals: CoverageTotals
    percentages: CoveragePercentages
    impact: dict[str, int]
    requirements: list[RequirementCoverageItem]


class HealthResponse(BaseModel):
    status: str
    environment: str
    components: dict
