"""
Records API — decisions under requirements, rules under decisions and test
cases under rules. Each call is a single insert beneath an existing parent.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import decision_or_404, get_db, requirement_or_404, rule_or_404
from policy_trace.schemas.schemas import (
    DecisionCreate,
    DecisionSchema,
    RuleCreate,
    RuleSchema,
    TestCaseCreate,
    TestCaseSchema,
)
from policy_trace.services.records import RecordService
from policy_trace.services.traversal import list_decisions, list_rules, list_test_cases

router = APIRouter(prefix="/api", tags=["records"])


# ── Decisions ────────────────────────────────────────────────────────────────

@router.get("/requirements/{requirement_uid}/decisions", response_model=list[DecisionSchema])
async def get_decisions(requirement_uid: str, db: AsyncSession = Depends(get_db)):
    requirement = await requirement_or_404(db, requirement_uid)
    return [DecisionSchema.model_validate(d) for d in await list_decisions(db, requirement.id)]


@router.post("/requirements/{requirement_uid}/decisions", response_model=DecisionSchema, status_code=201)
async def add_decision(
    requirement_uid: str,
    body: DecisionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Record a decision (ADR). Creating it as approved stamps approved_at."""
    requirement = await requirement_or_404(db, requirement_uid)
    decision = await RecordService(db).create_decision(
        requirement,
        decision=body.decision,
        rationale=body.rationale,
        alternatives=body.alternatives,
        owner=body.owner,
        status=body.status,
    )
    return DecisionSchema.model_validate(decision)


# ── Rules ────────────────────────────────────────────────────────────────────

@router.get("/decisions/{decision_uid}/rules", response_model=list[RuleSchema])
async def get_rules(decision_uid: str, db: AsyncSession = Depends(get_db)):
    decision = await decision_or_404(db, decision_uid)
    return [RuleSchema.model_validate(r) for r in await list_rules(db, decision.id)]


@router.post("/decisions/{decision_uid}/rules", response_model=RuleSchema, status_code=201)
async def add_rule(
    decision_uid: str,
    body: RuleCreate,
    db: AsyncSession = Depends(get_db),
):
    decision = await decision_or_404(db, decision_uid)
    rule = await RecordService(db).create_rule(
        decision,
        name=body.name,
        definition_text=body.definition_text,
        version=body.version,
        inputs=body.inputs,
        exceptions=body.exceptions,
    )
    return RuleSchema.model_validate(rule)


# ── Test cases ───────────────────────────────────────────────────────────────

@router.get("/rules/{rule_uid}/test-cases", response_model=list[TestCaseSchema])
async def get_test_cases(rule_uid: str, db: AsyncSession = Depends(get_db)):
    rule = await rule_or_404(db, rule_uid)
    return [TestCaseSchema.model_validate(tc) for tc in await list_test_cases(db, rule.id)]


@router.post("/rules/{rule_uid}/test-cases", response_model=TestCaseSchema, status_code=201)
async def add_test_case(
    rule_uid: str,
    body: TestCaseCreate,
    db: AsyncSession = Depends(get_db),
):
    """Attach a given/expected pair to a rule. JSON text is stored as sent."""
    rule = await rule_or_404(db, rule_uid)
    tc = await RecordService(db).create_test_case(
        rule,
        name=body.name,
        given_json=body.given_json,
        expected_json=body.expected_json,
        notes=body.notes,
    )
    return TestCaseSchema.model_validate(tc)
