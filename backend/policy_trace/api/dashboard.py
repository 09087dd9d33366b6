"""
Dashboard API — coverage rollup for one policy.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import get_db
from policy_trace.middleware.metrics import dashboard_views_total
from policy_trace.schemas.schemas import (
    CoveragePercentages,
    CoverageTotals,
    DashboardResponse,
    PolicySummary,
    RequirementCoverageItem,
    RequirementSchema,
)
from policy_trace.services.coverage import CoverageService, PolicyCoverage

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def build_dashboard(cov: PolicyCoverage) -> DashboardResponse:
    return DashboardResponse(
        policy=PolicySummary.model_validate(cov.policy),
        totals=CoverageTotals(
            requirements=cov.requirements_total,
            requirements_traceable=cov.requirements_traceable,
            requirements_with_approved_decision=cov.requirements_with_approved_decision,
            requirements_with_rule=cov.requirements_with_rule,
            requirements_with_tests=cov.requirements_with_tests,
            requirements_with_evidence=cov.requirements_with_evidence,
            decisions=cov.decisions_total,
            decisions_approved=cov.decisions_approved,
            rules=cov.rules_total,
            tests=cov.tests_total,
            evidence=cov.evidence_total,
        ),
        percentages=CoveragePercentages(
            traceable=cov.pct_traceable,
            with_approved_decision=cov.pct_with_approved_decision,
            with_rule=cov.pct_with_rule,
            with_tests=cov.pct_with_tests,
            with_evidence=cov.pct_with_evidence,
            decisions_approved=cov.pct_decisions_approved,
        ),
        impact=cov.impact,
        requirements=[
            RequirementCoverageItem(
                requirement=RequirementSchema.model_validate(row.requirement),
                decisions=len(row.decisions),
                approved_decisions=len(row.approved_decisions),
                rules=len(row.rules),
                test_count=row.test_count,
                evidence_count=row.evidence_count,
                has_approved_decision=row.has_approved_decision,
                has_rule=row.has_rule,
                has_tests=row.has_tests,
                has_evidence=row.has_evidence,
                fully_traceable=row.fully_traceable,
            )
            for row in cov.requirements
        ],
    )


@router.get("/{policy_uid}", response_model=DashboardResponse)
async def get_dashboard(policy_uid: str, db: AsyncSession = Depends(get_db)):
    """Traceability coverage, stage counts and mapping impact for a policy."""
    cov = await CoverageService(db).for_policy_uid(policy_uid)
    if cov is None:
        raise HTTPException(status_code=404, detail=f"Policy {policy_uid} not found")
    dashboard_views_total.inc()
    return build_dashboard(cov)
