"""
Policies API — policy intake, requirement capture and the Markdown report.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import get_db, policy_or_404
from policy_trace.middleware.metrics import reports_exported_total
from policy_trace.schemas.schemas import (
    PolicyCreate,
    PolicyDetail,
    PolicyListResponse,
    PolicySummary,
    RequirementCreate,
    RequirementSchema,
)
from policy_trace.services.records import RecordService
from policy_trace.services.report_exporter import MARKDOWN_MEDIA_TYPE, ReportExporter
from policy_trace.services.traversal import list_policies, list_requirements

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/policies", tags=["policies"])


# ── GET /api/policies ────────────────────────────────────────────────────────

@router.get("", response_model=PolicyListResponse)
async def get_policies(db: AsyncSession = Depends(get_db)):
    """All policies, newest first."""
    policies = await list_policies(db)
    return PolicyListResponse(items=[PolicySummary.model_validate(p) for p in policies])


# ── POST /api/policies ───────────────────────────────────────────────────────

@router.post("", response_model=PolicySummary, status_code=201)
async def create_policy(body: PolicyCreate, db: AsyncSession = Depends(get_db)):
    policy = await RecordService(db).create_policy(
        title=body.title,
        jurisdiction=body.jurisdiction,
        program=body.program,
        source_citation=body.source_citation,
        effective_date=body.effective_date,
    )
    return PolicySummary.model_validate(policy)


# ── GET /api/policies/{uid} ──────────────────────────────────────────────────

@router.get("/{policy_uid}", response_model=PolicyDetail)
async def get_policy(policy_uid: str, db: AsyncSession = Depends(get_db)):
    """Policy header plus its requirements in creation order."""
    policy = await policy_or_404(db, policy_uid)
    requirements = await list_requirements(db, policy.id)
    return PolicyDetail(
        **PolicySummary.model_validate(policy).model_dump(),
        requirements=[RequirementSchema.model_validate(r) for r in requirements],
    )


# ── POST /api/policies/{uid}/requirements ────────────────────────────────────

@router.post("/{policy_uid}/requirements", response_model=RequirementSchema, status_code=201)
async def add_requirement(
    policy_uid: str,
    body: RequirementCreate,
    db: AsyncSession = Depends(get_db),
):
    """Add an atomic, testable requirement to a policy."""
    policy = await policy_or_404(db, policy_uid)
    requirement = await RecordService(db).create_requirement(
        policy, statement=body.statement, status=body.status, tags=body.tags,
    )
    return RequirementSchema.model_validate(requirement)


# ── GET /api/policies/{uid}/export ───────────────────────────────────────────

@router.get("/{policy_uid}/export")
async def export_policy(policy_uid: str, db: AsyncSession = Depends(get_db)):
    """Audit-ready Markdown report of the policy's full hierarchy."""
    report = await ReportExporter(db).export(policy_uid)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Policy {policy_uid} not found")
    reports_exported_total.inc()
    logger.info("Exported report for policy %s (%d bytes)", policy_uid, len(report))
    return Response(content=report, media_type=MARKDOWN_MEDIA_TYPE)
