"""
API Dependencies — per-request DB session and record lookups.

The session comes from the ``Store`` placed on ``app.state`` by the
application lifespan. The ``*_or_404`` helpers resolve a public uid to its
row or abort the request with 404 before any work is done.
"""

from typing import AsyncGenerator

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.database import Store
from policy_trace.models import Decision, Evidence, Mapping, Policy, Requirement, Rule
from policy_trace.services import traversal


# ── Database session ─────────────────────────────────────────────────────────

def get_store(request: Request) -> Store:
    return request.app.state.store


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session per request, commit on success, rollback on error."""
    async with get_store(request).session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Lookups ──────────────────────────────────────────────────────────────────

async def policy_or_404(db: AsyncSession, uid: str) -> Policy:
    policy = await traversal.get_policy(db, uid)
    if policy is None:
        raise HTTPException(status_code=404, detail=f"Policy {uid} not found")
    return policy


async def requirement_or_404(db: AsyncSession, uid: str) -> Requirement:
    requirement = await traversal.get_requirement(db, uid)
    if requirement is None:
        raise HTTPException(status_code=404, detail=f"Requirement {uid} not found")
    return requirement


async def decision_or_404(db: AsyncSession, uid: str) -> Decision:
    decision = await traversal.get_decision(db, uid)
    if decision is None:
        raise HTTPException(status_code=404, detail=f"Decision {uid} not found")
    return decision


async def rule_or_404(db: AsyncSession, uid: str) -> Rule:
    rule = await traversal.get_rule(db, uid)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Rule {uid} not found")
    return rule


async def mapping_or_404(db: AsyncSession, uid: str) -> Mapping:
    mapping = await traversal.get_mapping(db, uid)
    if mapping is None:
        raise HTTPException(status_code=404, detail=f"Mapping {uid} not found")
    return mapping


async def evidence_or_404(db: AsyncSession, uid: str) -> Evidence:
    evidence = await traversal.get_evidence(db, uid)
    if evidence is None:
        raise HTTPException(status_code=404, detail=f"Evidence {uid} not found")
    return evidence
