"""
Tree-walk queries over Policy → Requirement → Decision → Rule → TestCase.

Every helper takes the parent row's primary key (or an ``AttachmentTarget``
for the polymorphic mapping/evidence tables) and returns children in creation
order, with insertion order breaking timestamp ties.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.models import (
    Decision,
    Evidence,
    Mapping,
    Policy,
    Requirement,
    Rule,
    TargetType,
    TestCase,
)


@dataclass(frozen=True)
class AttachmentTarget:
    """The decision or rule a mapping/evidence row hangs off."""

    kind: TargetType
    uid: str

    @classmethod
    def for_decision(cls, decision: Decision) -> AttachmentTarget:
        return cls(TargetType.DECISION, decision.uid)

    @classmethod
    def for_rule(cls, rule: Rule) -> AttachmentTarget:
        return cls(TargetType.RULE, rule.uid)


# ── Lookups by uid ───────────────────────────────────────────────────────────

async def get_policy(db: AsyncSession, uid: str) -> Policy | None:
    result = await db.execute(select(Policy).where(Policy.uid == uid))
    return result.scalar_one_or_none()


async def get_requirement(db: AsyncSession, uid: str) -> Requirement | None:
    result = await db.execute(select(Requirement).where(Requirement.uid == uid))
    return result.scalar_one_or_none()


async def get_decision(db: AsyncSession, uid: str) -> Decision | None:
    result = await db.execute(select(Decision).where(Decision.uid == uid))
    return result.scalar_one_or_none()


async def get_rule(db: AsyncSession, uid: str) -> Rule | None:
    result = await db.execute(select(Rule).where(Rule.uid == uid))
    return result.scalar_one_or_none()


async def get_mapping(db: AsyncSession, uid: str) -> Mapping | None:
    result = await db.execute(select(Mapping).where(Mapping.uid == uid))
    return result.scalar_one_or_none()


async def get_evidence(db: AsyncSession, uid: str) -> Evidence | None:
    result = await db.execute(select(Evidence).where(Evidence.uid == uid))
    return result.scalar_one_or_none()


_TARGET_LOOKUPS = {
    TargetType.DECISION: get_decision,
    TargetType.RULE: get_rule,
}


async def resolve_target(db: AsyncSession, target: AttachmentTarget) -> Decision | Rule | None:
    """Look up the row a target points at, using the lookup for its kind."""
    return await _TARGET_LOOKUPS[target.kind](db, target.uid)


# ── Children by parent ───────────────────────────────────────────────────────

async def list_policies(db: AsyncSession) -> list[Policy]:
    """All policies, newest first."""
    result = await db.execute(
        select(Policy).order_by(Policy.created_at.desc(), Policy.id.desc())
    )
    return list(result.scalars())


async def list_requirements(db: AsyncSession, policy_id: int) -> list[Requirement]:
    result = await db.execute(
        select(Requirement)
        .where(Requirement.policy_id == policy_id)
        .order_by(Requirement.created_at, Requirement.id)
    )
    return list(result.scalars())


async def list_decisions(db: AsyncSession, requirement_id: int) -> list[Decision]:
    result = await db.execute(
        select(Decision)
        .where(Decision.requirement_id == requirement_id)
        .order_by(Decision.created_at, Decision.id)
    )
    return list(result.scalars())


async def list_rules(db: AsyncSession, decision_id: int) -> list[Rule]:
    result = await db.execute(
        select(Rule)
        .where(Rule.decision_id == decision_id)
        .order_by(Rule.created_at, Rule.id)
    )
    return list(result.scalars())


async def list_test_cases(db: AsyncSession, rule_id: int) -> list[TestCase]:
    result = await db.execute(
        select(TestCase)
        .where(TestCase.rule_id == rule_id)
        .order_by(TestCase.created_at, TestCase.id)
    )
    return list(result.scalars())


async def list_mappings(db: AsyncSession, target: AttachmentTarget) -> list[Mapping]:
    result = await db.execute(
        select(Mapping)
        .where(Mapping.target_type == target.kind.value, Mapping.target_id == target.uid)
        .order_by(Mapping.created_at, Mapping.id)
    )
    return list(result.scalars())


async def list_evidence(db: AsyncSession, target: AttachmentTarget) -> list[Evidence]:
    result = await db.execute(
        select(Evidence)
        .where(Evidence.target_type == target.kind.value, Evidence.target_id == target.uid)
        .order_by(Evidence.created_at, Evidence.id)
    )
    return list(result.scalars())


# ── Parents by primary key ───────────────────────────────────────────────────

async def get_policy_by_id(db: AsyncSession, policy_id: int) -> Policy:
    return (await db.execute(select(Policy).where(Policy.id == policy_id))).scalar_one()


async def get_decision_by_id(db: AsyncSession, decision_id: int) -> Decision:
    return (await db.execute(select(Decision).where(Decision.id == decision_id))).scalar_one()


async def lineage(db: AsyncSession, decision: Decision) -> tuple[Policy, Requirement]:
    """Walk a decision back up to its requirement and policy."""
    requirement = (await db.execute(
        select(Requirement).where(Requirement.id == decision.requirement_id)
    )).scalar_one()
    policy = await get_policy_by_id(db, requirement.policy_id)
    return policy, requirement
