"""
Record Service — creates traceability records and removes attachments.

Every create is a single insert under an existing parent; nothing is ever
updated in place. Text is trimmed and empty optional values are stored as
NULL. Required text is not checked for emptiness: an empty statement or
decision is stored as empty text.
"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.middleware.metrics import records_created_total, records_deleted_total
from policy_trace.models import (
    Decision,
    Evidence,
    Mapping,
    Policy,
    Requirement,
    Rule,
    TestCase,
)
from policy_trace.services.traversal import AttachmentTarget

logger = logging.getLogger(__name__)


def new_uid() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _text(value: str | None) -> str:
    return (value or "").strip()


def _opt(value: str | None) -> str | None:
    return _text(value) or None


class RecordService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _insert(self, row, entity: str):
        self.session.add(row)
        await self.session.flush()
        records_created_total.labels(entity=entity).inc()
        return row

    # ── Hierarchy ────────────────────────────────────────────────────────────

    async def create_policy(
        self,
        title: str | None,
        jurisdiction: str | None = None,
        program: str | None = None,
        source_citation: str | None = None,
        effective_date: str | None = None,
    ) -> Policy:
        policy = Policy(
            uid=new_uid(),
            title=_text(title),
            jurisdiction=_opt(jurisdiction),
            program=_opt(program),
            source_citation=_opt(source_citation),
            effective_date=_opt(effective_date),
            created_at=utcnow(),
        )
        await self._insert(policy, "policy")
        logger.info("Created policy %s (%s)", policy.uid, policy.title)
        return policy

    async def create_requirement(
        self,
        policy: Policy,
        statement: str | None,
        status: str | None = None,
        tags: str | None = None,
    ) -> Requirement:
        requirement = Requirement(
            uid=new_uid(),
            policy_id=policy.id,
            statement=_text(statement),
            status=_text(status) or "draft",
            tags=_opt(tags),
            created_at=utcnow(),
        )
        await self._insert(requirement, "requirement")
        logger.info("Created requirement %s under policy %s", requirement.uid, policy.uid)
        return requirement

    async def create_decision(
        self,
        requirement: Requirement,
        decision: str | None,
        rationale: str | None = None,
        alternatives: str | None = None,
        owner: str | None = None,
        status: str | None = None,
    ) -> Decision:
        now = utcnow()
        status = _text(status) or "draft"
        row = Decision(
            uid=new_uid(),
            requirement_id=requirement.id,
            decision=_text(decision),
            rationale=_opt(rationale),
            alternatives=_opt(alternatives),
            owner=_opt(owner),
            status=status,
            approved_at=now if status == "approved" else None,
            created_at=now,
        )
        await self._insert(row, "decision")
        logger.info(
            "Created decision %s (%s) under requirement %s",
            row.uid, row.status, requirement.uid,
        )
        return row

    async def create_rule(
        self,
        decision: Decision,
        name: str | None,
        definition_text: str | None,
        version: str | None = None,
        inputs: str | None = None,
        exceptions: str | None = None,
    ) -> Rule:
        rule = Rule(
            uid=new_uid(),
            decision_id=decision.id,
            name=_text(name),
            version=_text(version) or "0.1",
            definition_text=_text(definition_text),
            inputs=_opt(inputs),
            exceptions=_opt(exceptions),
            created_at=utcnow(),
        )
        await self._insert(rule, "rule")
        logger.info("Created rule %s v%s under decision %s", rule.uid, rule.version, decision.uid)
        return rule

    async def create_test_case(
        self,
        rule: Rule,
        name: str | None,
        given_json: str | None,
        expected_json: str | None,
        notes: str | None = None,
    ) -> TestCase:
        tc = TestCase(
            uid=new_uid(),
            rule_id=rule.id,
            name=_text(name),
            given_json=_text(given_json),
            expected_json=_text(expected_json),
            notes=_opt(notes),
            created_at=utcnow(),
        )
        await self._insert(tc, "test_case")
        logger.info("Created test case %s under rule %s", tc.uid, rule.uid)
        return tc

    # ── Attachments ──────────────────────────────────────────────────────────

    async def create_mapping(
        self,
        target: AttachmentTarget,
        ref: str | None,
        type: str | None = None,
        notes: str | None = None,
    ) -> Mapping:
        mapping = Mapping(
            uid=new_uid(),
            target_type=target.kind.value,
            target_id=target.uid,
            type=_text(type) or "service",
            ref=_text(ref),
            notes=_opt(notes),
            created_at=utcnow(),
        )
        await self._insert(mapping, "mapping")
        logger.info(
            "Created %s mapping %s on %s %s",
            mapping.type, mapping.uid, target.kind.value, target.uid,
        )
        return mapping

    async def create_evidence(
        self,
        target: AttachmentTarget,
        ref: str | None,
        kind: str | None = None,
        status: str | None = None,
        notes: str | None = None,
    ) -> Evidence:
        evidence = Evidence(
            uid=new_uid(),
            target_type=target.kind.value,
            target_id=target.uid,
            kind=_text(kind) or "link",
            ref=_text(ref),
            status=_opt(status),
            notes=_opt(notes),
            created_at=utcnow(),
        )
        await self._insert(evidence, "evidence")
        logger.info(
            "Created %s evidence %s on %s %s",
            evidence.kind, evidence.uid, target.kind.value, target.uid,
        )
        return evidence

    async def delete_mapping(self, mapping: Mapping) -> None:
        await self.session.delete(mapping)
        await self.session.flush()
        records_deleted_total.labels(entity="mapping").inc()
        logger.info("Deleted mapping %s", mapping.uid)

    async def delete_evidence(self, evidence: Evidence) -> None:
        await self.session.delete(evidence)
        await self.session.flush()
        records_deleted_total.labels(entity="evidence").inc()
        logger.info("Deleted evidence %s", evidence.uid)
