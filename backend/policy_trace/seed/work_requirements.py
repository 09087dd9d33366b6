"""Seed an HR1 work-requirements policy with a realistic, deliberately gappy hierarchy.

Twelve requirements are created. Most get an approved decision, a rule, two
test cases, mappings and evidence, but a few are left incomplete so the
dashboard has something to show:

* requirement 11 has no decision at all
* every fourth decision (R2, R6, R10) stays in draft
* R3 and R8 have a decision but no rule
* R4 and R12 have a rule but no test cases
* R2, R5, R8 and R11 carry no evidence

Usage::

    python -m policy_trace.seed.work_requirements            # seed (skipped if present)
    python -m policy_trace.seed.work_requirements --verify   # print coverage only

The whole hierarchy is written in one transaction; a failure leaves nothing
behind.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.config import settings
from policy_trace.database import Store
from policy_trace.models import Policy
from policy_trace.services.coverage import CoverageService
from policy_trace.services.records import RecordService
from policy_trace.services.traversal import AttachmentTarget

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

POLICY_TITLE = "HR1 Work Requirements Policy"
JURISDICTION = "US (Federal)"
PROGRAM = "HR1 / Benefits Eligibility"
CITATION = "HR1 §101-§109 (Work Requirements)"
EFFECTIVE_DATE = "2026-01-01"

OWNERS = ["Policy", "Engineering", "Compliance", "Operations"]
REQUIREMENT_STATUSES = ["draft", "in_review", "approved"]
MAPPING_TYPES = ["service", "api", "data", "integration", "security"]
DECISION_REFS = ["eligibility-service", "case-service", "audit-service", "notice-service"]
RULE_REFS = ["POST /eligibility/evaluate", "GET /evidence/wages", "topic:compliance-events", "db:case_events"]

REQUIREMENTS = [
    "Verify applicant identity and residency before evaluating work requirements.",
    "Determine whether the applicant is exempt from work requirements based on age, disability, pregnancy, or caregiver status.",
    "Calculate required work hours per month based on household composition and program tier.",
    "Ingest and validate employer wage records and/or timesheets as evidence of work participation.",
    "Apply grace periods for newly enrolled applicants (first 60 days).",
    "Handle partial-month eligibility with prorated work hour requirements.",
    "Detect and flag inconsistent reporting between self-attestation and wage records.",
    "Issue notices to applicants when non-compliance is detected and provide appeal window.",
    "Record appeals and pause adverse action until appeal resolution.",
    "Apply sanctions after repeated non-compliance and track sanction period.",
    "Provide audit trail: decisions, rule versions, tests, and evidence must be traceable.",
    "Export an audit-ready report for the policy covering requirement-to-evidence traceability.",
]

RULE_INPUTS = {
    "applicant": ["dob", "disability_status", "pregnancy_status", "caregiver_status"],
    "evidence": ["wage_records", "timesheets", "self_attestation"],
    "context": ["coverage_month", "program_tier"],
}

RULE_EXCEPTIONS = {
    "exemptions": ["age", "disability", "pregnancy", "caregiver"],
    "grace_period_days": 60,
    "appeal_hold": True,
}

TEST_CASES = [
    (
        "Meets requirement - standard case",
        {"applicant": {"id": "A-100", "disability_status": False}, "evidence": {"hours_worked": 90}, "context": {"required_hours": 80}},
        {"eligible": True, "reason": "meets_work_requirement"},
        "baseline happy path",
    ),
    (
        "Does not meet requirement - insufficient hours",
        {"applicant": {"id": "A-101", "disability_status": False}, "evidence": {"hours_worked": 20}, "context": {"required_hours": 80}},
        {"eligible": False, "reason": "insufficient_hours", "notice_required": True},
        "non-compliance path",
    ),
]


def _pick(items: list[str], i: int) -> str:
    return items[i % len(items)]


def _tags_for(i: int) -> str:
    extra = ("identity", "exemptions", "compliance")[i % 3]
    return ",".join(["hr1", "work-req", "eligibility", extra])


def _pretty(value: dict) -> str:
    return json.dumps(value, indent=2)


@dataclass
class SeedResult:
    policy: Policy
    gaps: list[tuple[str, str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

async def find_seeded_policy(session: AsyncSession) -> Policy | None:
    result = await session.execute(
        select(Policy).where(Policy.title == POLICY_TITLE).order_by(Policy.id).limit(1)
    )
    return result.scalar_one_or_none()


async def seed_work_requirements(session: AsyncSession) -> SeedResult | None:
    """Write the demo hierarchy into *session* without committing.

    Returns ``None`` when a policy with the demo title already exists.
    """
    if await find_seeded_policy(session) is not None:
        return None

    records = RecordService(session)
    policy = await records.create_policy(
        title=POLICY_TITLE,
        jurisdiction=JURISDICTION,
        program=PROGRAM,
        source_citation=CITATION,
        effective_date=EFFECTIVE_DATE,
    )
    result = SeedResult(policy=policy)

    for i, statement in enumerate(REQUIREMENTS):
        requirement = await records.create_requirement(
            policy,
            statement=statement,
            status=_pick(REQUIREMENT_STATUSES, i),
            tags=_tags_for(i),
        )

        if i == 10:
            result.gaps.append(("no decision", requirement.uid))
            continue

        decision = await records.create_decision(
            requirement,
            decision=f"Decision for R{i + 1}: {statement}",
            rationale="Automate with deterministic rules; fall back to manual review for ambiguous cases.",
            alternatives="Manual-only review; third-party eligibility engine.",
            owner=_pick(OWNERS, i),
            status="draft" if i % 4 == 1 else "approved",
        )

        if i % 5 == 2:
            result.gaps.append(("no rule", requirement.uid))
            continue

        rule = await records.create_rule(
            decision,
            name=f"HR1-R{i + 1:02d}-Rule",
            version="0.1",
            definition_text=(
                f"IF requirement R{i + 1} applies THEN evaluate according to HR1 policy guidance.\n\n"
                "Implementation notes: deterministic checks + clear exception paths."
            ),
            inputs=_pretty(RULE_INPUTS),
            exceptions=_pretty(RULE_EXCEPTIONS),
        )

        if i % 4 != 3:
            for name, given, expected, notes in TEST_CASES:
                await records.create_test_case(
                    rule,
                    name=name,
                    given_json=_pretty(given),
                    expected_json=_pretty(expected),
                    notes=notes,
                )

        decision_target = AttachmentTarget.for_decision(decision)
        rule_target = AttachmentTarget.for_rule(rule)
        await records.create_mapping(
            decision_target,
            ref=_pick(DECISION_REFS, i),
            type=_pick(MAPPING_TYPES, i),
            notes="Affected component for implementation traceability.",
        )
        await records.create_mapping(
            rule_target,
            ref=_pick(RULE_REFS, i + 1),
            type=_pick(MAPPING_TYPES, i + 2),
            notes="System touchpoint for the rule.",
        )

        if i % 3 != 1:
            await records.create_evidence(
                decision_target,
                ref=f"ADR-{i + 1:03d}",
                kind="doc",
                status="approved",
                notes="Architecture decision record.",
            )
            await records.create_evidence(
                rule_target,
                ref=f"https://example.org/policy-trace/pull/{100 + i}",
                kind="pr",
                status="draft",
                notes="Implementation PR link placeholder for demo data.",
            )

    return result


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

async def verify_data(session: AsyncSession) -> bool:
    """Print the coverage rollup for the seeded policy."""
    policy = await find_seeded_policy(session)
    if policy is None:
        print("Seeded policy not found.")
        return False

    cov = await CoverageService(session).for_policy(policy)
    print(f"\nCoverage for {policy.title} ({policy.uid})")
    print(f"  Requirements traceable : {cov.requirements_traceable}/{cov.requirements_total} ({cov.pct_traceable}%)")
    print(f"  Approved decision      : {cov.requirements_with_approved_decision}/{cov.requirements_total} ({cov.pct_with_approved_decision}%)")
    print(f"  Decisions approved     : {cov.decisions_approved}/{cov.decisions_total} ({cov.pct_decisions_approved}%)")
    print(f"  Rules / Tests / Evidence: {cov.rules_total} / {cov.tests_total} / {cov.evidence_total}")
    print("  Impact                 : " + ", ".join(f"{k}={v}" for k, v in cov.impact.items()))
    return cov.requirements_total == len(REQUIREMENTS)


async def run_seed():
    """Main seed entry point."""
    start = time.time()
    store = Store.from_settings(settings)
    await store.init_schema()

    verify_only = "--verify" in sys.argv

    async with store.session() as session:
        if verify_only:
            ok = await verify_data(session)
            await store.dispose()
            sys.exit(0 if ok else 1)

        print("=" * 60)
        print("Policy Trace — HR1 Work Requirements Seed")
        print("=" * 60)

        try:
            result = await seed_work_requirements(session)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Seed failed; nothing was written")
            raise

        if result is None:
            print("Policy already seeded. Nothing to do.")
        else:
            print(f"Created policy {result.policy.uid}")
            print("Intentional gaps (for dashboard realism):")
            for note, requirement_uid in result.gaps:
                print(f"  - {note}: {requirement_uid}")

        ok = await verify_data(session)

    await store.dispose()

    elapsed = time.time() - start
    print(f"\nSeed completed in {elapsed:.1f}s")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    asyncio.run(run_seed())
