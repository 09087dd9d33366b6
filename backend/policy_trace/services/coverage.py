"""
Coverage Service — per-requirement traceability snapshot for one policy.

A requirement is *fully traceable* when it has at least one approved
decision, at least one rule, at least one test case and at least one piece of
evidence (on any of its decisions or rules). The policy rollup sums those
signals; the impact tally counts architecture mappings by type.

All queries are reads; nothing here writes to the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.models import MAPPING_TYPES, Decision, Policy, Requirement, Rule
from policy_trace.services.traversal import (
    AttachmentTarget,
    get_policy,
    list_decisions,
    list_evidence,
    list_mappings,
    list_requirements,
    list_rules,
    list_test_cases,
)


def percentage(numerator: int, denominator: int) -> int:
    """Whole-number percentage, halves rounded up; 0 for an empty denominator."""
    if not denominator:
        return 0
    value = Decimal(100 * numerator) / Decimal(denominator)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class RequirementCoverage:
    requirement: Requirement
    decisions: list[Decision] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)
    test_count: int = 0
    evidence_count: int = 0

    @property
    def approved_decisions(self) -> list[Decision]:
        return [d for d in self.decisions if d.status == "approved"]

    @property
    def has_approved_decision(self) -> bool:
        return len(self.approved_decisions) > 0

    @property
    def has_rule(self) -> bool:
        return len(self.rules) > 0

    @property
    def has_tests(self) -> bool:
        return self.test_count > 0

    @property
    def has_evidence(self) -> bool:
        return self.evidence_count > 0

    @property
    def fully_traceable(self) -> bool:
        return (
            self.has_approved_decision
            and self.has_rule
            and self.has_tests
            and self.has_evidence
        )


@dataclass
class PolicyCoverage:
    policy: Policy
    requirements: list[RequirementCoverage] = field(default_factory=list)
    impact: dict[str, int] = field(default_factory=dict)

    # ── requirement counts ──

    @property
    def requirements_total(self) -> int:
        return len(self.requirements)

    @property
    def requirements_traceable(self) -> int:
        return sum(1 for r in self.requirements if r.fully_traceable)

    @property
    def requirements_with_approved_decision(self) -> int:
        return sum(1 for r in self.requirements if r.has_approved_decision)

    @property
    def requirements_with_rule(self) -> int:
        return sum(1 for r in self.requirements if r.has_rule)

    @property
    def requirements_with_tests(self) -> int:
        return sum(1 for r in self.requirements if r.has_tests)

    @property
    def requirements_with_evidence(self) -> int:
        return sum(1 for r in self.requirements if r.has_evidence)

    # ── totals ──

    @property
    def decisions_total(self) -> int:
        return sum(len(r.decisions) for r in self.requirements)

    @property
    def decisions_approved(self) -> int:
        return sum(len(r.approved_decisions) for r in self.requirements)

    @property
    def rules_total(self) -> int:
        return sum(len(r.rules) for r in self.requirements)

    @property
    def tests_total(self) -> int:
        return sum(r.test_count for r in self.requirements)

    @property
    def evidence_total(self) -> int:
        return sum(r.evidence_count for r in self.requirements)

    # ── percentages ──

    @property
    def pct_traceable(self) -> int:
        return percentage(self.requirements_traceable, self.requirements_total)

    @property
    def pct_with_approved_decision(self) -> int:
        return percentage(self.requirements_with_approved_decision, self.requirements_total)

    @property
    def pct_with_rule(self) -> int:
        return percentage(self.requirements_with_rule, self.requirements_total)

    @property
    def pct_with_tests(self) -> int:
        return percentage(self.requirements_with_tests, self.requirements_total)

    @property
    def pct_with_evidence(self) -> int:
        return percentage(self.requirements_with_evidence, self.requirements_total)

    @property
    def pct_decisions_approved(self) -> int:
        return percentage(self.decisions_approved, self.decisions_total)

    @property
    def flow(self) -> list[tuple[str, int]]:
        """Stage counts along the chain, for spotting where it thins out."""
        return [
            ("Requirements", self.requirements_total),
            ("Decisions", self.decisions_total),
            ("Rules", self.rules_total),
            ("Test cases", self.tests_total),
            ("Evidence items", self.evidence_total),
        ]


class CoverageService:
    """Computes coverage snapshots against a session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def for_policy_uid(self, policy_uid: str) -> PolicyCoverage | None:
        """Return the snapshot for *policy_uid*, or ``None`` if no such policy."""
        policy = await get_policy(self.db, policy_uid)
        if policy is None:
            return None
        return await self.for_policy(policy)

    async def for_policy(self, policy: Policy) -> PolicyCoverage:
        requirements = await list_requirements(self.db, policy.id)
        rows = [await self.requirement_coverage(r) for r in requirements]
        impact = await self.impact_tally(rows)
        return PolicyCoverage(policy=policy, requirements=rows, impact=impact)

    async def requirement_coverage(self, requirement: Requirement) -> RequirementCoverage:
        decisions = await list_decisions(self.db, requirement.id)

        rules: list[Rule] = []
        for d in decisions:
            rules.extend(await list_rules(self.db, d.id))

        test_count = 0
        for rule in rules:
            test_count += len(await list_test_cases(self.db, rule.id))

        evidence_count = 0
        for d in decisions:
            evidence_count += len(await list_evidence(self.db, AttachmentTarget.for_decision(d)))
        for rule in rules:
            evidence_count += len(await list_evidence(self.db, AttachmentTarget.for_rule(rule)))

        return RequirementCoverage(
            requirement=requirement,
            decisions=decisions,
            rules=rules,
            test_count=test_count,
            evidence_count=evidence_count,
        )

    async def impact_tally(self, rows: list[RequirementCoverage]) -> dict[str, int]:
        """Count mappings by type across every decision and rule in *rows*."""
        impact = {t: 0 for t in MAPPING_TYPES}
        targets: list[AttachmentTarget] = []
        for row in rows:
            targets.extend(AttachmentTarget.for_decision(d) for d in row.decisions)
            targets.extend(AttachmentTarget.for_rule(rule) for rule in row.rules)

        for target in targets:
            for m in await list_mappings(self.db, target):
                # legacy rows with an unknown type still get counted
                impact[m.type] = impact.get(m.type, 0) + 1
        return impact
