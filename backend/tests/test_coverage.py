"""Tests for the coverage aggregation behind the dashboard."""

import pytest

from policy_trace.services.coverage import CoverageService, percentage
from policy_trace.services.records import RecordService
from policy_trace.services.traversal import AttachmentTarget


async def _chain(records: RecordService, decision_status: str = "approved"):
    """Policy → requirement → decision → rule → two tests, evidence on the decision."""
    policy = await records.create_policy(title="P1")
    requirement = await records.create_requirement(policy, statement="Verify identity")
    decision = await records.create_decision(
        requirement, decision="Use the identity hub", status=decision_status,
    )
    rule = await records.create_rule(decision, name="IdentityCheck", definition_text="IF x THEN y")
    await records.create_test_case(rule, name="ok", given_json="{}", expected_json='{"ok": true}')
    await records.create_test_case(rule, name="fail", given_json="{}", expected_json='{"ok": false}')
    await records.create_evidence(AttachmentTarget.for_decision(decision), ref="ADR-001", kind="doc")
    return policy, requirement, decision, rule


# ── Percentages ───────────────────────────────────────────────────────────────

class TestPercentage:
    def test_zero_denominator_is_zero(self):
        assert percentage(0, 0) == 0
        assert percentage(5, 0) == 0

    def test_halves_round_up(self):
        assert percentage(1, 8) == 13  # 12.5
        assert percentage(1, 2) == 50
        assert percentage(3, 8) == 38  # 37.5

    def test_whole_and_fractional(self):
        assert percentage(3, 12) == 25
        assert percentage(8, 11) == 73
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67


# ── Per-requirement flags ─────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRequirementCoverage:
    async def test_fully_traceable_chain(self, db_session, records):
        policy, *_ = await _chain(records)
        cov = await CoverageService(db_session).for_policy(policy)

        row = cov.requirements[0]
        assert row.has_approved_decision is True
        assert row.has_rule is True
        assert row.has_tests is True
        assert row.test_count == 2
        assert row.has_evidence is True
        assert row.fully_traceable is True

    async def test_draft_decision_breaks_traceability_only(self, db_session, records):
        policy, *_ = await _chain(records, decision_status="draft")
        cov = await CoverageService(db_session).for_policy(policy)

        row = cov.requirements[0]
        assert row.has_approved_decision is False
        assert row.fully_traceable is False
        assert row.has_rule is True
        assert row.has_tests is True
        assert row.has_evidence is True

    async def test_requirement_without_decisions(self, db_session, records):
        policy = await records.create_policy(title="Empty")
        await records.create_requirement(policy, statement="Nothing decided")
        cov = await CoverageService(db_session).for_policy(policy)

        row = cov.requirements[0]
        assert row.decisions == []
        assert row.rules == []
        assert row.test_count == 0
        assert row.evidence_count == 0
        assert not (row.has_approved_decision or row.has_rule or row.has_tests or row.has_evidence)
        assert row.fully_traceable is False

    async def test_evidence_on_rule_counts(self, db_session, records):
        policy = await records.create_policy(title="P")
        requirement = await records.create_requirement(policy, statement="S")
        decision = await records.create_decision(requirement, decision="D", status="approved")
        rule = await records.create_rule(decision, name="R", definition_text="def")
        await records.create_evidence(AttachmentTarget.for_rule(rule), ref="PR-1", kind="pr")

        row = (await CoverageService(db_session).for_policy(policy)).requirements[0]
        assert row.evidence_count == 1
        assert row.has_tests is False
        assert row.fully_traceable is False

    async def test_superseded_decision_is_not_approved(self, db_session, records):
        policy = await records.create_policy(title="P")
        requirement = await records.create_requirement(policy, statement="S")
        await records.create_decision(requirement, decision="old", status="superseded")
        await records.create_decision(requirement, decision="new", status="approved")

        row = (await CoverageService(db_session).for_policy(policy)).requirements[0]
        assert len(row.decisions) == 2
        assert len(row.approved_decisions) == 1


# ── Policy rollup ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPolicyCoverage:
    async def test_policy_without_requirements(self, db_session, records):
        policy = await records.create_policy(title="Blank")
        cov = await CoverageService(db_session).for_policy(policy)

        assert cov.requirements_total == 0
        assert cov.pct_traceable == 0
        assert cov.pct_with_approved_decision == 0
        assert cov.pct_decisions_approved == 0
        assert cov.impact == {"service": 0, "api": 0, "data": 0, "integration": 0, "security": 0}

    async def test_totals_and_percentages(self, db_session, records):
        policy, requirement, *_ = await _chain(records)
        # second requirement with a draft decision only
        other = await records.create_requirement(policy, statement="Second")
        await records.create_decision(other, decision="Maybe", status="draft")

        cov = await CoverageService(db_session).for_policy(policy)
        assert cov.requirements_total == 2
        assert cov.requirements_traceable == 1
        assert cov.pct_traceable == 50
        assert cov.decisions_total == 2
        assert cov.decisions_approved == 1
        assert cov.rules_total == 1
        assert cov.tests_total == 2
        assert cov.evidence_total == 1
        assert cov.flow == [
            ("Requirements", 2),
            ("Decisions", 2),
            ("Rules", 1),
            ("Test cases", 2),
            ("Evidence items", 1),
        ]

    async def test_impact_tally_spans_decisions_and_rules(self, db_session, records):
        policy = await records.create_policy(title="P")
        requirement = await records.create_requirement(policy, statement="S")
        decision = await records.create_decision(requirement, decision="D")
        rule = await records.create_rule(decision, name="R", definition_text="def")
        await records.create_mapping(AttachmentTarget.for_rule(rule), ref="POST /eval", type="api")
        await records.create_mapping(AttachmentTarget.for_decision(decision), ref="elig-svc", type="service")

        cov = await CoverageService(db_session).for_policy(policy)
        assert cov.impact == {"service": 1, "api": 1, "data": 0, "integration": 0, "security": 0}

    async def test_unknown_mapping_type_is_appended(self, db_session, records):
        policy = await records.create_policy(title="P")
        requirement = await records.create_requirement(policy, statement="S")
        decision = await records.create_decision(requirement, decision="D")
        await records.create_mapping(AttachmentTarget.for_decision(decision), ref="x", type="queue")

        cov = await CoverageService(db_session).for_policy(policy)
        assert cov.impact["queue"] == 1
        assert list(cov.impact)[:5] == ["service", "api", "data", "integration", "security"]

    async def test_other_policies_do_not_leak(self, db_session, records):
        policy, *_ = await _chain(records)
        other = await records.create_policy(title="Other")
        await records.create_requirement(other, statement="Elsewhere")

        cov = await CoverageService(db_session).for_policy(other)
        assert cov.requirements_total == 1
        assert cov.evidence_total == 0

    async def test_unknown_policy_uid(self, db_session):
        assert await CoverageService(db_session).for_policy_uid("f" * 32) is None
