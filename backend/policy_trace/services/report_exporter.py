"""
Report Exporter — renders a policy and everything beneath it as Markdown.

Heading levels carry the hierarchy: the report title is level 1, each
requirement level 3, each decision level 4 and each rule level 5. User text
is written verbatim; Markdown in it is interpreted by whatever renders the
report.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.models import Decision, Evidence, Mapping, Policy, Requirement, Rule
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

MARKDOWN_MEDIA_TYPE = "text/markdown; charset=utf-8"

_MISSING = "—"


def _or_missing(value: str | None) -> str:
    return value or _MISSING


def format_utc(ts: datetime) -> str:
    """Millisecond UTC timestamp with a trailing Z; stored values are naive UTC."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts.isoformat(timespec="milliseconds") + "Z"


def format_mapping(m: Mapping) -> str:
    line = f"- {m.type}: {m.ref}"
    if m.notes:
        line += f" — {m.notes}"
    return line


def format_evidence(ev: Evidence) -> str:
    line = f"- {ev.kind}: {ev.ref}"
    if ev.status:
        line += f" ({ev.status})"
    if ev.notes:
        line += f" — {ev.notes}"
    return line


class ReportExporter:
    """Builds the policy implementation report."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def export(self, policy_uid: str) -> str | None:
        """Return the Markdown report for *policy_uid*, or ``None`` if unknown."""
        policy = await get_policy(self.db, policy_uid)
        if policy is None:
            return None

        out: list[str] = []
        self._write_header(out, policy)
        for requirement in await list_requirements(self.db, policy.id):
            await self._write_requirement(out, requirement)
        return "".join(out)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _write_header(self, out: list[str], policy: Policy) -> None:
        out.append("# Policy Implementation Report\n\n")
        out.append(f"- **Title:** {policy.title}\n")
        out.append(f"- **Policy ID:** {policy.uid}\n")
        out.append(f"- **Jurisdiction:** {_or_missing(policy.jurisdiction)}\n")
        out.append(f"- **Program:** {_or_missing(policy.program)}\n")
        out.append(f"- **Effective date:** {_or_missing(policy.effective_date)}\n")
        out.append(f"- **Citation:** {_or_missing(policy.source_citation)}\n\n")
        out.append("## Requirements\n\n")

    async def _write_requirement(self, out: list[str], r: Requirement) -> None:
        out.append(f"### Requirement: {r.uid}\n\n")
        out.append(f"{r.statement}\n\n")
        out.append(f"- Status: {r.status}\n")
        if r.tags:
            out.append(f"- Tags: {r.tags}\n")
        out.append("\n")

        decisions = await list_decisions(self.db, r.id)
        if not decisions:
            out.append("> No decisions recorded yet.\n\n")
            return

        for d in decisions:
            await self._write_decision(out, d)

    async def _write_decision(self, out: list[str], d: Decision) -> None:
        out.append(f"#### Decision (ADR): {d.uid}\n\n")
        out.append(f"- Status: {d.status}\n")
        out.append(f"- Owner: {_or_missing(d.owner)}\n")
        if d.approved_at:
            out.append(f"- Approved at: {format_utc(d.approved_at)}\n")
        out.append("\n")
        out.append(f"**Decision:**\n\n{d.decision}\n\n")
        if d.rationale:
            out.append(f"**Rationale:**\n\n{d.rationale}\n\n")
        if d.alternatives:
            out.append(f"**Alternatives:**\n\n{d.alternatives}\n\n")

        target = AttachmentTarget.for_decision(d)
        await self._write_attachments(out, target, "Decision")

        rules = await list_rules(self.db, d.id)
        if not rules:
            out.append("> No rules recorded for this decision yet.\n\n")
            return

        for rule in rules:
            await self._write_rule(out, rule)

    async def _write_rule(self, out: list[str], rule: Rule) -> None:
        out.append(f"##### Rule: {rule.name} (v{rule.version})\n\n")
        out.append(f"- Rule ID: {rule.uid}\n")
        if rule.inputs:
            out.append(f"- Inputs: {rule.inputs}\n")
        if rule.exceptions:
            out.append(f"- Exceptions: {rule.exceptions}\n")
        out.append("\n")
        out.append(f"```\n{rule.definition_text}\n```\n\n")

        await self._write_attachments(out, AttachmentTarget.for_rule(rule), "Rule")

        test_cases = await list_test_cases(self.db, rule.id)
        out.append(f"**Test Cases ({len(test_cases)})**\n\n")
        if not test_cases:
            out.append("> No test cases recorded yet.\n\n")
            return

        for tc in test_cases:
            out.append(f"- {tc.name}\n")
            out.append(f"  - Given: `{tc.given_json}`\n")
            out.append(f"  - Expected: `{tc.expected_json}`\n")
            if tc.notes:
                out.append(f"  - Notes: {tc.notes}\n")
        out.append("\n")

    async def _write_attachments(self, out: list[str], target: AttachmentTarget, label: str) -> None:
        mappings = await list_mappings(self.db, target)
        if mappings:
            out.append(f"**Architecture mappings ({label})**\n\n")
            out.extend(format_mapping(m) + "\n" for m in mappings)
            out.append("\n")

        evidence = await list_evidence(self.db, target)
        if evidence:
            out.append(f"**Evidence ({label})**\n\n")
            out.extend(format_evidence(ev) + "\n" for ev in evidence)
            out.append("\n")
