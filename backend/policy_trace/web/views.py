"""
HTML views — server-rendered pages and form posts for the record hierarchy.

Every form post redirects (303) back to the page that owns the new record so
a browser refresh never re-submits. Pages for unknown uids render the
"Not found" page with status 404.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import get_db
from policy_trace.middleware.metrics import dashboard_views_total, reports_exported_total
from policy_trace.models import EVIDENCE_KINDS, EVIDENCE_STATUSES, MAPPING_TYPES
from policy_trace.services import traversal
from policy_trace.services.coverage import CoverageService
from policy_trace.services.records import RecordService
from policy_trace.services.report_exporter import MARKDOWN_MEDIA_TYPE, ReportExporter
from policy_trace.services.traversal import AttachmentTarget

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

RECORD_STATUSES = ("draft", "approved", "superseded")

router = APIRouter(include_in_schema=False)


class InvalidChoice(ValueError):
    """A form field held a value outside its allowed set."""


def _choice(value: str, allowed: tuple[str, ...], default: str | None) -> str | None:
    value = value.strip()
    if not value:
        return default
    if value not in allowed:
        raise InvalidChoice(f"Invalid value {value!r}; expected one of: {', '.join(allowed)}")
    return value


async def invalid_choice_handler(request: Request, exc: InvalidChoice) -> PlainTextResponse:
    return PlainTextResponse(str(exc), status_code=400)


def _not_found(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "not_found.html", {}, status_code=404)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


def _safe_back(back: str) -> str:
    # only same-site paths; anything else goes home
    if back.startswith("/") and not back.startswith("//"):
        return back
    return "/"


# ── Policies ─────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse)
async def policies_page(request: Request, db: AsyncSession = Depends(get_db)):
    policies = await traversal.list_policies(db)
    return templates.TemplateResponse(request, "policies.html", {"policies": policies})


@router.get("/policies/new", response_class=HTMLResponse)
async def new_policy_page(request: Request):
    return templates.TemplateResponse(request, "policy_new.html", {})


@router.post("/policies")
async def create_policy(
    title: str = Form(""),
    jurisdiction: str = Form(""),
    program: str = Form(""),
    source_citation: str = Form(""),
    effective_date: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    policy = await RecordService(db).create_policy(
        title=title,
        jurisdiction=jurisdiction,
        program=program,
        source_citation=source_citation,
        effective_date=effective_date,
    )
    return _redirect(f"/policies/{policy.uid}")


@router.get("/policies/{policy_uid}", response_class=HTMLResponse)
async def policy_page(policy_uid: str, request: Request, db: AsyncSession = Depends(get_db)):
    policy = await traversal.get_policy(db, policy_uid)
    if policy is None:
        return _not_found(request)

    # requirement → [(decision, [(rule, test_count)])]
    tree = []
    for requirement in await traversal.list_requirements(db, policy.id):
        decisions = []
        for decision in await traversal.list_decisions(db, requirement.id):
            rules = [
                (rule, len(await traversal.list_test_cases(db, rule.id)))
                for rule in await traversal.list_rules(db, decision.id)
            ]
            decisions.append((decision, rules))
        tree.append((requirement, decisions))

    return templates.TemplateResponse(request, "policy_detail.html", {
        "policy": policy,
        "tree": tree,
        "statuses": RECORD_STATUSES,
    })


@router.post("/policies/{policy_uid}/requirements")
async def add_requirement(
    policy_uid: str,
    statement: str = Form(""),
    status: str = Form(""),
    tags: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    policy = await traversal.get_policy(db, policy_uid)
    if policy is None:
        return PlainTextResponse("Policy not found", status_code=404)
    await RecordService(db).create_requirement(
        policy,
        statement=statement,
        status=_choice(status, RECORD_STATUSES, "draft"),
        tags=tags,
    )
    return _redirect(f"/policies/{policy.uid}")


@router.get("/policies/{policy_uid}/export")
async def export_policy(policy_uid: str, db: AsyncSession = Depends(get_db)):
    report = await ReportExporter(db).export(policy_uid)
    if report is None:
        return PlainTextResponse("Not found", status_code=404)
    reports_exported_total.inc()
    return Response(content=report, media_type=MARKDOWN_MEDIA_TYPE)


# ── Decisions ────────────────────────────────────────────────────────────────

@router.post("/requirements/{requirement_uid}/decisions")
async def add_decision(
    requirement_uid: str,
    decision: str = Form(""),
    rationale: str = Form(""),
    alternatives: str = Form(""),
    owner: str = Form(""),
    status: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    requirement = await traversal.get_requirement(db, requirement_uid)
    if requirement is None:
        return PlainTextResponse("Requirement not found", status_code=404)
    await RecordService(db).create_decision(
        requirement,
        decision=decision,
        rationale=rationale,
        alternatives=alternatives,
        owner=owner,
        status=_choice(status, RECORD_STATUSES, "draft"),
    )
    policy = await traversal.get_policy_by_id(db, requirement.policy_id)
    return _redirect(f"/policies/{policy.uid}")


@router.get("/decisions/{decision_uid}", response_class=HTMLResponse)
async def decision_page(decision_uid: str, request: Request, db: AsyncSession = Depends(get_db)):
    decision = await traversal.get_decision(db, decision_uid)
    if decision is None:
        return _not_found(request)

    policy, requirement = await traversal.lineage(db, decision)
    target = AttachmentTarget.for_decision(decision)
    rules = [
        (rule, len(await traversal.list_test_cases(db, rule.id)))
        for rule in await traversal.list_rules(db, decision.id)
    ]
    return templates.TemplateResponse(request, "decision_detail.html", {
        "policy": policy,
        "requirement": requirement,
        "decision": decision,
        "rules": rules,
        "mappings": await traversal.list_mappings(db, target),
        "evidence": await traversal.list_evidence(db, target),
        "mapping_types": MAPPING_TYPES,
        "evidence_kinds": EVIDENCE_KINDS,
        "evidence_statuses": EVIDENCE_STATUSES,
    })


@router.post("/decisions/{decision_uid}/mappings")
async def add_decision_mapping(
    decision_uid: str,
    type: str = Form(""),
    ref: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    decision = await traversal.get_decision(db, decision_uid)
    if decision is None:
        return PlainTextResponse("Decision not found", status_code=404)
    await RecordService(db).create_mapping(
        AttachmentTarget.for_decision(decision),
        ref=ref,
        type=_choice(type, MAPPING_TYPES, "service"),
        notes=notes,
    )
    return _redirect(f"/decisions/{decision.uid}")


@router.post("/decisions/{decision_uid}/evidence")
async def add_decision_evidence(
    decision_uid: str,
    kind: str = Form(""),
    ref: str = Form(""),
    status: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    decision = await traversal.get_decision(db, decision_uid)
    if decision is None:
        return PlainTextResponse("Decision not found", status_code=404)
    await RecordService(db).create_evidence(
        AttachmentTarget.for_decision(decision),
        ref=ref,
        kind=_choice(kind, EVIDENCE_KINDS, "link"),
        status=_choice(status, EVIDENCE_STATUSES, None),
        notes=notes,
    )
    return _redirect(f"/decisions/{decision.uid}")


@router.post("/decisions/{decision_uid}/rules")
async def add_rule(
    decision_uid: str,
    name: str = Form(""),
    version: str = Form(""),
    definition_text: str = Form(""),
    inputs: str = Form(""),
    exceptions: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    decision = await traversal.get_decision(db, decision_uid)
    if decision is None:
        return PlainTextResponse("Decision not found", status_code=404)
    await RecordService(db).create_rule(
        decision,
        name=name,
        definition_text=definition_text,
        version=version,
        inputs=inputs,
        exceptions=exceptions,
    )
    return _redirect(f"/decisions/{decision.uid}")


# ── Rules ────────────────────────────────────────────────────────────────────

@router.get("/rules/{rule_uid}", response_class=HTMLResponse)
async def rule_page(rule_uid: str, request: Request, db: AsyncSession = Depends(get_db)):
    rule = await traversal.get_rule(db, rule_uid)
    if rule is None:
        return _not_found(request)

    decision = await traversal.get_decision_by_id(db, rule.decision_id)
    policy, requirement = await traversal.lineage(db, decision)
    target = AttachmentTarget.for_rule(rule)
    return templates.TemplateResponse(request, "rule_detail.html", {
        "policy": policy,
        "requirement": requirement,
        "decision": decision,
        "rule": rule,
        "test_cases": await traversal.list_test_cases(db, rule.id),
        "mappings": await traversal.list_mappings(db, target),
        "evidence": await traversal.list_evidence(db, target),
        "mapping_types": MAPPING_TYPES,
        "evidence_kinds": EVIDENCE_KINDS,
        "evidence_statuses": EVIDENCE_STATUSES,
    })


@router.post("/rules/{rule_uid}/mappings")
async def add_rule_mapping(
    rule_uid: str,
    type: str = Form(""),
    ref: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    rule = await traversal.get_rule(db, rule_uid)
    if rule is None:
        return PlainTextResponse("Rule not found", status_code=404)
    await RecordService(db).create_mapping(
        AttachmentTarget.for_rule(rule),
        ref=ref,
        type=_choice(type, MAPPING_TYPES, "service"),
        notes=notes,
    )
    return _redirect(f"/rules/{rule.uid}")


@router.post("/rules/{rule_uid}/evidence")
async def add_rule_evidence(
    rule_uid: str,
    kind: str = Form(""),
    ref: str = Form(""),
    status: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    rule = await traversal.get_rule(db, rule_uid)
    if rule is None:
        return PlainTextResponse("Rule not found", status_code=404)
    await RecordService(db).create_evidence(
        AttachmentTarget.for_rule(rule),
        ref=ref,
        kind=_choice(kind, EVIDENCE_KINDS, "link"),
        status=_choice(status, EVIDENCE_STATUSES, None),
        notes=notes,
    )
    return _redirect(f"/rules/{rule.uid}")


@router.post("/rules/{rule_uid}/test-cases")
async def add_test_case(
    rule_uid: str,
    name: str = Form(""),
    given_json: str = Form(""),
    expected_json: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    rule = await traversal.get_rule(db, rule_uid)
    if rule is None:
        return PlainTextResponse("Rule not found", status_code=404)
    await RecordService(db).create_test_case(
        rule,
        name=name,
        given_json=given_json,
        expected_json=expected_json,
        notes=notes,
    )
    return _redirect(f"/rules/{rule.uid}")


# ── Attachment deletes ───────────────────────────────────────────────────────

@router.post("/mappings/{mapping_uid}/delete")
async def delete_mapping(
    mapping_uid: str,
    back: str = Form("/"),
    db: AsyncSession = Depends(get_db),
):
    mapping = await traversal.get_mapping(db, mapping_uid)
    if mapping is not None:
        await RecordService(db).delete_mapping(mapping)
    return _redirect(_safe_back(back))


@router.post("/evidence/{evidence_uid}/delete")
async def delete_evidence(
    evidence_uid: str,
    back: str = Form("/"),
    db: AsyncSession = Depends(get_db),
):
    evidence = await traversal.get_evidence(db, evidence_uid)
    if evidence is not None:
        await RecordService(db).delete_evidence(evidence)
    return _redirect(_safe_back(back))


# ── Dashboard ────────────────────────────────────────────────────────────────

@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    policy_id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Coverage for the chosen policy, or the newest one when none is chosen."""
    policies = await traversal.list_policies(db)
    if policy_id:
        policy = await traversal.get_policy(db, policy_id)
        if policy is None:
            return _not_found(request)
    else:
        policy = policies[0] if policies else None

    coverage = None
    if policy is not None:
        coverage = await CoverageService(db).for_policy(policy)
        dashboard_views_total.inc()

    flow_max = max((count for _, count in coverage.flow), default=0) if coverage else 0
    return templates.TemplateResponse(request, "dashboard.html", {
        "policies": policies,
        "policy": policy,
        "coverage": coverage,
        "flow_max": flow_max,
    })
