"""Tests for the JSON API."""

import pytest
from httpx import AsyncClient


async def _create_chain(client: AsyncClient, decision_status: str = "approved") -> dict:
    policy = (await client.post("/api/policies", json={
        "title": "HR1 Work Requirements",
        "jurisdiction": "US (Federal)",
        "effective_date": "2026-01-01",
    })).json()
    requirement = (await client.post(
        f"/api/policies/{policy['uid']}/requirements",
        json={"statement": "Verify identity", "tags": "identity"},
    )).json()
    decision = (await client.post(
        f"/api/requirements/{requirement['uid']}/decisions",
        json={"decision": "Use the identity hub", "owner": "Engineering", "status": decision_status},
    )).json()
    rule = (await client.post(
        f"/api/decisions/{decision['uid']}/rules",
        json={"name": "IdentityCheck", "definition_text": "IF verified THEN pass"},
    )).json()
    return {"policy": policy, "requirement": requirement, "decision": decision, "rule": rule}


# ── Policies & requirements ───────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPolicies:
    async def test_create_and_fetch_policy(self, client: AsyncClient):
        resp = await client.post("/api/policies", json={"title": "  Padded title  ", "program": ""})
        assert resp.status_code == 201
        created = resp.json()
        assert created["title"] == "Padded title"
        assert created["program"] is None
        assert len(created["uid"]) == 32

        resp = await client.get(f"/api/policies/{created['uid']}")
        assert resp.status_code == 200
        assert resp.json()["requirements"] == []

    async def test_list_newest_first(self, client: AsyncClient):
        first = (await client.post("/api/policies", json={"title": "first"})).json()
        second = (await client.post("/api/policies", json={"title": "second"})).json()

        resp = await client.get("/api/policies")
        uids = [p["uid"] for p in resp.json()["items"]]
        assert uids == [second["uid"], first["uid"]]

    async def test_missing_title_rejected(self, client: AsyncClient):
        resp = await client.post("/api/policies", json={"jurisdiction": "X"})
        assert resp.status_code == 422

    async def test_empty_title_is_stored(self, client: AsyncClient):
        resp = await client.post("/api/policies", json={"title": ""})
        assert resp.status_code == 201
        assert resp.json()["title"] == ""

    async def test_unknown_policy(self, client: AsyncClient):
        resp = await client.get("/api/policies/" + "a" * 32)
        assert resp.status_code == 404

    async def test_requirement_defaults(self, client: AsyncClient):
        policy = (await client.post("/api/policies", json={"title": "P"})).json()
        resp = await client.post(
            f"/api/policies/{policy['uid']}/requirements", json={"statement": "S"},
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "draft"
        assert resp.json()["tags"] is None

    async def test_requirement_status_validated(self, client: AsyncClient):
        policy = (await client.post("/api/policies", json={"title": "P"})).json()
        resp = await client.post(
            f"/api/policies/{policy['uid']}/requirements",
            json={"statement": "S", "status": "pending"},
        )
        assert resp.status_code == 422

    async def test_requirement_on_unknown_policy(self, client: AsyncClient):
        resp = await client.post("/api/policies/nope/requirements", json={"statement": "S"})
        assert resp.status_code == 404


# ── Decisions, rules, test cases ──────────────────────────────────────────────

@pytest.mark.asyncio
class TestRecords:
    async def test_approved_decision_is_stamped(self, client: AsyncClient):
        chain = await _create_chain(client)
        assert chain["decision"]["status"] == "approved"
        assert chain["decision"]["approved_at"] is not None

    async def test_draft_decision_not_stamped(self, client: AsyncClient):
        chain = await _create_chain(client, decision_status="draft")
        assert chain["decision"]["approved_at"] is None

    async def test_rule_version_defaults(self, client: AsyncClient):
        chain = await _create_chain(client)
        assert chain["rule"]["version"] == "0.1"

    async def test_test_case_json_stored_verbatim(self, client: AsyncClient):
        chain = await _create_chain(client)
        resp = await client.post(f"/api/rules/{chain['rule']['uid']}/test-cases", json={
            "name": "happy",
            "given_json": '{"hours": 90}',
            "expected_json": "not json at all",
        })
        assert resp.status_code == 201
        assert resp.json()["expected_json"] == "not json at all"

        resp = await client.get(f"/api/rules/{chain['rule']['uid']}/test-cases")
        assert [tc["name"] for tc in resp.json()] == ["happy"]

    async def test_children_listed_in_creation_order(self, client: AsyncClient):
        chain = await _create_chain(client)
        decision_uid = chain["decision"]["uid"]
        for name in ("B", "A", "C"):
            await client.post(
                f"/api/decisions/{decision_uid}/rules",
                json={"name": name, "definition_text": "x"},
            )
        resp = await client.get(f"/api/decisions/{decision_uid}/rules")
        assert [r["name"] for r in resp.json()] == ["IdentityCheck", "B", "A", "C"]

    async def test_parent_must_exist(self, client: AsyncClient):
        resp = await client.post("/api/requirements/missing/decisions", json={"decision": "D"})
        assert resp.status_code == 404
        resp = await client.post("/api/decisions/missing/rules", json={"name": "R", "definition_text": "x"})
        assert resp.status_code == 404
        resp = await client.post("/api/rules/missing/test-cases", json={
            "name": "n", "given_json": "{}", "expected_json": "{}",
        })
        assert resp.status_code == 404


# ── Mappings & evidence ───────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestAttachments:
    async def test_attach_and_list(self, client: AsyncClient):
        chain = await _create_chain(client)
        rule_uid = chain["rule"]["uid"]

        resp = await client.post(f"/api/rules/{rule_uid}/mappings", json={"ref": "POST /eval", "type": "api"})
        assert resp.status_code == 201
        assert resp.json()["target_type"] == "rule"
        assert resp.json()["target_id"] == rule_uid

        resp = await client.post(f"/api/rules/{rule_uid}/evidence", json={"ref": "PR-1"})
        assert resp.status_code == 201
        assert resp.json()["kind"] == "link"
        assert resp.json()["status"] is None

        resp = await client.get(f"/api/rules/{rule_uid}/attachments")
        body = resp.json()
        assert [m["ref"] for m in body["mappings"]] == ["POST /eval"]
        assert [e["ref"] for e in body["evidence"]] == ["PR-1"]

        # the decision above has nothing attached
        resp = await client.get(f"/api/decisions/{chain['decision']['uid']}/attachments")
        assert resp.json() == {"mappings": [], "evidence": []}

    async def test_mapping_type_defaults_to_service(self, client: AsyncClient):
        chain = await _create_chain(client)
        resp = await client.post(f"/api/decisions/{chain['decision']['uid']}/mappings", json={"ref": "svc"})
        assert resp.json()["type"] == "service"

    async def test_invalid_kind_rejected(self, client: AsyncClient):
        chain = await _create_chain(client)
        resp = await client.post(
            f"/api/decisions/{chain['decision']['uid']}/evidence", json={"ref": "x", "kind": "tweet"},
        )
        assert resp.status_code == 422

    async def test_unknown_target(self, client: AsyncClient):
        resp = await client.post("/api/rules/missing/mappings", json={"ref": "x"})
        assert resp.status_code == 404
        resp = await client.get("/api/decisions/missing/attachments")
        assert resp.status_code == 404

    async def test_rule_uid_is_not_a_decision(self, client: AsyncClient):
        chain = await _create_chain(client)
        resp = await client.post(f"/api/decisions/{chain['rule']['uid']}/mappings", json={"ref": "x"})
        assert resp.status_code == 404

    async def test_delete(self, client: AsyncClient):
        chain = await _create_chain(client)
        decision_uid = chain["decision"]["uid"]
        mapping = (await client.post(f"/api/decisions/{decision_uid}/mappings", json={"ref": "svc"})).json()
        evidence = (await client.post(f"/api/decisions/{decision_uid}/evidence", json={"ref": "doc"})).json()

        assert (await client.delete(f"/api/mappings/{mapping['uid']}")).status_code == 204
        assert (await client.delete(f"/api/evidence/{evidence['uid']}")).status_code == 204
        assert (await client.delete(f"/api/mappings/{mapping['uid']}")).status_code == 404

        resp = await client.get(f"/api/decisions/{decision_uid}/attachments")
        assert resp.json() == {"mappings": [], "evidence": []}


# ── Dashboard, export, ops ────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestDashboardAndExport:
    async def test_dashboard(self, client: AsyncClient):
        chain = await _create_chain(client)
        rule_uid = chain["rule"]["uid"]
        await client.post(f"/api/rules/{rule_uid}/test-cases", json={
            "name": "t", "given_json": "{}", "expected_json": "{}",
        })
        await client.post(f"/api/rules/{rule_uid}/evidence", json={"ref": "PR-1", "kind": "pr"})
        await client.post(f"/api/rules/{rule_uid}/mappings", json={"ref": "db", "type": "data"})

        resp = await client.get(f"/api/dashboard/{chain['policy']['uid']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["totals"]["requirements"] == 1
        assert body["totals"]["requirements_traceable"] == 1
        assert body["percentages"]["traceable"] == 100
        assert body["impact"]["data"] == 1
        assert body["requirements"][0]["fully_traceable"] is True

    async def test_dashboard_unknown_policy(self, client: AsyncClient):
        resp = await client.get("/api/dashboard/" + "b" * 32)
        assert resp.status_code == 404

    async def test_export(self, client: AsyncClient):
        chain = await _create_chain(client)
        resp = await client.get(f"/api/policies/{chain['policy']['uid']}/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/markdown")
        assert resp.text.startswith("# Policy Implementation Report")
        assert "##### Rule: IdentityCheck (v0.1)" in resp.text

    async def test_export_unknown_policy(self, client: AsyncClient):
        resp = await client.get("/api/policies/missing/export")
        assert resp.status_code == 404

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["components"]["database"]["status"] == "connected"

    async def test_metrics(self, client: AsyncClient):
        await client.post("/api/policies", json={"title": "P"})
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert 'records_created_total{entity="policy"}' in resp.text

    async def test_response_headers(self, client: AsyncClient):
        resp = await client.get("/api/policies", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Referrer-Policy"] == "no-referrer"

    async def test_headers_on_pages_and_reports(self, client: AsyncClient):
        policy = (await client.post("/api/policies", json={"title": "P"})).json()
        for url in ("/", "/policies/missing", f"/api/policies/{policy['uid']}/export"):
            resp = await client.get(url)
            assert resp.headers["X-Frame-Options"] == "DENY"
            assert resp.headers["Permissions-Policy"].startswith("camera=()")
