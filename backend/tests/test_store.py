"""Tests for the SQLite store: schema creation, cascades and orphaned attachments."""

import pytest
from sqlalchemy import delete, func, select, text

from policy_trace.config import Settings
from policy_trace.database import Store
from policy_trace.models import Decision, Evidence, Mapping, Policy, Requirement, Rule, TestCase
from policy_trace.services import traversal
from policy_trace.services.records import RecordService
from policy_trace.services.traversal import AttachmentTarget


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


@pytest.mark.asyncio
class TestStore:
    async def test_init_schema_is_idempotent(self, store: Store):
        await store.init_schema()
        await store.init_schema()
        async with store.session() as session:
            assert await _count(session, Policy) == 0

    async def test_foreign_keys_enforced(self, store: Store):
        async with store.session() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar() == 1

    async def test_parent_dir_created(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "trace.sqlite"
        s = Store.from_settings(Settings(db_path=str(db_path)))
        await s.init_schema()
        await s.dispose()
        assert db_path.exists()

    async def test_policy_delete_cascades_but_orphans_attachments(self, store: Store):
        async with store.session() as session:
            records = RecordService(session)
            policy = await records.create_policy(title="P")
            requirement = await records.create_requirement(policy, statement="S")
            decision = await records.create_decision(requirement, decision="D")
            rule = await records.create_rule(decision, name="R", definition_text="x")
            await records.create_test_case(rule, name="t", given_json="{}", expected_json="{}")
            await records.create_mapping(AttachmentTarget.for_decision(decision), ref="svc")
            await records.create_evidence(AttachmentTarget.for_rule(rule), ref="PR-1")
            await session.commit()
            policy_id = policy.id

        async with store.session() as session:
            await session.execute(delete(Policy).where(Policy.id == policy_id))
            await session.commit()

        async with store.session() as session:
            for model in (Policy, Requirement, Decision, Rule, TestCase):
                assert await _count(session, model) == 0
            assert await _count(session, Mapping) == 1
            assert await _count(session, Evidence) == 1

    async def test_orphan_lookup_resolves_to_nothing(self, store: Store):
        async with store.session() as session:
            records = RecordService(session)
            policy = await records.create_policy(title="P")
            requirement = await records.create_requirement(policy, statement="S")
            decision = await records.create_decision(requirement, decision="D")
            target = AttachmentTarget.for_decision(decision)
            await records.create_mapping(target, ref="svc")
            await session.commit()

            await session.execute(delete(Decision).where(Decision.id == decision.id))
            await session.commit()

            assert await traversal.resolve_target(session, target) is None
            assert len(await traversal.list_mappings(session, target)) == 1


class TestSettings:
    def test_database_url(self):
        s = Settings(db_path="/tmp/x.sqlite")
        assert s.database_url == "sqlite+aiosqlite:////tmp/x.sqlite"

    def test_production_needs_file(self):
        with pytest.raises(ValueError):
            Settings(environment="production", db_path=":memory:")
