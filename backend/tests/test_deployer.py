"""Tests for deploying approved proposals as dynamic tables."""

from __future__ import annotations

from dataclasses import replace

import pytest
from sqlalchemy import inspect, text
from sqlmodel import select

from domain_evolution.models import DeployedDomain, ProposalStatus
from domain_evolution.services import (
    DomainRegistry,
    DynamicRecordService,
    ProposalStore,
    SchemaDeployer,
    audit_dynamic_tables,
)
from domain_evolution.services.errors import DomainConflictError, InvalidTransitionError

from helpers import make_schema


async def _table_names(session) -> set[str]:
    await session.commit()
    return set(await session.run_sync(lambda sync_session: inspect(sync_session.connection()).get_table_names()))


async def _approved(session, domain_name: str = "workout_log") -> int:
    store = ProposalStore(session)
    proposal = await store.create(make_schema(domain_name), [1, 2, 3])
    await store.approve(proposal.id)
    return proposal.id


@pytest.mark.asyncio
async def test_deploy_creates_table_registers_domain_and_marks_proposal(session, registry):
    proposal_id = await _approved(session)

    domain = await SchemaDeployer(session, registry).deploy(proposal_id)

    assert domain.name == "workout_log"
    assert domain.table_name == "dynamic_workout_log"
    assert registry.get("workout_log") is domain
    assert "dynamic_workout_log" in await _table_names(session)
    assert (await ProposalStore(session).require(proposal_id)).status == ProposalStatus.DEPLOYED.value

    columns = await session.run_sync(
        lambda sync_session: {
            column["name"]: column for column in inspect(sync_session.connection()).get_columns("dynamic_workout_log")
        }
    )
    assert list(columns) == ["id", "exercise", "reps", "completed", "performed_on", "created_at", "updated_at"]
    assert columns["exercise"]["nullable"] is False
    assert columns["completed"]["nullable"] is True


@pytest.mark.asyncio
async def test_deploy_requires_approval_and_happens_once(session, registry):
    store = ProposalStore(session)
    pending = await store.create(make_schema("reading_note"), [1])

    with pytest.raises(InvalidTransitionError) as excinfo:
        await SchemaDeployer(session, registry).deploy(pending.id)
    assert excinfo.value.current_status == "pending"

    proposal_id = await _approved(session)
    await SchemaDeployer(session, registry).deploy(proposal_id)
    with pytest.raises(InvalidTransitionError):
        await SchemaDeployer(session, registry).deploy(proposal_id)
    assert registry.count() == 1


@pytest.mark.asyncio
async def test_deploy_refuses_fixed_domain_names(session, registry):
    proposal_id = await _approved(session, "food")

    with pytest.raises(DomainConflictError):
        await SchemaDeployer(session, registry).deploy(proposal_id)

    assert "dynamic_food" not in await _table_names(session)
    assert (await ProposalStore(session).require(proposal_id)).status == "approved"
    assert not registry.has("food")


@pytest.mark.asyncio
async def test_deploy_refuses_when_table_already_exists(session, registry):
    await session.execute(text("CREATE TABLE dynamic_workout_log (id INTEGER PRIMARY KEY)"))
    await session.commit()
    proposal_id = await _approved(session)

    with pytest.raises(DomainConflictError):
        await SchemaDeployer(session, registry).deploy(proposal_id)

    assert (await session.exec(select(DeployedDomain))).all() == []
    assert (await ProposalStore(session).require(proposal_id)).status == "approved"


@pytest.mark.asyncio
async def test_failed_registration_rolls_back_created_table(session, registry, monkeypatch):
    proposal_id = await _approved(session)

    async def _explode(self, proposal_id, target, *, commit=True):
        raise RuntimeError("disk full")

    monkeypatch.setattr(ProposalStore, "transition", _explode)

    with pytest.raises(RuntimeError):
        await SchemaDeployer(session, registry).deploy(proposal_id)

    assert "dynamic_workout_log" not in await _table_names(session)
    assert (await session.exec(select(DeployedDomain))).all() == []
    assert not registry.has("workout_log")


@pytest.mark.asyncio
async def test_registry_load_restores_deployed_domains(session, registry):
    proposal_id = await _approved(session)
    await SchemaDeployer(session, registry).deploy(proposal_id)

    reloaded = DomainRegistry()
    assert await reloaded.load(session) == 1
    assert reloaded.names() == ["workout_log"]
    assert reloaded.is_known("food")
    assert reloaded.is_known("workout_log")

    record = await DynamicRecordService(session, reloaded).create("workout_log", {"exercise": "squat", "reps": 5})
    assert record["exercise"] == "squat"


@pytest.mark.asyncio
async def test_registry_load_replaces_previously_registered_domains(session, registry):
    proposal_id = await _approved(session)
    domain = await SchemaDeployer(session, registry).deploy(proposal_id)
    registry.register(replace(domain, name="sleep_log"))
    assert registry.count() == 2

    assert await registry.load(session) == 1

    assert registry.names() == ["workout_log"]
    assert not registry.has("sleep_log")


@pytest.mark.asyncio
async def test_audit_reports_orphaned_and_missing_tables(session, registry):
    proposal_id = await _approved(session)
    await SchemaDeployer(session, registry).deploy(proposal_id)
    assert (await audit_dynamic_tables(session)).consistent

    await session.execute(text("CREATE TABLE dynamic_stray (id INTEGER PRIMARY KEY)"))
    await session.execute(text("DROP TABLE dynamic_workout_log"))
    await session.commit()

    audit = await audit_dynamic_tables(session)
    assert audit.orphaned_tables == ["dynamic_stray"]
    assert audit.missing_tables == ["dynamic_workout_log"]
    assert not audit.consistent
