"""Deploy approved schema proposals as live tables.

Classes:
    SchemaDeployer: Creates the table, records the deployed domain, marks the proposal
        deployed, and registers the domain, all inside one transaction.
    TableAudit: Mismatches between dynamic tables and deployed-domain rows.

Functions:
    audit_dynamic_tables(session): Report orphaned tables and rows whose table is missing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from sqlalchemy import inspect, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.core.config import get_settings
from domain_evolution.models import DeployedDomain, ProposalStatus
from domain_evolution.services.dynamic_tables import build_domain_table, table_name_for
from domain_evolution.services.errors import DomainConflictError, InvalidTransitionError
from domain_evolution.services.proposals import ProposalStore, proposal_schema
from domain_evolution.services.registry import DomainRegistry, RegisteredDomain, get_domain_registry

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TableAudit:
    orphaned_tables: list[str] = field(default_factory=list)
    missing_tables: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.orphaned_tables and not self.missing_tables


async def _table_names(session: AsyncSession) -> set[str]:
    return set(await session.run_sync(lambda sync_session: inspect(sync_session.connection()).get_table_names()))


async def audit_dynamic_tables(session: AsyncSession) -> TableAudit:
    """Compare prefixed tables with deployed-domain rows. Reports only; never repairs."""

    prefix = get_settings().dynamic_table_prefix
    tables = {name for name in await _table_names(session) if name.startswith(prefix)}
    registered = set((await session.exec(select(DeployedDomain.table_name))).all())

    audit = TableAudit(
        orphaned_tables=sorted(tables - registered),
        missing_tables=sorted(registered - tables),
    )
    for name in audit.orphaned_tables:
        _LOGGER.error("Table %s exists but no deployed domain references it; manual cleanup required", name)
    for name in audit.missing_tables:
        _LOGGER.error("Deployed domain references table %s which does not exist", name)
    return audit


class SchemaDeployer:
    def __init__(self, session: AsyncSession, registry: DomainRegistry | None = None) -> None:
        self._session = session
        self._registry = registry or get_domain_registry()

    async def deploy(self, proposal_id: int) -> RegisteredDomain:
        store = ProposalStore(self._session)
        proposal = await store.require(proposal_id)
        if proposal.status != ProposalStatus.APPROVED.value:
            raise InvalidTransitionError(proposal_id, proposal.status, ProposalStatus.DEPLOYED.value)

        schema = proposal_schema(proposal)
        table_name = table_name_for(schema.domain_name)
        table = build_domain_table(table_name, schema)
        await self._ensure_available(schema.domain_name, table_name)

        # Table, domain row, and status change commit or roll back together.
        try:
            await self._session.run_sync(lambda sync_session: table.create(sync_session.connection()))
            row = DeployedDomain(
                name=schema.domain_name,
                table_name=table_name,
                schema_json=json.dumps(schema.model_dump(mode="json")),
            )
            self._session.add(row)
            await self._session.flush()
            await store.transition(proposal_id, ProposalStatus.DEPLOYED, commit=False)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            _LOGGER.exception("Deployment of proposal %s failed; rolled back table %s", proposal_id, table_name)
            raise

        domain = RegisteredDomain(
            id=row.id,
            name=row.name,
            table_name=row.table_name,
            schema=schema,
            deployed_at=row.deployed_at,
            table=table,
        )
        self._registry.register(domain)
        _LOGGER.info("Deployed domain '%s' from proposal %s (table %s)", domain.name, proposal_id, table_name)
        return domain

    async def _ensure_available(self, domain_name: str, table_name: str) -> None:
        if self._registry.is_known(domain_name) or self._registry.table_in_use(table_name):
            raise DomainConflictError(f"Domain '{domain_name}' already exists")

        stored = await self._session.exec(
            select(DeployedDomain).where(
                or_(DeployedDomain.name == domain_name, DeployedDomain.table_name == table_name)
            )
        )
        if stored.first() is not None:
            raise DomainConflictError(f"Domain '{domain_name}' is already deployed")

        if table_name in await _table_names(self._session):
            raise DomainConflictError(f"Table '{table_name}' already exists")
