"""Process-wide catalogue of fixed and dynamically deployed record types.

Classes:
    RegisteredDomain: Immutable snapshot of a deployed domain plus its SQLAlchemy table.
    DomainRegistry: Name -> RegisteredDomain lookup, loaded at startup and updated on deploy.

Functions:
    get_domain_registry(): Return the process-wide registry instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache

from sqlalchemy import Table
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.models import DeployedDomain
from domain_evolution.schemas import ProposedSchema
from domain_evolution.services.dynamic_tables import build_domain_table

_LOGGER = logging.getLogger(__name__)

FIXED_DOMAINS: dict[str, str] = {
    "food": "meals and eating",
    "task": "reminders and todos",
    "entity": "people, places, and organizations",
    "transaction": "money and spending",
}


@dataclass(frozen=True, slots=True)
class RegisteredDomain:
    id: int
    name: str
    table_name: str
    schema: ProposedSchema
    deployed_at: datetime
    table: Table = field(compare=False, repr=False)

    @classmethod
    def from_model(cls, row: DeployedDomain) -> "RegisteredDomain":
        schema = ProposedSchema.model_validate(row.schema_payload)
        return cls(
            id=row.id,
            name=row.name,
            table_name=row.table_name,
            schema=schema,
            deployed_at=row.deployed_at,
            table=build_domain_table(row.table_name, schema),
        )


class DomainRegistry:
    def __init__(self) -> None:
        self._domains: dict[str, RegisteredDomain] = {}

    async def load(self, session: AsyncSession) -> int:
        rows = (await session.exec(select(DeployedDomain).order_by(DeployedDomain.id))).all()
        loaded = {row.name: RegisteredDomain.from_model(row) for row in rows}
        self.clear()
        self._domains.update(loaded)
        _LOGGER.info("Loaded %d dynamic domains", len(self._domains))
        return len(self._domains)

    def register(self, domain: RegisteredDomain) -> None:
        self._domains[domain.name] = domain
        _LOGGER.info("Registered domain '%s' (table %s)", domain.name, domain.table_name)

    def get(self, name: str) -> RegisteredDomain | None:
        return self._domains.get(name)

    def has(self, name: str) -> bool:
        return name in self._domains

    def is_known(self, name: str) -> bool:
        """True for fixed record types and registered dynamic domains alike."""

        return name in FIXED_DOMAINS or name in self._domains

    def table_in_use(self, table_name: str) -> bool:
        return any(domain.table_name == table_name for domain in self._domains.values())

    def all(self) -> list[RegisteredDomain]:
        return list(self._domains.values())

    def names(self) -> list[str]:
        return list(self._domains)

    def count(self) -> int:
        return len(self._domains)

    def clear(self) -> None:
        self._domains.clear()


@lru_cache()
def get_domain_registry() -> DomainRegistry:
    return DomainRegistry()
