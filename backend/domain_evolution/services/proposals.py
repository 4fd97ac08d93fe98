"""Persistence and review lifecycle for schema proposals.

Classes:
    ProposalStore: Stores proposals and guards every status change.

Lifecycle: pending -> approved | rejected, approved -> deployed. Rejected and deployed
are terminal. Any other requested change raises InvalidTransitionError carrying the
current status; nothing is written in that case.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.models import ProposalStatus, SchemaProposal
from domain_evolution.schemas import ProposedSchema
from domain_evolution.services.dynamic_tables import validate_schema_identifiers
from domain_evolution.services.errors import DomainConflictError, InvalidTransitionError, NotFoundError

_LOGGER = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ProposalStatus, frozenset[ProposalStatus]] = {
    ProposalStatus.PENDING: frozenset({ProposalStatus.APPROVED, ProposalStatus.REJECTED}),
    ProposalStatus.APPROVED: frozenset({ProposalStatus.DEPLOYED}),
    ProposalStatus.REJECTED: frozenset(),
    ProposalStatus.DEPLOYED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return ProposalStatus(target) in ALLOWED_TRANSITIONS[ProposalStatus(current)]


def proposal_schema(proposal: SchemaProposal) -> ProposedSchema:
    return ProposedSchema.model_validate(proposal.schema_payload)


class ProposalStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, schema: ProposedSchema, cluster_turn_ids: Sequence[int]) -> SchemaProposal:
        validate_schema_identifiers(schema)
        if not schema.required_fields:
            raise ValueError(f"Proposal '{schema.domain_name}' needs at least one required field")

        clash = await self._session.exec(
            select(SchemaProposal)
            .where(SchemaProposal.domain_name == schema.domain_name)
            .where(SchemaProposal.status != ProposalStatus.REJECTED.value)
        )
        existing = clash.first()
        if existing is not None:
            raise DomainConflictError(
                f"Domain '{schema.domain_name}' is already proposed (proposal {existing.id}, status '{existing.status}')"
            )

        proposal = SchemaProposal(
            domain_name=schema.domain_name,
            description=schema.description,
            schema_json=json.dumps(schema.model_dump(mode="json")),
            cluster_turn_ids_json=json.dumps([int(turn_id) for turn_id in cluster_turn_ids]),
            status=ProposalStatus.PENDING.value,
        )
        self._session.add(proposal)
        await self._session.commit()
        await self._session.refresh(proposal)
        _LOGGER.info("Created proposal %s for domain '%s'", proposal.id, proposal.domain_name)
        return proposal

    async def list(self, status: Optional[ProposalStatus] = None) -> list[SchemaProposal]:
        stmt = select(SchemaProposal).order_by(SchemaProposal.created_at.desc(), SchemaProposal.id.desc())
        if status is not None:
            stmt = stmt.where(SchemaProposal.status == ProposalStatus(status).value)
        return list((await self._session.exec(stmt)).all())

    async def get(self, proposal_id: int) -> SchemaProposal | None:
        return await self._session.get(SchemaProposal, proposal_id)

    async def require(self, proposal_id: int) -> SchemaProposal:
        proposal = await self.get(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    async def approve(self, proposal_id: int) -> SchemaProposal:
        return await self.transition(proposal_id, ProposalStatus.APPROVED)

    async def reject(self, proposal_id: int) -> SchemaProposal:
        return await self.transition(proposal_id, ProposalStatus.REJECTED)

    async def transition(
        self,
        proposal_id: int,
        target: ProposalStatus,
        *,
        commit: bool = True,
    ) -> SchemaProposal:
        proposal = await self.require(proposal_id)
        target = ProposalStatus(target)
        if not can_transition(proposal.status, target):
            raise InvalidTransitionError(proposal_id, proposal.status, target.value)

        previous = proposal.status
        proposal.status = target.value
        self._session.add(proposal)
        if commit:
            await self._session.commit()
        else:
            await self._session.flush()
        _LOGGER.info("Proposal %s moved from '%s' to '%s'", proposal_id, previous, target.value)
        return proposal
