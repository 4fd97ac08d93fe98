"""High level orchestration for the review flow.

Classes:
    EvolutionService: Composes detection, synthesis, proposal review, deployment, and
        reprocessing for the reviewer-facing endpoints.

Functions:
    to_turn_resource / to_proposal_resource / to_domain_resource: ORM -> API schema helpers.
"""

from __future__ import annotations

from typing import Optional, Sequence

from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.models import CapturedTurn, ProposalStatus, SchemaProposal
from domain_evolution.schemas import (
    CapturedTurnResource,
    DeployedDomainResource,
    ExtractionResult,
    ProposalResource,
    ReprocessSummary,
)
from domain_evolution.services.clustering import PatternCluster, PatternDetector
from domain_evolution.services.deployer import SchemaDeployer
from domain_evolution.services.embedding_cache import EmbeddingCache, get_embedding_cache
from domain_evolution.services.extraction import Extractor
from domain_evolution.services.openai_client import OpenAIService
from domain_evolution.services.proposals import ProposalStore, proposal_schema
from domain_evolution.services.registry import DomainRegistry, RegisteredDomain, get_domain_registry
from domain_evolution.services.reprocessing import ReprocessingService
from domain_evolution.services.synthesizer import SchemaSynthesizer


def to_turn_resource(turn: CapturedTurn, cache: EmbeddingCache) -> CapturedTurnResource:
    return CapturedTurnResource(
        id=turn.id,
        raw_text=turn.raw_text,
        extraction=ExtractionResult.model_validate(turn.extraction),
        confidence=turn.confidence,
        created_at=turn.created_at,
        embedded=cache.has(turn.id),
    )


def to_proposal_resource(proposal: SchemaProposal) -> ProposalResource:
    return ProposalResource(
        id=proposal.id,
        domain_name=proposal.domain_name,
        description=proposal.description,
        schema=proposal_schema(proposal),
        cluster_turn_ids=proposal.cluster_turn_ids,
        status=proposal.status,
        created_at=proposal.created_at,
    )


def to_domain_resource(domain: RegisteredDomain) -> DeployedDomainResource:
    return DeployedDomainResource(
        id=domain.id,
        name=domain.name,
        table_name=domain.table_name,
        schema=domain.schema,
        deployed_at=domain.deployed_at,
    )


class EvolutionService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        openai_service: OpenAIService | None = None,
        extractor: Extractor | None = None,
        registry: DomainRegistry | None = None,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self._session = session
        self._openai = openai_service
        self._extractor = extractor
        self._registry = registry or get_domain_registry()
        self._cache = cache or get_embedding_cache()
        self.proposals = ProposalStore(session)

    async def detect_patterns(
        self,
        min_size: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> list[PatternCluster]:
        return await PatternDetector(self._session, self._cache).detect(min_size, threshold)

    async def propose_schema(
        self,
        cluster_index: int,
        min_size: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> SchemaProposal:
        """Synthesise for one detected cluster and persist the result as a pending proposal."""

        cluster = await PatternDetector(self._session, self._cache).cluster_at(cluster_index, min_size, threshold)
        schema = await SchemaSynthesizer(self._openai, self._registry).synthesize(cluster)
        return await self.proposals.create(schema, cluster.turn_ids)

    async def list_proposals(self, status: Optional[ProposalStatus] = None) -> list[SchemaProposal]:
        return await self.proposals.list(status)

    async def approve(self, proposal_id: int) -> SchemaProposal:
        return await self.proposals.approve(proposal_id)

    async def reject(self, proposal_id: int) -> SchemaProposal:
        return await self.proposals.reject(proposal_id)

    async def deploy(self, proposal_id: int) -> RegisteredDomain:
        return await SchemaDeployer(self._session, self._registry).deploy(proposal_id)

    def list_domains(self) -> list[RegisteredDomain]:
        return self._registry.all()

    def _reprocessor(self) -> ReprocessingService:
        return ReprocessingService(self._session, self._extractor, self._registry, self._cache)

    async def reprocess(self, turn_ids: Sequence[int], domain_name: str) -> ReprocessSummary:
        return await self._reprocessor().reprocess(turn_ids, domain_name)

    async def preview(self, turn_ids: Sequence[int]) -> list[CapturedTurn]:
        return await self._reprocessor().preview(turn_ids)
