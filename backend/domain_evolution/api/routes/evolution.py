"""Review endpoints for the domain evolution pipeline.

Endpoints:
    list_pending / capture_turn / delete_pending: Pending capture store.
    detect_patterns / embed_pending / similarity_matrix / propose_schema: Pattern detection and synthesis.
    list_proposals / get_proposal / approve_proposal / reject_proposal / deploy_proposal: Proposal lifecycle.
    list_domains: Deployed dynamic domains.
    reprocess_turns / preview_reprocess: Migrate captured turns into a deployed domain.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from openai import OpenAIError
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.api.deps import get_evolution_service, http_error
from domain_evolution.core.config import get_settings
from domain_evolution.db.session import get_session
from domain_evolution.models import ProposalStatus
from domain_evolution.schemas import (
    CaptureRequest,
    CaptureResponse,
    CapturedTurnResource,
    DeployedDomainResource,
    DeployResponse,
    EmbedAllResponse,
    PatternClusterResource,
    PatternParams,
    PatternsResponse,
    PendingListResponse,
    PreviewRequest,
    ProposalResource,
    ProposalTransitionResponse,
    ReprocessRequest,
    ReprocessSummary,
    SimilarityMatrixResponse,
)
from domain_evolution.services import (
    CaptureService,
    CaptureStore,
    EmbeddingCache,
    EvolutionService,
    PatternCluster,
    get_capture_service,
    get_embedding_cache,
)
from domain_evolution.services.evolution import (
    to_domain_resource,
    to_proposal_resource,
    to_turn_resource,
)

router = APIRouter(prefix="/evolution", tags=["evolution"])

_SERVICE_ERRORS = (LookupError, ValueError, OpenAIError)


def _to_cluster_resource(cluster: PatternCluster) -> PatternClusterResource:
    return PatternClusterResource(
        seed_turn_id=cluster.seed_turn_id,
        turn_ids=list(cluster.turn_ids),
        texts=list(cluster.texts),
        avg_similarity=cluster.avg_similarity,
        size=cluster.size,
    )


@router.get("/pending", response_model=PendingListResponse)
async def list_pending(
    limit: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> PendingListResponse:
    store = CaptureStore(session, cache)
    turns = await store.list_recent(limit or get_settings().pending_list_limit)
    return PendingListResponse(
        entries=[to_turn_resource(turn, cache) for turn in turns],
        total=await store.count(),
        embedded=cache.count(),
    )


@router.post("/pending", response_model=CaptureResponse)
async def capture_turn(
    payload: CaptureRequest,
    session: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
    capture_service: CaptureService = Depends(get_capture_service),
) -> CaptureResponse:
    turn = await capture_service.capture_if_uncertain(session, payload.raw_text, payload.extraction)
    if turn is None:
        return CaptureResponse(captured=False)
    return CaptureResponse(captured=True, entry=to_turn_resource(turn, cache))


@router.delete("/pending/{turn_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pending(
    turn_id: int,
    session: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> None:
    if not await CaptureStore(session, cache).delete(turn_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Captured turn {turn_id} not found")


@router.get("/patterns", response_model=PatternsResponse)
async def detect_patterns(
    min_size: Optional[int] = Query(default=None, ge=1),
    threshold: Optional[float] = Query(default=None, ge=-1.0, le=1.0),
    service: EvolutionService = Depends(get_evolution_service),
) -> PatternsResponse:
    settings = get_settings()
    size = min_size if min_size is not None else settings.cluster_default_min_size
    cutoff = threshold if threshold is not None else settings.cluster_default_threshold
    clusters = await service.detect_patterns(size, cutoff)
    return PatternsResponse(
        patterns=[_to_cluster_resource(cluster) for cluster in clusters],
        count=len(clusters),
        params=PatternParams(min_size=size, threshold=cutoff),
    )


@router.post("/patterns/embed", response_model=EmbedAllResponse)
async def embed_pending(
    session: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
    capture_service: CaptureService = Depends(get_capture_service),
) -> EmbedAllResponse:
    await cache.load(session)
    embedded = await capture_service.embed_all_pending(session)
    return EmbedAllResponse(embedded=embedded, total=cache.count())


@router.get("/patterns/similarity", response_model=SimilarityMatrixResponse)
async def similarity_matrix(
    turn_ids: Optional[list[int]] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> SimilarityMatrixResponse:
    if not turn_ids:
        turns = await CaptureStore(session, cache).list_recent(get_settings().pending_list_limit)
        turn_ids = [turn.id for turn in turns]
    return SimilarityMatrixResponse(turn_ids=turn_ids, matrix=cache.similarity_matrix(turn_ids))


@router.post(
    "/patterns/{cluster_index}/propose",
    response_model=ProposalResource,
    status_code=status.HTTP_201_CREATED,
)
async def propose_schema(
    cluster_index: int,
    min_size: Optional[int] = Query(default=None, ge=1),
    threshold: Optional[float] = Query(default=None, ge=-1.0, le=1.0),
    service: EvolutionService = Depends(get_evolution_service),
) -> ProposalResource:
    try:
        proposal = await service.propose_schema(cluster_index, min_size, threshold)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return to_proposal_resource(proposal)


@router.get("/proposals", response_model=list[ProposalResource])
async def list_proposals(
    status_filter: Optional[ProposalStatus] = Query(default=None, alias="status"),
    service: EvolutionService = Depends(get_evolution_service),
) -> list[ProposalResource]:
    return [to_proposal_resource(proposal) for proposal in await service.list_proposals(status_filter)]


@router.get("/proposals/{proposal_id}", response_model=ProposalResource)
async def get_proposal(
    proposal_id: int,
    service: EvolutionService = Depends(get_evolution_service),
) -> ProposalResource:
    try:
        proposal = await service.proposals.require(proposal_id)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return to_proposal_resource(proposal)


@router.post("/proposals/{proposal_id}/approve", response_model=ProposalTransitionResponse)
async def approve_proposal(
    proposal_id: int,
    service: EvolutionService = Depends(get_evolution_service),
) -> ProposalTransitionResponse:
    try:
        proposal = await service.approve(proposal_id)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return ProposalTransitionResponse(success=True, status=proposal.status)


@router.post("/proposals/{proposal_id}/reject", response_model=ProposalTransitionResponse)
async def reject_proposal(
    proposal_id: int,
    service: EvolutionService = Depends(get_evolution_service),
) -> ProposalTransitionResponse:
    try:
        proposal = await service.reject(proposal_id)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return ProposalTransitionResponse(success=True, status=proposal.status)


@router.post("/proposals/{proposal_id}/deploy", response_model=DeployResponse)
async def deploy_proposal(
    proposal_id: int,
    service: EvolutionService = Depends(get_evolution_service),
) -> DeployResponse:
    try:
        domain = await service.deploy(proposal_id)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return DeployResponse(success=True, domain=to_domain_resource(domain))


@router.get("/domains", response_model=list[DeployedDomainResource])
async def list_domains(
    service: EvolutionService = Depends(get_evolution_service),
) -> list[DeployedDomainResource]:
    return [to_domain_resource(domain) for domain in service.list_domains()]


@router.post("/reprocess", response_model=ReprocessSummary)
async def reprocess_turns(
    payload: ReprocessRequest,
    service: EvolutionService = Depends(get_evolution_service),
) -> ReprocessSummary:
    try:
        return await service.reprocess(payload.turn_ids, payload.domain_name)
    except _SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post("/reprocess/preview", response_model=list[CapturedTurnResource])
async def preview_reprocess(
    payload: PreviewRequest,
    service: EvolutionService = Depends(get_evolution_service),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> list[CapturedTurnResource]:
    return [to_turn_resource(turn, cache) for turn in await service.preview(payload.turn_ids)]
