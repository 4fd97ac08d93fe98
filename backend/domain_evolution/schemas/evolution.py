"""Schemas for the evolution review endpoints.

Classes:
    CaptureRequest, CapturedTurnResource, PendingListResponse: Captured turn workflows.
    PatternClusterResource, PatternsResponse, EmbedAllResponse, SimilarityMatrixResponse: Pattern detection payloads.
    ProposalResource, ProposalTransitionResponse: Schema proposal review payloads.
    DeployedDomainResource, DeployResponse: Deployment payloads.
    ReprocessRequest, PreviewRequest, ReprocessResult, ReprocessSummary: Reprocessing payloads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from domain_evolution.schemas.domain import ExtractionResult, ProposedSchema


class CaptureRequest(BaseModel):
    raw_text: str = Field(min_length=1, max_length=8000)
    extraction: ExtractionResult


class CapturedTurnResource(BaseModel):
    id: int
    raw_text: str
    extraction: ExtractionResult
    confidence: float
    created_at: datetime
    embedded: bool = False


class CaptureResponse(BaseModel):
    captured: bool
    entry: Optional[CapturedTurnResource] = None


class PendingListResponse(BaseModel):
    entries: list[CapturedTurnResource]
    total: int
    embedded: int


class PatternClusterResource(BaseModel):
    seed_turn_id: int
    turn_ids: list[int]
    texts: list[str]
    avg_similarity: float = Field(
        description="Mean similarity between the seed turn and each other member; not a pairwise mean.",
    )
    size: int


class PatternParams(BaseModel):
    min_size: int
    threshold: float


class PatternsResponse(BaseModel):
    patterns: list[PatternClusterResource]
    count: int
    params: PatternParams


class EmbedAllResponse(BaseModel):
    embedded: int
    total: int


class SimilarityMatrixResponse(BaseModel):
    turn_ids: list[int]
    matrix: list[list[float]]


class ProposalResource(BaseModel):
    id: int
    domain_name: str
    description: str
    schema_: ProposedSchema = Field(alias="schema")
    cluster_turn_ids: list[int]
    status: str
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True)


class ProposalTransitionResponse(BaseModel):
    success: bool
    status: str


class DeployedDomainResource(BaseModel):
    id: int
    name: str
    table_name: str
    schema_: ProposedSchema = Field(alias="schema")
    deployed_at: datetime

    model_config = ConfigDict(populate_by_name=True)


class DeployResponse(BaseModel):
    success: bool
    domain: DeployedDomainResource


class ReprocessRequest(BaseModel):
    turn_ids: list[int] = Field(min_length=1)
    domain_name: str = Field(min_length=1)


class PreviewRequest(BaseModel):
    turn_ids: list[int]


class ReprocessResult(BaseModel):
    turn_id: int
    raw_text: Optional[str] = None
    success: bool
    saved_id: Optional[int] = None
    error: Optional[str] = None


class ReprocessSummary(BaseModel):
    domain_name: str
    total: int
    successful: int
    failed: int
    results: list[ReprocessResult]
