"""Convenience exports for API schemas.

Re-exports the pydantic models used across the backend so consumers can import from one module.
"""

from .domain import FIELD_TYPES, ExtractionResult, FieldDefinition, FieldType, ProposedSchema
from .evolution import (
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
    ReprocessResult,
    ReprocessSummary,
    SimilarityMatrixResponse,
)

__all__ = [
    "FIELD_TYPES",
    "FieldType",
    "FieldDefinition",
    "ProposedSchema",
    "ExtractionResult",
    "CaptureRequest",
    "CaptureResponse",
    "CapturedTurnResource",
    "PendingListResponse",
    "PatternClusterResource",
    "PatternParams",
    "PatternsResponse",
    "EmbedAllResponse",
    "SimilarityMatrixResponse",
    "ProposalResource",
    "ProposalTransitionResponse",
    "DeployedDomainResource",
    "DeployResponse",
    "ReprocessRequest",
    "PreviewRequest",
    "ReprocessResult",
    "ReprocessSummary",
]
