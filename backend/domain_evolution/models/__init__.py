"""Convenience exports for ORM models.

Surface the SQLModel classes backing the pipeline so calling code can import them from a single module.
"""

from .captured_turn import CapturedTurn
from .turn_embedding import TurnEmbedding
from .schema_proposal import ProposalStatus, SchemaProposal
from .deployed_domain import DeployedDomain

__all__ = [
    "CapturedTurn",
    "TurnEmbedding",
    "ProposalStatus",
    "SchemaProposal",
    "DeployedDomain",
]
