"""Turn embedding persistence model.

Classes:
    TurnEmbedding: Persists the embedding vector for a captured turn along with dimensionality metadata.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel


class TurnEmbedding(SQLModel, table=True):
    __tablename__ = "turn_embeddings"

    turn_id: int = Field(foreign_key="captured_turns.id", primary_key=True)
    dim: int
    model: Optional[str] = None
    vector: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    vector_dtype: str = Field(default="float32")
    created_at: datetime = Field(default_factory=datetime.utcnow)
