"""Captured turn ORM model.

Classes:
    CapturedTurn: A conversational input extraction could not confidently classify.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, Float, Text
from sqlmodel import Field, SQLModel


class CapturedTurn(SQLModel, table=True):
    __tablename__ = "captured_turns"
    __table_args__ = (
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_captured_turn_confidence"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    raw_text: str = Field(sa_column=Column(Text, nullable=False))
    extraction_json: str = Field(sa_column=Column(Text, nullable=False))
    confidence: float = Field(sa_column=Column(Float, nullable=False, index=True))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def extraction(self) -> dict[str, Any]:
        return json.loads(self.extraction_json or "{}")
