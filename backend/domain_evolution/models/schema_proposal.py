"""Schema proposal ORM model.

Classes:
    ProposalStatus: Enumeration of the review lifecycle states.
    SchemaProposal: A candidate record type synthesised from a cluster of captured turns.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, Text
from sqlmodel import Field, SQLModel


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DEPLOYED = "deployed"


class SchemaProposal(SQLModel, table=True):
    __tablename__ = "schema_proposals"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'deployed')",
            name="ck_schema_proposal_status",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    domain_name: str = Field(index=True)
    description: str = Field(sa_column=Column(Text, nullable=False))
    schema_json: str = Field(sa_column=Column(Text, nullable=False))
    cluster_turn_ids_json: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(default=ProposalStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def schema_payload(self) -> dict[str, Any]:
        return json.loads(self.schema_json)

    @property
    def cluster_turn_ids(self) -> list[int]:
        return [int(value) for value in json.loads(self.cluster_turn_ids_json or "[]")]
