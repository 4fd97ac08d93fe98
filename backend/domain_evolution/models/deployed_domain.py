"""Deployed domain ORM model.

Classes:
    DeployedDomain: Links a runtime-registered record type to its dedicated table and frozen schema.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class DeployedDomain(SQLModel, table=True):
    __tablename__ = "deployed_domains"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    table_name: str = Field(unique=True)
    schema_json: str = Field(sa_column=Column(Text, nullable=False))
    deployed_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def schema_payload(self) -> dict[str, Any]:
        return json.loads(self.schema_json)
