"""Pydantic models describing record schemas and extraction output.

Classes:
    FieldDefinition: A single typed field of a proposed or deployed record type.
    ProposedSchema: Domain name, description, and ordered required/optional field lists.
    ExtractionResult: Structured output of the extraction layer for one conversational turn.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FieldType = Literal["string", "number", "boolean", "date"]
FIELD_TYPES: tuple[str, ...] = ("string", "number", "boolean", "date")


class FieldDefinition(BaseModel):
    name: str = Field(min_length=1)
    type: FieldType
    required: bool = False
    description: str = ""


class ProposedSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain_name: str = Field(alias="domainName", min_length=1)
    description: str = Field(min_length=1)
    required_fields: list[FieldDefinition] = Field(default_factory=list, alias="requiredFields")
    optional_fields: list[FieldDefinition] = Field(default_factory=list, alias="optionalFields")

    @property
    def all_fields(self) -> list[FieldDefinition]:
        return [*self.required_fields, *self.optional_fields]

    def field_map(self) -> dict[str, FieldDefinition]:
        return {field.name: field for field in self.all_fields}


class ExtractionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: str = "conversation"
    data_type: Optional[str] = Field(default=None, alias="dataType")
    extracted: Optional[dict[str, Any]] = None
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")
    response: str = ""
    follow_up_question: Optional[str] = Field(default=None, alias="followUpQuestion")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
