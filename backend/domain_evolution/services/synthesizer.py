"""Turn a pattern cluster into a schema proposal via a text-generation call.

Classes:
    SchemaSynthesizer: Renders the instruction, calls the model once, and parses strictly.

Functions:
    parse_schema_response(content): Validate and normalise raw model output.

The synthesizer performs no persistence and never retries; a failed attempt raises
SchemaSynthesisError and the caller decides whether to try again.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from domain_evolution.core.config import get_settings
from domain_evolution.schemas import FIELD_TYPES, FieldDefinition, ProposedSchema
from domain_evolution.services.clustering import PatternCluster
from domain_evolution.services.dynamic_tables import validate_schema_identifiers
from domain_evolution.services.errors import InvalidIdentifierError, SchemaSynthesisError
from domain_evolution.services.openai_client import OpenAIService
from domain_evolution.services.registry import FIXED_DOMAINS, DomainRegistry, get_domain_registry
from domain_evolution.utils.text import normalise_identifier, strip_code_fences

_LOGGER = logging.getLogger(__name__)

MIN_TOTAL_FIELDS = 3
MAX_TOTAL_FIELDS = 6
MIN_REQUIRED_FIELDS = 1
MAX_REQUIRED_FIELDS = 6

SCHEMA_PROPOSAL_PROMPT = """You are analyzing a cluster of similar user messages that the assistant could not classify into existing domains.
Your task is to propose a new domain schema that would allow the assistant to extract structured data from these messages.

Existing domains are: {existing}.

Analyze these messages and propose a NEW domain schema. The domain should be:
1. Distinct from existing domains
2. Useful for tracking/organizing information
3. Have clear, extractable fields

Messages to analyze:
{messages}

Respond with ONLY valid JSON in this exact format:
{{
  "domainName": "lowercase_snake_case_name",
  "description": "Brief description of what this domain tracks",
  "requiredFields": [
    {{"name": "field_name", "type": "string|number|boolean|date", "required": true, "description": "Field description"}}
  ],
  "optionalFields": [
    {{"name": "field_name", "type": "string|number|boolean|date", "required": false, "description": "Field description"}}
  ]
}}

Requirements:
- domainName must be lowercase with underscores (e.g., "workout_log", "book_note")
- field names must be lowercase with underscores
- At least 1 required field
- type must be one of: string, number, boolean, date
- Avoid overlapping with existing domains
- Keep it focused (3-6 total fields)"""

USER_INSTRUCTION = "Analyze these messages and propose a domain schema."


def _parse_fields(raw: Any, *, key: str, required: bool) -> list[FieldDefinition]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SchemaSynthesisError(f"'{key}' must be a list")

    fields: list[FieldDefinition] = []
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            raise SchemaSynthesisError(f"{key}[{position}] must be an object")
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaSynthesisError(f"{key}[{position}] is missing a name")
        field_type = item.get("type")
        if not isinstance(field_type, str) or field_type.strip().lower() not in FIELD_TYPES:
            raise SchemaSynthesisError(
                f"{key}[{position}] ('{name}') has type {field_type!r}; expected one of {', '.join(FIELD_TYPES)}"
            )
        description = item.get("description")
        fields.append(
            FieldDefinition(
                name=normalise_identifier(name),
                type=field_type.strip().lower(),
                required=required,
                description=description.strip() if isinstance(description, str) else "",
            )
        )
    return fields


def parse_schema_response(content: str) -> ProposedSchema:
    cleaned = strip_code_fences(content or "")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SchemaSynthesisError(f"Model output is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise SchemaSynthesisError("Model output must be a JSON object")

    domain_name = parsed.get("domainName")
    if not isinstance(domain_name, str) or not domain_name.strip():
        raise SchemaSynthesisError("Missing or invalid domainName")
    description = parsed.get("description")
    if not isinstance(description, str) or not description.strip():
        raise SchemaSynthesisError("Missing or invalid description")

    required_fields = _parse_fields(parsed.get("requiredFields"), key="requiredFields", required=True)
    optional_fields = _parse_fields(parsed.get("optionalFields"), key="optionalFields", required=False)

    if not MIN_REQUIRED_FIELDS <= len(required_fields) <= MAX_REQUIRED_FIELDS:
        raise SchemaSynthesisError(
            f"Expected {MIN_REQUIRED_FIELDS}-{MAX_REQUIRED_FIELDS} required fields, got {len(required_fields)}"
        )
    total = len(required_fields) + len(optional_fields)
    if not MIN_TOTAL_FIELDS <= total <= MAX_TOTAL_FIELDS:
        raise SchemaSynthesisError(f"Expected {MIN_TOTAL_FIELDS}-{MAX_TOTAL_FIELDS} fields in total, got {total}")

    schema = ProposedSchema(
        domain_name=normalise_identifier(domain_name),
        description=description.strip(),
        required_fields=required_fields,
        optional_fields=optional_fields,
    )
    try:
        validate_schema_identifiers(schema)
    except InvalidIdentifierError as exc:
        raise SchemaSynthesisError(str(exc)) from exc
    return schema


class SchemaSynthesizer:
    def __init__(
        self,
        openai_service: OpenAIService | None = None,
        registry: DomainRegistry | None = None,
    ) -> None:
        self._openai = openai_service or OpenAIService()
        self._registry = registry or get_domain_registry()
        self._settings = get_settings()

    def build_prompt(self, cluster: PatternCluster) -> str:
        existing = [f"{name} ({summary})" for name, summary in FIXED_DOMAINS.items()]
        existing.extend(
            f"{domain.name} ({domain.schema.description})" for domain in self._registry.all()
        )
        messages = "\n".join(f'{index}. "{text}"' for index, text in enumerate(cluster.texts, start=1))
        return SCHEMA_PROPOSAL_PROMPT.format(existing=", ".join(existing), messages=messages)

    async def synthesize(self, cluster: PatternCluster) -> ProposedSchema:
        content = await self._openai.complete(
            USER_INSTRUCTION,
            system_prompt=self.build_prompt(cluster),
            temperature=self._settings.generation_temperature,
        )
        try:
            schema = parse_schema_response(content)
        except SchemaSynthesisError:
            _LOGGER.warning("Rejected schema output for cluster seeded by turn %s: %r", cluster.seed_turn_id, content)
            raise
        _LOGGER.info(
            "Synthesised schema '%s' (%d fields) from %d turns",
            schema.domain_name,
            len(schema.all_fields),
            cluster.size,
        )
        return schema
