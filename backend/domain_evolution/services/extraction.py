"""Extraction entry point used when captured turns are replayed.

Classes:
    Extractor: Protocol for anything that turns a message into an ExtractionResult.
    LLMExtractor: Default implementation; one completion call whose instruction lists the
        fixed domains and every dynamic domain currently in the registry.

Functions:
    parse_extraction_response(content): Lenient parse; malformed output degrades to a
        low-confidence ``conversation`` result instead of raising.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Protocol, Sequence

from domain_evolution.core.config import get_settings
from domain_evolution.schemas import ExtractionResult
from domain_evolution.services.openai_client import OpenAIService, get_openai_service
from domain_evolution.services.registry import FIXED_DOMAINS, DomainRegistry, get_domain_registry
from domain_evolution.utils.text import strip_code_fences

_LOGGER = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3

EXTRACTION_PROMPT = """Classify the user's message and extract structured data.

Intents:
- store: the user is telling you something to record
- query: the user is asking about previously recorded data
- conversation: anything else

## Fixed Domains
{fixed}
{dynamic}

Respond with valid JSON only, no markdown:
{{
  "intent": "store|query|conversation",
  "dataType": "<domain name or null>",
  "extracted": {{"<field>": "<value>"}} or null,
  "missingFields": ["<required field not provided>"],
  "response": "<short reply to the user>",
  "followUpQuestion": "<question or null>",
  "confidence": <0-1 float>
}}"""


class Extractor(Protocol):
    async def extract(self, message: str, history: Sequence[dict[str, str]] = ()) -> ExtractionResult:
        ...


def _fallback(content: str) -> ExtractionResult:
    return ExtractionResult(
        intent="conversation",
        response=content or "",
        confidence=FALLBACK_CONFIDENCE,
    )


def _clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.5
    if number != number:
        return 0.5
    return min(1.0, max(0.0, number))


def parse_extraction_response(content: str) -> ExtractionResult:
    try:
        parsed = json.loads(strip_code_fences(content or ""))
    except json.JSONDecodeError:
        _LOGGER.warning("Extraction output was not JSON; treating as conversation")
        return _fallback(content)
    if not isinstance(parsed, dict):
        return _fallback(content)

    extracted = parsed.get("extracted")
    missing = parsed.get("missingFields")
    data_type = parsed.get("dataType")
    follow_up = parsed.get("followUpQuestion")
    return ExtractionResult(
        intent=str(parsed.get("intent") or "conversation"),
        data_type=data_type if isinstance(data_type, str) and data_type else None,
        extracted=extracted if isinstance(extracted, dict) else None,
        missing_fields=[str(item) for item in missing] if isinstance(missing, list) else [],
        response=str(parsed.get("response") or ""),
        follow_up_question=follow_up if isinstance(follow_up, str) else None,
        confidence=_clamp_confidence(parsed.get("confidence", 0.5)),
    )


class LLMExtractor:
    def __init__(
        self,
        openai_service: OpenAIService | None = None,
        registry: DomainRegistry | None = None,
    ) -> None:
        self._openai = openai_service or OpenAIService()
        self._registry = registry or get_domain_registry()
        self._settings = get_settings()

    def build_system_prompt(self) -> str:
        fixed = "\n".join(f"- {name}: {summary}" for name, summary in FIXED_DOMAINS.items())
        sections = []
        for domain in self._registry.all():
            required = ", ".join(field.name for field in domain.schema.required_fields) or "none"
            optional = ", ".join(field.name for field in domain.schema.optional_fields) or "none"
            sections.append(
                f'### {domain.name} (dataType: "{domain.name}")\n'
                f"{domain.schema.description}\n"
                f"Required: {required}\n"
                f"Optional: {optional}"
            )
        dynamic = "\n## Dynamic Domains (User-Created)\n\n" + "\n\n".join(sections) if sections else ""
        return EXTRACTION_PROMPT.format(fixed=fixed, dynamic=dynamic)

    async def extract(self, message: str, history: Sequence[dict[str, str]] = ()) -> ExtractionResult:
        content = await self._openai.complete(
            message,
            system_prompt=self.build_system_prompt(),
            history=history,
            temperature=self._settings.extraction_temperature,
        )
        return parse_extraction_response(content)


@lru_cache()
def get_extractor() -> Extractor:
    return LLMExtractor(get_openai_service(), get_domain_registry())
