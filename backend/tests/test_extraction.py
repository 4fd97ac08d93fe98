"""Tests for the default extraction entry point."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from domain_evolution.services import LLMExtractor
from domain_evolution.services.dynamic_tables import build_domain_table
from domain_evolution.services.extraction import FALLBACK_CONFIDENCE, parse_extraction_response
from domain_evolution.services.registry import RegisteredDomain

from helpers import make_schema


def test_parse_reads_aliased_fields_and_clamps_confidence():
    content = json.dumps(
        {
            "intent": "store",
            "dataType": "workout_log",
            "extracted": {"exercise": "row", "reps": 12},
            "missingFields": ["completed"],
            "response": "Logged it.",
            "followUpQuestion": None,
            "confidence": 1.7,
        }
    )

    result = parse_extraction_response(f"```json\n{content}\n```")

    assert result.intent == "store"
    assert result.data_type == "workout_log"
    assert result.extracted == {"exercise": "row", "reps": 12}
    assert result.missing_fields == ["completed"]
    assert result.confidence == 1.0


@pytest.mark.parametrize("content", ["Sure, logged!", "[1, 2]", ""])
def test_parse_falls_back_to_low_confidence_conversation(content):
    result = parse_extraction_response(content)

    assert result.intent == "conversation"
    assert result.data_type is None
    assert result.confidence == FALLBACK_CONFIDENCE


@pytest.mark.asyncio
async def test_extractor_prompt_includes_dynamic_domains(fake_openai, registry):
    schema = make_schema()
    registry.register(
        RegisteredDomain(
            id=1,
            name="workout_log",
            table_name="dynamic_workout_log",
            schema=schema,
            deployed_at=datetime.utcnow(),
            table=build_domain_table("dynamic_workout_log", schema),
        )
    )
    fake_openai.completions.append(
        json.dumps({"intent": "store", "dataType": "workout_log", "extracted": {"exercise": "row", "reps": 3}})
    )

    extractor = LLMExtractor(fake_openai, registry)
    result = await extractor.extract("Rowed 3 sets", [])

    assert result.data_type == "workout_log"
    [call] = fake_openai.complete_calls
    assert call["prompt"] == "Rowed 3 sets"
    assert call["history"] == []
    assert '### workout_log (dataType: "workout_log")' in call["system_prompt"]
    assert "Required: exercise, reps" in call["system_prompt"]
    assert "- food:" in call["system_prompt"]
