"""Tests for schema synthesis and strict parsing of model output."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from domain_evolution.services import SchemaSynthesizer, parse_schema_response
from domain_evolution.services.clustering import PatternCluster
from domain_evolution.services.errors import SchemaSynthesisError
from domain_evolution.services.dynamic_tables import build_domain_table
from domain_evolution.services.registry import RegisteredDomain

from helpers import make_schema


def _payload(**overrides) -> str:
    payload = {
        "domainName": "Workout Log",
        "description": "Exercise sessions with sets and reps",
        "requiredFields": [
            {"name": "Exercise", "type": "string", "required": True, "description": "Movement performed"},
            {"name": "reps", "type": "NUMBER", "required": True},
        ],
        "optionalFields": [
            {"name": "weight", "type": "number", "required": False, "description": "Load in pounds"},
            {"name": "performed_on", "type": "date", "required": True},
        ],
    }
    payload.update(overrides)
    return json.dumps(payload)


CLUSTER = PatternCluster(
    seed_turn_id=7,
    turn_ids=[7, 6, 5],
    texts=["Did 3 sets of bench press", "Squats 5x5 at 225", "Deadlift PR 315"],
    avg_similarity=0.86,
)


def test_parse_normalises_names_and_required_flags():
    schema = parse_schema_response("```json\n" + _payload() + "\n```")

    assert schema.domain_name == "workout_log"
    assert [field.name for field in schema.required_fields] == ["exercise", "reps"]
    assert [field.type for field in schema.required_fields] == ["string", "number"]
    assert all(field.required for field in schema.required_fields)
    # Placement in optionalFields wins over the per-field flag.
    assert [field.required for field in schema.optional_fields] == [False, False]
    assert schema.optional_fields[0].description == "Load in pounds"


@pytest.mark.parametrize(
    "content",
    [
        "I think a workout domain would be great!",
        json.dumps(["not", "an", "object"]),
        _payload(domainName=""),
        _payload(description=None),
        _payload(requiredFields="exercise"),
        _payload(requiredFields=[]),
        _payload(optionalFields=[{"name": "mood", "type": "emoji"}]),
        _payload(optionalFields=[]),
        _payload(
            optionalFields=[{"name": f"extra_{index}", "type": "string"} for index in range(5)],
        ),
        _payload(optionalFields=[{"name": "created_at", "type": "date"}]),
        _payload(optionalFields=[{"name": "reps", "type": "number"}]),
        _payload(domainName="2fast"),
    ],
)
def test_parse_rejects_contract_violations(content):
    with pytest.raises(SchemaSynthesisError):
        parse_schema_response(content)


@pytest.mark.asyncio
async def test_synthesize_lists_existing_domains_and_cluster_messages(fake_openai, registry):
    existing = make_schema(
        "reading_note",
        required=(("title", "string"),),
        optional=(("pages", "number"), ("done", "boolean")),
    )
    registry.register(
        RegisteredDomain(
            id=1,
            name="reading_note",
            table_name="dynamic_reading_note",
            schema=existing,
            deployed_at=datetime.utcnow(),
            table=build_domain_table("dynamic_reading_note", existing),
        )
    )
    fake_openai.completions.append(_payload())

    schema = await SchemaSynthesizer(fake_openai, registry).synthesize(CLUSTER)

    assert schema.domain_name == "workout_log"
    [call] = fake_openai.complete_calls
    system_prompt = call["system_prompt"]
    for name in ("food", "task", "entity", "transaction", "reading_note"):
        assert name in system_prompt
    assert '1. "Did 3 sets of bench press"' in system_prompt
    assert '3. "Deadlift PR 315"' in system_prompt


@pytest.mark.asyncio
async def test_synthesize_surfaces_unparseable_output(fake_openai, registry):
    fake_openai.completions.append("Sorry, I cannot help with that.")

    with pytest.raises(SchemaSynthesisError):
        await SchemaSynthesizer(fake_openai, registry).synthesize(CLUSTER)
