"""Fakes and builders shared by the test modules."""

from typing import Any, Sequence

from domain_evolution.schemas import ExtractionResult, FieldDefinition, ProposedSchema
from domain_evolution.services import EmbeddingBatch
from domain_evolution.utils.text import normalise_for_embedding


class FakeOpenAIService:
    """Canned embeddings keyed by normalised text and a queue of completion outputs."""

    def __init__(self) -> None:
        self.vectors: dict[str, list[float]] = {}
        self.default_vector: list[float] = [0.0, 0.0, 1.0]
        self.completions: list[str] = []
        self.complete_calls: list[dict[str, Any]] = []
        self.embed_calls: int = 0
        self.fail_embeddings: bool = False

    @property
    def is_configured(self) -> bool:
        return True

    async def embed_texts(self, texts, **_: object) -> EmbeddingBatch:
        self.embed_calls += 1
        if self.fail_embeddings:
            raise RuntimeError("embedding backend unavailable")
        vectors = [list(self.vectors.get(normalise_for_embedding(text), self.default_vector)) for text in texts]
        return EmbeddingBatch(vectors=vectors, model="fake-embedding", dim=len(vectors[0]) if vectors else 0)

    async def embed_text(self, text: str, **_: object) -> list[float]:
        batch = await self.embed_texts([text])
        return batch.vectors[0]

    async def complete(self, prompt: str, **kwargs: object) -> str:
        self.complete_calls.append({"prompt": prompt, **kwargs})
        if not self.completions:
            raise AssertionError("No canned completion left")
        return self.completions.pop(0)


class FakeExtractor:
    """Returns a fixed result (or raises) per message text; unknown text is plain conversation."""

    def __init__(self) -> None:
        self.results: dict[str, ExtractionResult | Exception] = {}
        self.calls: list[tuple[str, list]] = []

    async def extract(self, message: str, history: Sequence[dict[str, str]] = ()) -> ExtractionResult:
        self.calls.append((message, list(history)))
        result = self.results.get(message, ExtractionResult(intent="conversation", confidence=0.3))
        if isinstance(result, Exception):
            raise result
        return result


def make_schema(
    domain_name: str = "workout_log",
    *,
    required: Sequence[tuple[str, str]] = (("exercise", "string"), ("reps", "number")),
    optional: Sequence[tuple[str, str]] = (("completed", "boolean"), ("performed_on", "date")),
) -> ProposedSchema:
    return ProposedSchema(
        domain_name=domain_name,
        description=f"Tracks {domain_name.replace('_', ' ')} entries",
        required_fields=[FieldDefinition(name=name, type=kind, required=True) for name, kind in required],
        optional_fields=[FieldDefinition(name=name, type=kind, required=False) for name, kind in optional],
    )


def uncertain(confidence: float = 0.4) -> ExtractionResult:
    return ExtractionResult(intent="conversation", response="Noted.", confidence=confidence)

