"""Async OpenAI client wrapper and related value objects.

Classes:
    EmbeddingBatch: Collected embedding vectors plus metadata returned from the embeddings API.
    OpenAIService: Handles embeddings and single-shot text completions.

The client also talks to any OpenAI-compatible endpoint (for example a local Ollama
server) when ``openai_base_url`` is configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Optional, Sequence

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from domain_evolution.core.config import get_settings

_EMBED_BATCH_MAX = 256
_TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)


@dataclass(slots=True)
class EmbeddingBatch:
    vectors: list[list[float]]
    model: str
    dim: int


class OpenAIService:
    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        settings = get_settings()
        api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
        if client is not None:
            self._client = client
        elif api_key or settings.openai_base_url:
            # Local OpenAI-compatible servers accept any key.
            self._client = AsyncOpenAI(api_key=api_key or "local", base_url=settings.openai_base_url)
        else:
            self._client = None
        self._settings = settings

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> AsyncOpenAI:
        if self._client is None:
            raise RuntimeError("OpenAI client not configured. Set OPENAI_API_KEY or OPENAI_BASE_URL.")
        return self._client

    async def embed_texts(
        self,
        texts: Iterable[str],
        *,
        model: Optional[str] = None,
    ) -> EmbeddingBatch:
        docs = list(texts)
        client = self._require_client()
        chosen_model = model or self._settings.openai_embedding_model

        if not docs:
            return EmbeddingBatch(vectors=[], model=chosen_model, dim=0)

        vectors: list[list[float]] = []
        dim = 0
        for start in range(0, len(docs), _EMBED_BATCH_MAX):
            chunk = docs[start : start + _EMBED_BATCH_MAX]
            response = await self._retry_embeddings(client, dict(model=chosen_model, input=chunk))
            chunk_vectors = [list(item.embedding) for item in response.data]
            vectors.extend(chunk_vectors)
            if not dim and chunk_vectors:
                dim = len(chunk_vectors[0])

        return EmbeddingBatch(vectors=vectors, model=chosen_model, dim=dim)

    async def embed_text(self, text: str, *, model: Optional[str] = None) -> list[float]:
        batch = await self.embed_texts([text], model=model)
        return batch.vectors[0]

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        history: Sequence[dict[str, str]] = (),
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        """Single chat completion. Never retried here: retry policy belongs to the caller."""

        client = self._require_client()
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = dict(
            model=model or self._settings.openai_chat_model,
            messages=messages,
            temperature=temperature if temperature is not None else self._settings.generation_temperature,
            n=1,
        )
        response = await client.chat.completions.create(**payload)
        content = getattr(response.choices[0].message, "content", "") or ""
        return content.strip()

    async def _retry_embeddings(self, client: AsyncOpenAI, payload: dict[str, Any]):
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=1, max=20),
            stop=stop_after_attempt(self._settings.embedding_max_attempts),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await client.embeddings.create(**payload)


@lru_cache()
def get_openai_service() -> OpenAIService:
    return OpenAIService()
