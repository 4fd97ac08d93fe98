"""Pending capture store and the low-confidence capture hook.

Classes:
    CaptureStore: Durable queue of captured turns (create, list, get, delete).
    CaptureService: Decides whether a turn is captured, and embeds captured turns
        in the background so the conversational reply never waits on the embedding call.

Functions:
    get_capture_service(): Return the process-wide capture service.
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.core.config import Settings, get_settings
from domain_evolution.db.session import SessionLocal
from domain_evolution.models import CapturedTurn, TurnEmbedding
from domain_evolution.schemas import ExtractionResult
from domain_evolution.services.embedding_cache import EmbeddingCache, get_embedding_cache
from domain_evolution.services.errors import EmbeddingDimensionError

_LOGGER = logging.getLogger(__name__)


class CaptureStore:
    def __init__(self, session: AsyncSession, cache: EmbeddingCache | None = None) -> None:
        self._session = session
        self._cache = cache or get_embedding_cache()

    async def create(self, raw_text: str, extraction: ExtractionResult) -> CapturedTurn:
        turn = CapturedTurn(
            raw_text=raw_text,
            extraction_json=json.dumps(extraction.model_dump(mode="json", by_alias=True)),
            confidence=extraction.confidence,
        )
        self._session.add(turn)
        # Id is assigned at flush and every default is client side.
        await self._session.commit()
        _LOGGER.info("Captured turn %s (confidence %.2f)", turn.id, turn.confidence)
        return turn

    async def list_recent(self, limit: Optional[int] = None) -> list[CapturedTurn]:
        """Newest first; id order is authoritative since created_at has second granularity."""

        stmt = select(CapturedTurn).order_by(CapturedTurn.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list((await self._session.exec(stmt)).all())

    async def get(self, turn_id: int) -> CapturedTurn | None:
        return await self._session.get(CapturedTurn, turn_id)

    async def get_many(self, turn_ids: Sequence[int]) -> list[CapturedTurn]:
        if not turn_ids:
            return []
        stmt = (
            select(CapturedTurn)
            .where(CapturedTurn.id.in_(list(turn_ids)))
            .order_by(CapturedTurn.id.desc())
        )
        return list((await self._session.exec(stmt)).all())

    async def list_by_confidence(self, max_confidence: float, limit: Optional[int] = None) -> list[CapturedTurn]:
        stmt = (
            select(CapturedTurn)
            .where(CapturedTurn.confidence <= max_confidence)
            .order_by(CapturedTurn.confidence.asc(), CapturedTurn.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return list((await self._session.exec(stmt)).all())

    async def count(self) -> int:
        result = await self._session.exec(select(func.count()).select_from(CapturedTurn))
        return int(result.one())

    async def delete(self, turn_id: int) -> bool:
        return await self.delete_many([turn_id]) > 0

    async def delete_many(self, turn_ids: Iterable[int], *, commit: bool = True) -> int:
        """Delete turns together with their embeddings; a turn never outlives its vector or vice versa."""

        ids = list(turn_ids)
        if not ids:
            return 0
        await self._session.execute(delete(TurnEmbedding).where(TurnEmbedding.turn_id.in_(ids)))
        result = await self._session.execute(delete(CapturedTurn).where(CapturedTurn.id.in_(ids)))
        if commit:
            await self._session.commit()
        self._cache.forget(ids)
        deleted = int(result.rowcount or 0)
        if deleted:
            _LOGGER.info("Deleted %d captured turns", deleted)
        return deleted


class CaptureService:
    def __init__(
        self,
        cache: EmbeddingCache | None = None,
        session_factory: async_sessionmaker | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._cache = cache or get_embedding_cache()
        self._session_factory = session_factory or SessionLocal
        self._settings = settings or get_settings()
        self._tasks: set[asyncio.Task] = set()

    def should_capture(self, extraction: ExtractionResult) -> bool:
        return (
            extraction.intent == "conversation"
            and extraction.confidence < self._settings.capture_confidence_threshold
        )

    async def capture_if_uncertain(
        self,
        session: AsyncSession,
        raw_text: str,
        extraction: ExtractionResult,
    ) -> CapturedTurn | None:
        if not self.should_capture(extraction):
            return None
        try:
            turn = await CaptureStore(session, self._cache).create(raw_text, extraction)
        except SQLAlchemyError:
            _LOGGER.exception("Failed to capture low-confidence turn")
            await session.rollback()
            return None
        self._schedule_embedding(turn.id, turn.raw_text)
        return turn

    async def embed_turn(self, session: AsyncSession, turn_id: int, raw_text: str) -> None:
        vector = await self._cache.embed(raw_text)
        await self._cache.store(session, turn_id, vector, model=self._settings.openai_embedding_model)
        _LOGGER.info("Embedded captured turn %s", turn_id)

    async def embed_all_pending(self, session: AsyncSession) -> int:
        """Bulk retry pass for turns whose capture-time embedding failed or never ran."""

        embedded = 0
        for turn in await CaptureStore(session, self._cache).list_recent():
            if self._cache.has(turn.id):
                continue
            try:
                await self.embed_turn(session, turn.id, turn.raw_text)
            except EmbeddingDimensionError:
                raise
            except Exception:
                _LOGGER.warning("Failed to embed captured turn %s", turn.id, exc_info=True)
                await session.rollback()
                continue
            embedded += 1
        return embedded

    async def drain(self) -> None:
        """Wait for outstanding background embeddings (tests and shutdown)."""

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _schedule_embedding(self, turn_id: int, raw_text: str) -> None:
        task = asyncio.create_task(self._embed_in_background(turn_id, raw_text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _embed_in_background(self, turn_id: int, raw_text: str) -> None:
        try:
            async with self._session_factory() as session:
                await self.embed_turn(session, turn_id, raw_text)
        except EmbeddingDimensionError:
            _LOGGER.error(
                "Embedding dimension changed while embedding turn %s; re-embed all captured turns",
                turn_id,
                exc_info=True,
            )
        except Exception:
            _LOGGER.warning(
                "Capture-time embedding failed for turn %s; it stays unembedded until the next bulk embed",
                turn_id,
                exc_info=True,
            )


@lru_cache()
def get_capture_service() -> CaptureService:
    return CaptureService()
