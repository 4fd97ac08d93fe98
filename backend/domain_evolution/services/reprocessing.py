"""Replay captured turns through extraction once their domain exists.

Classes:
    ReprocessingService: Sequentially re-extracts a batch of turns, stores matches in the
        target domain, and retires migrated turns together with their embeddings.

Failures are per turn: a turn that is classified elsewhere, fails validation, or errors
during extraction is reported and left in place while the rest of the batch proceeds.
Callers must not run two batches over overlapping turn ids at the same time.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.models import CapturedTurn
from domain_evolution.schemas import ReprocessResult, ReprocessSummary
from domain_evolution.services.captures import CaptureStore
from domain_evolution.services.embedding_cache import EmbeddingCache, get_embedding_cache
from domain_evolution.services.errors import NotFoundError, RecordValidationError
from domain_evolution.services.extraction import Extractor, get_extractor
from domain_evolution.services.records import DynamicRecordService
from domain_evolution.services.registry import DomainRegistry, get_domain_registry

_LOGGER = logging.getLogger(__name__)


def _failed(turn: CapturedTurn, error: str) -> ReprocessResult:
    return ReprocessResult(turn_id=turn.id, raw_text=turn.raw_text, success=False, error=error)


class ReprocessingService:
    def __init__(
        self,
        session: AsyncSession,
        extractor: Extractor | None = None,
        registry: DomainRegistry | None = None,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self._session = session
        self._extractor = extractor or get_extractor()
        self._registry = registry or get_domain_registry()
        self._cache = cache or get_embedding_cache()
        self._store = CaptureStore(session, self._cache)
        self._records = DynamicRecordService(session, self._registry)

    async def preview(self, turn_ids: Sequence[int]) -> list[CapturedTurn]:
        return await self._store.get_many(turn_ids)

    async def reprocess(self, turn_ids: Sequence[int], domain_name: str) -> ReprocessSummary:
        if not self._registry.has(domain_name):
            raise NotFoundError(f"Domain '{domain_name}' is not deployed")

        requested = list(dict.fromkeys(int(turn_id) for turn_id in turn_ids))
        turns = {turn.id: turn for turn in await self._store.get_many(requested)}

        results: list[ReprocessResult] = []
        for turn_id in requested:
            turn = turns.get(turn_id)
            if turn is None:
                results.append(
                    ReprocessResult(turn_id=turn_id, success=False, error=f"Captured turn {turn_id} not found")
                )
                continue
            results.append(await self._reprocess_turn(turn, domain_name))

        migrated = [result.turn_id for result in results if result.success]
        if migrated:
            await self._store.delete_many(migrated)

        summary = ReprocessSummary(
            domain_name=domain_name,
            total=len(results),
            successful=len(migrated),
            failed=len(results) - len(migrated),
            results=results,
        )
        _LOGGER.info(
            "Reprocessing finished: %d/%d turns migrated to '%s'",
            summary.successful,
            summary.total,
            domain_name,
        )
        return summary

    async def _reprocess_turn(self, turn: CapturedTurn, domain_name: str) -> ReprocessResult:
        # Fresh extraction with empty history; the original failure reason is not consulted.
        try:
            extraction = await self._extractor.extract(turn.raw_text, [])
        except Exception as exc:
            _LOGGER.warning("Extraction failed while reprocessing turn %s", turn.id, exc_info=True)
            return _failed(turn, str(exc) or type(exc).__name__)

        if extraction.intent != "store" or extraction.data_type != domain_name or not extraction.extracted:
            return _failed(
                turn,
                f"Classified as {extraction.intent}/{extraction.data_type or 'none'} "
                f"instead of store/{domain_name}",
            )

        try:
            record = await self._records.create(domain_name, extraction.extracted)
        except RecordValidationError as exc:
            return _failed(turn, str(exc))
        except Exception as exc:
            _LOGGER.warning("Storing reprocessed turn %s failed", turn.id, exc_info=True)
            return _failed(turn, str(exc) or type(exc).__name__)

        return ReprocessResult(turn_id=turn.id, raw_text=turn.raw_text, success=True, saved_id=record["id"])
