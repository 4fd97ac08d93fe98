"""Request dependencies shared by the route modules.

Functions:
    get_evolution_service(...): Build an EvolutionService bound to the request session.
    get_record_service(...): Build a DynamicRecordService bound to the request session.
    http_error(exc): Translate a service-layer exception into an HTTPException.

The process-wide singletons (registry, embedding cache, OpenAI client, extractor, capture
service) are injected through their cached getters so tests can swap them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status
from openai import OpenAIError
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.db.session import get_session
from domain_evolution.services import (
    DomainRegistry,
    DynamicRecordService,
    EmbeddingCache,
    EvolutionService,
    Extractor,
    OpenAIService,
    get_domain_registry,
    get_embedding_cache,
    get_extractor,
    get_openai_service,
)
from domain_evolution.services.errors import (
    DomainConflictError,
    InvalidIdentifierError,
    InvalidTransitionError,
    NotFoundError,
    RecordValidationError,
    SchemaSynthesisError,
)


def get_evolution_service(
    session: AsyncSession = Depends(get_session),
    openai_service: OpenAIService = Depends(get_openai_service),
    extractor: Extractor = Depends(get_extractor),
    registry: DomainRegistry = Depends(get_domain_registry),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> EvolutionService:
    return EvolutionService(
        session,
        openai_service=openai_service,
        extractor=extractor,
        registry=registry,
        cache=cache,
    )


def get_record_service(
    session: AsyncSession = Depends(get_session),
    registry: DomainRegistry = Depends(get_domain_registry),
) -> DynamicRecordService:
    return DynamicRecordService(session, registry)


def http_error(exc: Exception) -> HTTPException:
    message = str(exc)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": message, "current_status": exc.current_status},
        )
    if isinstance(exc, DomainConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)
    if isinstance(exc, RecordValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": message, "errors": list(exc.errors)},
        )
    if isinstance(exc, InvalidIdentifierError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message)
    if isinstance(exc, (SchemaSynthesisError, OpenAIError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
