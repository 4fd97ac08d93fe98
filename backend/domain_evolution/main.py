"""Application bootstrap for the Domain Evolution API.

This module wires the FastAPI application, attaches middleware, and exposes small lifecycle utilities.

Functions:
    lifespan(app: FastAPI): Create tables, warm the domain registry and embedding cache, audit
        dynamic tables, and drain background embeddings on shutdown.
    health_check(): Readiness check reporting the domain count and OpenAI configuration.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from domain_evolution import __version__
from domain_evolution.api import api_router
from domain_evolution.core.config import get_settings
from domain_evolution.db.session import SessionLocal, init_db
from domain_evolution.services import (
    audit_dynamic_tables,
    get_capture_service,
    get_domain_registry,
    get_embedding_cache,
)
from domain_evolution.services.openai_client import OpenAIService, get_openai_service
from domain_evolution.services.registry import DomainRegistry

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    async with SessionLocal() as session:
        await get_domain_registry().load(session)
        await get_embedding_cache().load(session)
        await audit_dynamic_tables(session)
    _LOGGER.info("Domain evolution service ready")
    yield
    await get_capture_service().drain()


app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check(
    registry: DomainRegistry = Depends(get_domain_registry),
    openai_service: OpenAIService = Depends(get_openai_service),
):
    return {
        "status": "ok",
        "domains": registry.count(),
        "openai_configured": openai_service.is_configured,
    }
