"""API router composition for the backend.

The module assembles the evolution review routes and the generic record routes into a single
`api_router` that can be mounted on the app.
"""

from fastapi import APIRouter

from domain_evolution.api.routes.evolution import router as evolution_router
from domain_evolution.api.routes.records import router as records_router

api_router = APIRouter()
api_router.include_router(evolution_router)
api_router.include_router(records_router)

__all__ = ["api_router"]
