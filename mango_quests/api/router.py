"""
API Router - Combines all route modules.
"""
from fastapi import APIRouter

from .routes import health, quests

# Main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health.router)
api_router.include_router(quests.router)
