"""
Health Check Endpoint
"""
from fastapi import APIRouter

from mango_quests.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """API health check."""
    return {"status": "ok", "version": get_settings().app_version}
