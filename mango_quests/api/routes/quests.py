"""
Quest lifecycle endpoints.

Listing, generation, activate/cancel/claim, progress reporting, plus two
testing-only routes that are disabled in production.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.adapters.base import GenerativeClient
from mango_quests.adapters.gemini import GeminiAdapter
from mango_quests.auth.middleware import get_current_user
from mango_quests.config import get_settings
from mango_quests.infra.db.session import get_db
from mango_quests.services.errors import QuestForbiddenError
from mango_quests.services.progress_tracker import ProgressTracker
from mango_quests.services.quest_generation import QuestGenerationService
from mango_quests.services.quest_state_machine import QuestStateMachine

from ..schemas.quests import (
    ClaimResponse,
    GenerateRequest,
    GenerateResponse,
    ProgressReportResponse,
    ProgressRequest,
    QuestListResponse,
    QuestResponse,
    XpAwardResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quests", tags=["quests"])


def get_generative_client() -> GenerativeClient:
    """Dependency providing the quest generator client."""
    return GeminiAdapter()


def require_debug_routes() -> None:
    if not get_settings().debug_routes_allowed:
        raise QuestForbiddenError("Debug routes are disabled.")


@router.get("", response_model=QuestListResponse)
async def list_quests(
    status: Optional[str] = Query(None, description="Filter by status"),
    quest_type: Optional[str] = Query(None, alias="type", description="Filter by type (daily or weekly)"),
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> QuestListResponse:
    """List the caller's quests, newest first."""
    quests = await QuestStateMachine(db).list_quests(user["id"], status=status, quest_type=quest_type)
    return QuestListResponse(items=[QuestResponse.from_model(q) for q in quests], total=len(quests))


@router.post("/generate", response_model=GenerateResponse, status_code=201)
async def generate_quests(
    request: GenerateRequest,
    x_user_timezone: Optional[str] = Header(None, alias="X-User-Timezone"),
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: GenerativeClient = Depends(get_generative_client),
) -> GenerateResponse:
    """
    Generate a fresh batch of available quests.
    
    Replaces the caller's current available quests of the same type.
    Active, claimable and finished quests are never touched.
    """
    service = QuestGenerationService(db, client)
    result = await service.generate(user["id"], request.type, x_user_timezone)
    return GenerateResponse(
        message=result.message,
        quests=[QuestResponse.from_model(q) for q in result.quests],
        rejected=result.errors,
    )


@router.post("/progress", response_model=ProgressReportResponse)
async def report_progress(
    request: ProgressRequest,
    x_user_timezone: Optional[str] = Header(None, alias="X-User-Timezone"),
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProgressReportResponse:
    """Apply an activity event to the caller's active quests."""
    report = await ProgressTracker(db).report_progress(
        user["id"], request.type, request.payload, x_user_timezone
    )
    return ProgressReportResponse.from_report(report)


@router.post("/{quest_id}/activate", response_model=QuestResponse)
async def activate_quest(
    quest_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> QuestResponse:
    quest = await QuestStateMachine(db).activate(user["id"], quest_id)
    return QuestResponse.from_model(quest)


@router.post("/{quest_id}/cancel", response_model=QuestResponse)
async def cancel_quest(
    quest_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> QuestResponse:
    quest = await QuestStateMachine(db).cancel(user["id"], quest_id)
    return QuestResponse.from_model(quest)


@router.post("/{quest_id}/claim", response_model=ClaimResponse)
async def claim_quest(
    quest_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ClaimResponse:
    """Complete a claimable quest and collect its XP."""
    result = await QuestStateMachine(db).claim(user["id"], quest_id)
    return ClaimResponse(
        quest=QuestResponse.from_model(result.quest),
        xp_award=XpAwardResponse.from_result(result.xp_award),
    )


# ============================================================================
# Testing helpers (never served in production)
# ============================================================================

@router.post(
    "/{quest_id}/set-claimable",
    response_model=QuestResponse,
    dependencies=[Depends(require_debug_routes)],
)
async def force_claimable(
    quest_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> QuestResponse:
    quest = await QuestStateMachine(db).force_claimable(user["id"], quest_id)
    logger.warning(f"[QuestState] Debug: quest {quest_id} forced claimable by user {user['id']}")
    return QuestResponse.from_model(quest)


@router.post(
    "/criteria/{criterion_id}/set-met",
    response_model=ProgressReportResponse,
    dependencies=[Depends(require_debug_routes)],
)
async def force_criterion_met(
    criterion_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProgressReportResponse:
    report = await ProgressTracker(db).mark_criterion_met(user["id"], criterion_id)
    logger.warning(f"[QuestProgress] Debug: criterion {criterion_id} forced met by user {user['id']}")
    return ProgressReportResponse.from_report(report)
