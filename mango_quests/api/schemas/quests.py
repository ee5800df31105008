"""
API Schemas for Quests.

These Pydantic models define the request/response shapes for the quests API.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from mango_quests.infra.db.base import as_utc
from mango_quests.infra.db.models.quest import Quest, QuestCriterion
from mango_quests.services.progress_tracker import ProgressReport
from mango_quests.services.user_progress import AwardXpResult


# ============================================================================
# Requests
# ============================================================================

class GenerateRequest(BaseModel):
    """Request to generate a new batch of quests."""
    type: str = Field(..., description="Quest type to generate (daily or weekly)")


class ProgressRequest(BaseModel):
    """A progress event from an activity producer."""
    type: str = Field(..., description="Criterion type the event applies to")
    payload: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Responses
# ============================================================================

class CriterionResponse(BaseModel):
    id: str
    quest_id: str
    description: str
    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    target_count: int
    current_progress: int
    is_met: bool
    
    @classmethod
    def from_model(cls, criterion: QuestCriterion) -> "CriterionResponse":
        return cls(
            id=criterion.id,
            quest_id=criterion.quest_id,
            description=criterion.description,
            type=criterion.type,
            config=criterion.config or {},
            target_count=criterion.target_count,
            current_progress=criterion.current_progress,
            is_met=criterion.is_met,
        )


class QuestResponse(BaseModel):
    """A quest with its criteria."""
    id: str
    description: str
    xp_reward: int
    type: str
    status: str
    source: str
    generated_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    claimable_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    criteria: list[CriterionResponse] = Field(default_factory=list)
    
    @classmethod
    def from_model(cls, quest: Quest) -> "QuestResponse":
        return cls(
            id=quest.id,
            description=quest.description,
            xp_reward=quest.xp_reward,
            type=quest.type,
            status=quest.status,
            source=quest.source,
            generated_at=as_utc(quest.generated_at),
            activated_at=as_utc(quest.activated_at),
            claimable_at=as_utc(quest.claimable_at),
            completed_at=as_utc(quest.completed_at),
            cancelled_at=as_utc(quest.cancelled_at),
            created_at=as_utc(quest.created_at),
            criteria=[CriterionResponse.from_model(c) for c in quest.criteria],
        )


class QuestListResponse(BaseModel):
    items: list[QuestResponse]
    total: int


class GenerateResponse(BaseModel):
    success: bool = True
    message: str
    quests: list[QuestResponse]
    rejected: list[str] = Field(default_factory=list)


class XpAwardResponse(BaseModel):
    awarded: int
    new_xp: int
    new_level: int
    level_up: bool
    
    @classmethod
    def from_result(cls, result: Optional[AwardXpResult]) -> Optional["XpAwardResponse"]:
        if result is None:
            return None
        return cls(
            awarded=result.awarded,
            new_xp=result.new_xp,
            new_level=result.new_level,
            level_up=result.level_up,
        )


class ClaimResponse(BaseModel):
    quest: QuestResponse
    xp_award: Optional[XpAwardResponse] = None


class ProgressReportResponse(BaseModel):
    updated: list[str] = Field(default_factory=list)
    met: list[str] = Field(default_factory=list)
    claimable: list[str] = Field(default_factory=list)
    
    @classmethod
    def from_report(cls, report: ProgressReport) -> "ProgressReportResponse":
        return cls(updated=report.updated, met=report.met, claimable=report.claimable)
