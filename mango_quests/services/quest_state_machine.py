"""
Quest state machine.

    available -> active -> claimable -> completed
                   |
                   +-> cancelled

Every transition is a compare-and-swap on the status column. Preconditions
are checked first to give the caller a precise error, then re-asserted by
the conditional write itself; a write that matches no row means another
request got there first and is reported as a conflict.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.config import Settings, get_settings
from mango_quests.infra.db.models.quest import Quest, QuestStatus, QuestType
from mango_quests.infra.db.repositories import QuestRepository
from mango_quests.services.errors import (
    QuestConflictError,
    QuestForbiddenError,
    QuestLimitError,
    QuestNotFoundError,
    QuestValidationError,
)
from mango_quests.services.user_progress import AwardXpResult, UserProgressService

logger = logging.getLogger(__name__)


class Ownership(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass
class LoadResult:
    """Tagged result of loading a quest on behalf of a caller."""
    ownership: Ownership
    quest: Optional[Quest] = None
    
    def unwrap(self, quest_id: str) -> Quest:
        if self.ownership is Ownership.NOT_FOUND:
            raise QuestNotFoundError("Quest not found.", details={"quest_id": quest_id})
        if self.ownership is Ownership.FORBIDDEN:
            raise QuestForbiddenError("You do not own this quest.")
        return self.quest


async def load_and_authorize(repo: QuestRepository, user_id: str, quest_id: str) -> LoadResult:
    """Load a quest and classify it as owned, missing or someone else's."""
    quest = await repo.get_with_criteria(quest_id)
    if quest is None:
        return LoadResult(Ownership.NOT_FOUND)
    if quest.user_id != user_id:
        return LoadResult(Ownership.FORBIDDEN)
    return LoadResult(Ownership.OK, quest)


@dataclass
class ClaimResult:
    quest: Quest
    xp_award: Optional[AwardXpResult] = None


class QuestStateMachine:
    """User-driven and system-driven quest status transitions."""
    
    def __init__(
        self,
        session: AsyncSession,
        progress: Optional[UserProgressService] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.repo = QuestRepository(session)
        self.progress = progress or UserProgressService(session)
        self.settings = settings or get_settings()
    
    def active_cap(self, quest_type: str) -> int:
        if quest_type == QuestType.DAILY.value:
            return self.settings.max_active_daily_quests
        return self.settings.max_active_weekly_quests
    
    async def _load(self, user_id: str, quest_id: str) -> Quest:
        return (await load_and_authorize(self.repo, user_id, quest_id)).unwrap(quest_id)
    
    def _require_status(self, quest: Quest, expected: QuestStatus, action: str) -> None:
        if quest.status != expected.value:
            raise QuestValidationError(
                f"Quest is not {expected.value} and cannot be {action} (current status: {quest.status}).",
                details={"quest_id": quest.id, "status": quest.status},
            )
    
    async def _reload(self, quest_id: str) -> Quest:
        quest = await self.repo.get_with_criteria(quest_id)
        if quest is None:
            raise QuestNotFoundError("Quest not found.", details={"quest_id": quest_id})
        return quest
    
    def _conflict(self, quest_id: str, action: str) -> QuestConflictError:
        logger.warning(f"[QuestState] Conflict while trying to {action} quest {quest_id}")
        return QuestConflictError(
            f"Failed to {action} quest, its status changed. Refresh and try again.",
            details={"quest_id": quest_id},
        )
    
    async def list_quests(
        self,
        user_id: str,
        status: Optional[str] = None,
        quest_type: Optional[str] = None,
    ) -> Sequence[Quest]:
        """The caller's quests with criteria, optionally filtered by status and type."""
        if status is not None and status not in {s.value for s in QuestStatus}:
            raise QuestValidationError("Invalid status filter value.", details={"status": status})
        if quest_type is not None and quest_type not in {t.value for t in QuestType}:
            raise QuestValidationError("Invalid type filter value.", details={"type": quest_type})
        return await self.repo.list_for_user(user_id, status=status, quest_type=quest_type)
    
    async def activate(self, user_id: str, quest_id: str) -> Quest:
        """Move an available quest to active, respecting the per-type active cap."""
        quest = await self._load(user_id, quest_id)
        self._require_status(quest, QuestStatus.AVAILABLE, "activated")
        
        cap = self.active_cap(quest.type)
        active = await self.repo.count_active(user_id, quest.type)
        if active >= cap:
            raise QuestLimitError(
                f"Cannot activate quest. Maximum active {quest.type} quests ({cap}) reached.",
                details={"type": quest.type, "limit": cap, "active": active},
            )
        
        moved = await self.repo.transition(
            quest_id,
            user_id,
            QuestStatus.AVAILABLE,
            QuestStatus.ACTIVE,
            "activated_at",
            active_cap=cap,
            quest_type=quest.type,
        )
        if not moved:
            # A missing row means a regeneration replaced it mid-flight
            current = await self.repo.get_with_criteria(quest_id)
            if current is not None and current.status == QuestStatus.AVAILABLE.value:
                active = await self.repo.count_active(user_id, quest.type)
                if active >= cap:
                    raise QuestLimitError(
                        f"Cannot activate quest. Maximum active {quest.type} quests ({cap}) reached.",
                        details={"type": quest.type, "limit": cap, "active": active},
                    )
            raise self._conflict(quest_id, "activate")
        
        logger.info(f"[QuestState] User {user_id} activated quest {quest_id}")
        return await self._reload(quest_id)
    
    async def cancel(self, user_id: str, quest_id: str) -> Quest:
        """Abandon an active quest."""
        quest = await self._load(user_id, quest_id)
        self._require_status(quest, QuestStatus.ACTIVE, "cancelled")
        
        moved = await self.repo.transition(
            quest_id, user_id, QuestStatus.ACTIVE, QuestStatus.CANCELLED, "cancelled_at"
        )
        if not moved:
            raise self._conflict(quest_id, "cancel")
        
        logger.info(f"[QuestState] User {user_id} cancelled quest {quest_id}")
        return await self._reload(quest_id)
    
    async def claim(self, user_id: str, quest_id: str) -> ClaimResult:
        """
        Complete a claimable quest and award its XP.
        
        The quest is consumed exactly once; a failed XP award is logged and
        reported as ``xp_award=None`` but never undoes the completion.
        """
        quest = await self._load(user_id, quest_id)
        self._require_status(quest, QuestStatus.CLAIMABLE, "claimed")
        
        moved = await self.repo.transition(
            quest_id, user_id, QuestStatus.CLAIMABLE, QuestStatus.COMPLETED, "completed_at"
        )
        if not moved:
            raise self._conflict(quest_id, "claim")
        logger.info(f"[QuestState] User {user_id} claimed quest {quest_id}")
        
        xp_award = None
        try:
            xp_award = await self.progress.award_xp(user_id, quest.xp_reward)
            logger.info(
                f"[QuestState] Awarded {quest.xp_reward} XP to user {user_id} for quest {quest_id} "
                f"(total {xp_award.new_xp}, level {xp_award.new_level})"
            )
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[QuestState] XP award failed for user {user_id}, quest {quest_id}: {e}", exc_info=True)
        
        return ClaimResult(quest=await self._reload(quest_id), xp_award=xp_award)
    
    async def mark_claimable(self, user_id: str, quest_id: str) -> bool:
        """System transition active -> claimable. Returns False if the quest was no longer active."""
        moved = await self.repo.transition(
            quest_id, user_id, QuestStatus.ACTIVE, QuestStatus.CLAIMABLE, "claimable_at"
        )
        if moved:
            logger.info(f"[QuestState] Quest {quest_id} is now claimable")
        return moved
    
    async def force_claimable(self, user_id: str, quest_id: str) -> Quest:
        """Testing helper: push an owned active quest to claimable regardless of criteria."""
        quest = await self._load(user_id, quest_id)
        self._require_status(quest, QuestStatus.ACTIVE, "made claimable")
        if not await self.mark_claimable(user_id, quest_id):
            raise self._conflict(quest_id, "mark claimable")
        return await self._reload(quest_id)
    
    async def cancel_quests_for_habit(self, user_id: str, habit_id: str) -> list[str]:
        """
        Cancel the user's active quests that track a deleted habit.
        
        Such quests can never become claimable. Available quests are left to be
        replaced by the next generation; terminal ones are untouched.
        """
        cancelled = []
        for quest_id in await self.repo.find_active_with_habit(user_id, habit_id):
            if await self.repo.transition(
                quest_id, user_id, QuestStatus.ACTIVE, QuestStatus.CANCELLED, "cancelled_at"
            ):
                cancelled.append(quest_id)
        if cancelled:
            logger.info(f"[QuestState] Cancelled {len(cancelled)} quest(s) for deleted habit {habit_id} (user {user_id})")
        return cancelled
