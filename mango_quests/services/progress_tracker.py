"""
Criterion progress tracking.

Feature events (habit check-ins, step syncs, pomodoros, todos, spending) are
reported here. Each matching unmet criterion of the user's active quests is
advanced with an atomic update; when the last criterion of a quest is met
the quest is moved to claimable.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.base import as_utc, utcnow
from mango_quests.infra.db.models.quest import QuestStatus
from mango_quests.infra.db.repositories import CriterionRepository
from mango_quests.services.cooldown import resolve_timezone
from mango_quests.services.criteria_handlers import ProgressContext, get_rule
from mango_quests.services.errors import (
    QuestForbiddenError,
    QuestNotFoundError,
    QuestValidationError,
)
from mango_quests.services.quest_state_machine import QuestStateMachine

logger = logging.getLogger(__name__)


@dataclass
class ProgressReport:
    updated: list[str] = field(default_factory=list)
    met: list[str] = field(default_factory=list)
    claimable: list[str] = field(default_factory=list)


class ProgressTracker:
    """Applies feature events to quest criteria."""
    
    def __init__(
        self,
        session: AsyncSession,
        state_machine: Optional[QuestStateMachine] = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.criteria = CriterionRepository(session)
        self.state_machine = state_machine or QuestStateMachine(session)
        self.now_fn = now_fn
    
    async def report_progress(
        self,
        user_id: str,
        criterion_type: str,
        payload: dict,
        user_timezone: Optional[str],
    ) -> ProgressReport:
        """
        Apply one event to every matching unmet criterion of the user's active quests.
        
        Raises:
            QuestValidationError: unknown criterion type, malformed payload or time zone.
        """
        rule = get_rule(criterion_type)
        tz = resolve_timezone(user_timezone)
        today = self.now_fn().astimezone(tz).date()
        # The whole event is rejected before any criterion is touched
        event = rule.validate(payload or {}, today)
        
        report = ProgressReport()
        criteria = await self.criteria.list_unmet_for_active_quests(user_id, criterion_type)
        for criterion in criteria:
            activated_at = criterion.quest.activated_at
            context = ProgressContext(
                user_id=user_id,
                tz=tz,
                today=today,
                activation_date=as_utc(activated_at).astimezone(tz).date() if activated_at else None,
            )
            progress = rule.apply(criterion, event, context)
            if progress.is_noop:
                continue
            
            if progress.met:
                is_met = await self.criteria.mark_met(criterion.id)
            elif progress.absolute is not None:
                is_met = await self.criteria.raise_progress_to(criterion.id, progress.absolute)
            else:
                is_met = await self.criteria.increment_progress(criterion.id, progress.increment)
            
            # None: another event met it first
            if is_met is None:
                continue
            report.updated.append(criterion.id)
            logger.debug(f"[QuestProgress] Criterion {criterion.id} ({criterion_type}) updated for user {user_id}")
            if is_met:
                report.met.append(criterion.id)
                if await self._check_claimable(user_id, criterion.quest_id):
                    report.claimable.append(criterion.quest_id)
        
        if report.updated:
            logger.info(
                f"[QuestProgress] {criterion_type} event for user {user_id}: "
                f"{len(report.updated)} updated, {len(report.met)} met, {len(report.claimable)} quest(s) claimable"
            )
        return report
    
    async def mark_criterion_met(self, user_id: str, criterion_id: str) -> ProgressReport:
        """Mark one criterion met directly. Ownership is checked through its quest."""
        criterion = await self.criteria.get_with_quest(criterion_id)
        if criterion is None:
            raise QuestNotFoundError("Criterion not found.", details={"criterion_id": criterion_id})
        if criterion.quest.user_id != user_id:
            raise QuestForbiddenError("You do not own this criterion.")
        if criterion.quest.status != QuestStatus.ACTIVE.value:
            raise QuestValidationError(
                "Criteria can only be met on active quests.",
                details={"quest_id": criterion.quest_id, "status": criterion.quest.status},
            )
        
        report = ProgressReport()
        if await self.criteria.mark_met(criterion_id):
            report.updated.append(criterion_id)
            report.met.append(criterion_id)
        if await self._check_claimable(user_id, criterion.quest_id):
            report.claimable.append(criterion.quest_id)
        return report
    
    async def _check_claimable(self, user_id: str, quest_id: str) -> bool:
        if not await self.criteria.all_met(quest_id):
            return False
        return await self.state_machine.mark_claimable(user_id, quest_id)


async def report_progress_safely(
    session: AsyncSession,
    user_id: str,
    criterion_type: str,
    payload: dict,
    user_timezone: Optional[str],
) -> Optional[ProgressReport]:
    """
    Fire-and-forget variant for feature code paths.
    
    A failure to track quest progress must never fail the originating action
    (logging a habit, syncing steps), so errors are logged and None returned.
    """
    try:
        return await ProgressTracker(session).report_progress(user_id, criterion_type, payload, user_timezone)
    except Exception as e:
        await session.rollback()
        logger.error(f"[QuestProgress] Failed to record {criterion_type} progress for user {user_id}: {e}", exc_info=True)
        return None
