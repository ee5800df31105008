"""
QuestCriterion repository.

Progress writes are single UPDATE statements that compute the new value in
the database, so concurrent progress events cannot lose updates.
"""
from typing import Optional, Sequence

from sqlalchemy import case, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from mango_quests.infra.db.models.quest import Quest, QuestCriterion, QuestStatus
from mango_quests.infra.db.repositories.base import BaseRepository


class CriterionRepository(BaseRepository[QuestCriterion]):
    """Repository for QuestCriterion rows."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(QuestCriterion, session)
    
    async def get_with_quest(self, id: str) -> Optional[QuestCriterion]:
        """Get a criterion with its parent quest loaded."""
        stmt = (
            select(QuestCriterion)
            .options(joinedload(QuestCriterion.quest))
            .where(QuestCriterion.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
    
    async def list_unmet_for_active_quests(
        self,
        user_id: str,
        criterion_type: str,
    ) -> Sequence[QuestCriterion]:
        """Unmet criteria of one type belonging to the user's active quests."""
        stmt = (
            select(QuestCriterion)
            .join(Quest, QuestCriterion.quest_id == Quest.id)
            .options(joinedload(QuestCriterion.quest))
            .where(
                Quest.user_id == user_id,
                Quest.status == QuestStatus.ACTIVE.value,
                QuestCriterion.type == criterion_type,
                QuestCriterion.is_met.is_(False),
            )
            .order_by(QuestCriterion.created_at.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().unique().all()
    
    async def _apply(self, id: str, values: dict) -> Optional[bool]:
        stmt = (
            update(QuestCriterion)
            .where(QuestCriterion.id == id, QuestCriterion.is_met.is_(False))
            .values(**values)
            .returning(QuestCriterion.is_met)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        is_met = result.scalar_one_or_none()
        await self.session.commit()
        return is_met
    
    async def increment_progress(self, id: str, amount: int) -> Optional[bool]:
        """
        Add ``amount`` to current_progress, capped at target_count.
        
        Returns:
            The criterion's new is_met flag, or None if it was already met
            (or does not exist) at write time.
        """
        raised = QuestCriterion.current_progress + amount
        return await self._apply(id, {
            "current_progress": case(
                (raised >= QuestCriterion.target_count, QuestCriterion.target_count),
                else_=raised,
            ),
            "is_met": raised >= QuestCriterion.target_count,
        })
    
    async def raise_progress_to(self, id: str, value: int) -> Optional[bool]:
        """Set current_progress to ``value`` (capped) unless it is already higher."""
        reached = case(
            (literal(value) >= QuestCriterion.target_count, QuestCriterion.target_count),
            else_=literal(value),
        )
        return await self._apply(id, {
            "current_progress": case(
                (reached > QuestCriterion.current_progress, reached),
                else_=QuestCriterion.current_progress,
            ),
            "is_met": literal(value) >= QuestCriterion.target_count,
        })
    
    async def mark_met(self, id: str) -> Optional[bool]:
        """Mark a criterion met outright and pin its progress to the target."""
        return await self._apply(id, {
            "current_progress": QuestCriterion.target_count,
            "is_met": True,
        })
    
    async def all_met(self, quest_id: str) -> bool:
        """True if the quest has at least one criterion and every criterion is met."""
        stmt = select(
            func.count(QuestCriterion.id),
            func.coalesce(func.sum(case((QuestCriterion.is_met.is_(True), 1), else_=0)), 0),
        ).where(QuestCriterion.quest_id == quest_id)
        result = await self.session.execute(stmt)
        total, met = result.one()
        return total > 0 and total == met
