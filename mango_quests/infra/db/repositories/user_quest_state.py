"""
UserQuestState repository.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.models.user_quest_state import UserQuestState
from mango_quests.infra.db.repositories.base import BaseRepository


class UserQuestStateRepository(BaseRepository[UserQuestState]):
    """Repository for per-user generation bookkeeping."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(UserQuestState, session)
    
    async def get_for_user(self, user_id: str) -> Optional[UserQuestState]:
        stmt = (
            select(UserQuestState)
            .where(UserQuestState.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
    
    async def record_generation(
        self,
        user_id: str,
        quest_type: str,
        generated_at: datetime,
        next_weekly_reset_allowed_at: Optional[datetime] = None,
    ) -> UserQuestState:
        """Upsert the last-generated timestamp for one quest type."""
        state = await self.get_for_user(user_id)
        if state is None:
            state = UserQuestState(user_id=user_id)
            self.session.add(state)
        
        if quest_type == "daily":
            state.last_daily_generated_at = generated_at
        else:
            state.last_weekly_generated_at = generated_at
            state.next_weekly_reset_allowed_at = next_weekly_reset_allowed_at
        
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(state)
        return state
