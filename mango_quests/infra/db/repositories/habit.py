"""
Habit repository (read-only from the quest subsystem's side).
"""
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.models.habit import Habit
from mango_quests.infra.db.repositories.base import BaseRepository


class HabitRepository(BaseRepository[Habit]):
    
    def __init__(self, session: AsyncSession):
        super().__init__(Habit, session)
    
    async def list_for_user(self, user_id: str, limit: int = 50) -> Sequence[Habit]:
        """A user's habits, oldest first, bounded by ``limit``."""
        stmt = (
            select(Habit)
            .where(Habit.user_id == user_id)
            .order_by(Habit.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
