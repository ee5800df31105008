"""
UserProgress repository.
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.models.user_progress import UserProgress
from mango_quests.infra.db.repositories.base import BaseRepository


class UserProgressRepository(BaseRepository[UserProgress]):
    
    def __init__(self, session: AsyncSession):
        super().__init__(UserProgress, session)
    
    async def get_for_user(self, user_id: str) -> Optional[UserProgress]:
        stmt = (
            select(UserProgress)
            .where(UserProgress.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
    
    async def ensure_for_user(self, user_id: str) -> UserProgress:
        """Get the user's progress row, creating it at level 1 if missing."""
        progress = await self.get_for_user(user_id)
        if progress is not None:
            return progress
        try:
            return await self.create(user_id=user_id, xp=0, level=1)
        except IntegrityError:
            # Created concurrently by another request
            await self.session.rollback()
            return await self.get_for_user(user_id)
    
    async def add_xp(self, user_id: str, amount: int) -> tuple[int, int]:
        """
        Atomically add XP.
        
        Returns:
            (new_xp, level_before_update)
        """
        stmt = (
            update(UserProgress)
            .where(UserProgress.user_id == user_id)
            .values(xp=UserProgress.xp + amount)
            .returning(UserProgress.xp, UserProgress.level)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        new_xp, level = result.one()
        await self.session.commit()
        return new_xp, level
    
    async def set_level(self, user_id: str, level: int) -> None:
        stmt = (
            update(UserProgress)
            .where(UserProgress.user_id == user_id, UserProgress.level < level)
            .values(level=level)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()
