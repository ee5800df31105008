"""
User progression: experience points and levels.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.repositories import UserProgressRepository

logger = logging.getLogger(__name__)

# (level, total xp required)
LEVEL_THRESHOLDS: list[tuple[int, int]] = [
    (1, 0),
    (2, 100),
    (3, 250),
    (4, 500),
    (5, 1000),
    (6, 1750),
    (7, 2750),
    (8, 4000),
    (9, 5500),
    (10, 7500),
]


def calculate_level(total_xp: int) -> int:
    """Highest level whose threshold ``total_xp`` reaches."""
    for level, required in reversed(LEVEL_THRESHOLDS):
        if total_xp >= required:
            return level
    return 1


@dataclass
class AwardXpResult:
    awarded: int
    new_xp: int
    new_level: int
    level_up: bool


class UserProgressService:
    """Awards experience and keeps levels in sync with it."""
    
    def __init__(self, session: AsyncSession):
        self.repo = UserProgressRepository(session)
    
    async def get_level(self, user_id: str) -> tuple[int, int]:
        """(level, xp) for a user; users without progress are level 1 with 0 xp."""
        progress = await self.repo.get_for_user(user_id)
        if progress is None:
            return 1, 0
        return progress.level, progress.xp
    
    async def award_xp(self, user_id: str, amount: int) -> AwardXpResult:
        """
        Add ``amount`` experience to a user.
        
        Raises:
            ValueError: amount is not a positive integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Invalid XP amount: {amount!r}")
        
        await self.repo.ensure_for_user(user_id)
        new_xp, previous_level = await self.repo.add_xp(user_id, amount)
        new_level = calculate_level(new_xp)
        if new_level > previous_level:
            await self.repo.set_level(user_id, new_level)
            logger.info(f"[Progress] User {user_id} leveled up: {previous_level} -> {new_level}")
        
        return AwardXpResult(
            awarded=amount,
            new_xp=new_xp,
            new_level=max(new_level, previous_level),
            level_up=new_level > previous_level,
        )
