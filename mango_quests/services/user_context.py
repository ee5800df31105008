"""
User context gathered for quest generation.

A small, bounded, read-only snapshot of the user's progress, habits and
current quest load.
"""
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.repositories import HabitRepository, QuestRepository
from mango_quests.services.user_progress import UserProgressService

MAX_CONTEXT_HABITS = 50


@dataclass(frozen=True)
class HabitRef:
    id: str
    name: str


@dataclass
class UserContext:
    user_id: str
    level: int = 1
    xp: int = 0
    habits: list[HabitRef] = field(default_factory=list)
    quest_counts: dict[tuple[str, str], int] = field(default_factory=dict)
    
    @property
    def habit_names(self) -> list[str]:
        return [habit.name for habit in self.habits]
    
    @property
    def habits_by_name(self) -> dict[str, str]:
        """Exact habit name -> habit id."""
        return {habit.name: habit.id for habit in self.habits}
    
    def _count(self, status: str, quest_type: str) -> int:
        return self.quest_counts.get((status, quest_type), 0)
    
    def summary(self) -> str:
        """Tagged text block describing the user, for prompts and audit."""
        habits = ", ".join(self.habit_names) if self.habits else "No habits defined"
        quests = (
            f"Active: {self._count('active', 'daily')} Daily, {self._count('active', 'weekly')} Weekly. "
            f"Claimable: {self._count('claimable', 'daily')} Daily, {self._count('claimable', 'weekly')} Weekly."
        )
        return "\n".join([
            "<user_context>",
            f"  <progress>Level: {self.level}, XP: {self.xp}</progress>",
            f"  <quests>{quests}</quests>",
            f"  <habits>{habits}</habits>",
            "</user_context>",
        ])


class UserContextService:
    
    def __init__(self, session: AsyncSession):
        self.habits = HabitRepository(session)
        self.quests = QuestRepository(session)
        self.progress = UserProgressService(session)
    
    async def gather(self, user_id: str) -> UserContext:
        level, xp = await self.progress.get_level(user_id)
        habits = await self.habits.list_for_user(user_id, limit=MAX_CONTEXT_HABITS)
        counts = await self.quests.count_by_status_and_type(user_id)
        return UserContext(
            user_id=user_id,
            level=level,
            xp=xp,
            habits=[HabitRef(id=h.id, name=h.name) for h in habits],
            quest_counts=counts,
        )
