"""
Repository layer for database operations.

Provides easy access to all repositories.
"""
from mango_quests.infra.db.repositories.base import BaseRepository
from mango_quests.infra.db.repositories.quest import QuestRepository
from mango_quests.infra.db.repositories.criterion import CriterionRepository
from mango_quests.infra.db.repositories.user_quest_state import UserQuestStateRepository
from mango_quests.infra.db.repositories.habit import HabitRepository
from mango_quests.infra.db.repositories.user_progress import UserProgressRepository

__all__ = [
    "BaseRepository",
    "QuestRepository",
    "CriterionRepository",
    "UserQuestStateRepository",
    "HabitRepository",
    "UserProgressRepository",
]
