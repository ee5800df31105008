"""
SQLAlchemy models for the quest database.

Exports all models for easy importing.
"""
from mango_quests.infra.db.base import Base

# Import all models so they're registered with Base
from mango_quests.infra.db.models.quest import (
    CriterionType,
    Quest,
    QuestCriterion,
    QuestSource,
    QuestStatus,
    QuestType,
)
from mango_quests.infra.db.models.user_quest_state import UserQuestState
from mango_quests.infra.db.models.habit import Habit
from mango_quests.infra.db.models.user_progress import UserProgress

__all__ = [
    "Base",
    "CriterionType",
    "Quest",
    "QuestCriterion",
    "QuestSource",
    "QuestStatus",
    "QuestType",
    "UserQuestState",
    "Habit",
    "UserProgress",
]
