"""
Shared fixtures: a file-backed SQLite database per test, seeded habits,
quest factories and a scripted generative client.
"""
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mango_quests.adapters.base import GenerativeClient
from mango_quests.config import Settings
from mango_quests.infra.db.models import Habit, Quest, QuestCriterion
from mango_quests.infra.db.session import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeGenerativeClient(GenerativeClient):
    """Returns a scripted response (or raises) and records every prompt."""
    
    def __init__(self, response: Optional[dict] = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []
    
    @property
    def name(self) -> str:
        return "fake"
    
    async def generate_json(self, prompt: str) -> dict[str, Any]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


def generated_quest(
    description: str = "Walk it off",
    xp_reward: int = 30,
    criteria: Optional[list[dict]] = None,
) -> dict:
    return {
        "description": description,
        "xp_reward": xp_reward,
        "criteria": criteria if criteria is not None else [
            {"description": "Walk 5000 steps", "type": "steps_reach", "config": {"target_count": 5000}},
        ],
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        environment="development",
        enable_debug_routes=True,
    )


@pytest_asyncio.fixture
async def engine(tmp_path, settings):
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'quests.db'}"
    engine = create_engine_from_settings(settings.model_copy(update={"database_url": database_url}))
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def habit(session) -> Habit:
    habit = Habit(user_id=USER_ID, name="Meditate")
    session.add(habit)
    await session.commit()
    return habit


@pytest.fixture
def make_quest(session):
    """Insert a quest with criteria directly; returns the reloaded quest."""
    
    async def _make(
        user_id: str = USER_ID,
        quest_type: str = "daily",
        status: str = "available",
        xp_reward: int = 25,
        criteria: Optional[list[dict]] = None,
        activated_at: Optional[datetime] = None,
    ) -> Quest:
        if status != "available" and activated_at is None:
            activated_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        quest = Quest(
            user_id=user_id,
            description=f"{quest_type} quest",
            xp_reward=xp_reward,
            type=quest_type,
            status=status,
            source="llm_generated",
            activated_at=activated_at,
        )
        session.add(quest)
        await session.flush()
        for item in criteria if criteria is not None else [{"type": "todo_complete", "target_count": 1}]:
            session.add(QuestCriterion(
                quest_id=quest.id,
                description=item.get("description", item["type"]),
                type=item["type"],
                config=item.get("config", {}),
                target_count=item.get("target_count", 1),
                current_progress=item.get("current_progress", 0),
                is_met=item.get("is_met", False),
            ))
        await session.commit()
        return quest
    
    return _make
