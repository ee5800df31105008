"""
UserQuestState SQLAlchemy model.

One row per user holding generation bookkeeping for the cooldown rules.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from mango_quests.infra.db.base import Base


class UserQuestState(Base):
    """Per-user quest generation timestamps."""
    
    __tablename__ = "user_quest_state"
    
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    last_daily_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_weekly_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_weekly_reset_allowed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    def __repr__(self) -> str:
        return f"<UserQuestState(user_id={self.user_id})>"
