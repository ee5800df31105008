"""
Habit SQLAlchemy model.

Owned by the habit tracker; the quest subsystem only reads it to ground
habit_check criteria on real habits.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from mango_quests.infra.db.base import Base


class Habit(Base):
    __tablename__ = "manual_habits"
    
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="positive")
    
    def __repr__(self) -> str:
        return f"<Habit(id={self.id}, name={self.name})>"
