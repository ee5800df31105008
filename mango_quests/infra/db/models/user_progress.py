"""
UserProgress SQLAlchemy model (experience and level).
"""
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mango_quests.infra.db.base import Base


class UserProgress(Base):
    __tablename__ = "user_progress"
    
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    
    def __repr__(self) -> str:
        return f"<UserProgress(user_id={self.user_id}, level={self.level}, xp={self.xp})>"
