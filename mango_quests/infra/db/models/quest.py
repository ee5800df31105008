"""
Quest and QuestCriterion SQLAlchemy models.

A Quest is a short-lived, rewardable unit of work owned by one user. It is
satisfied through one or more criteria, each a single measurable condition
reported on by the activity trackers (habits, steps, finance, pomodoro, todos).
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mango_quests.infra.db.base import Base, utcnow


class QuestStatus(str, Enum):
    """Lifecycle status of a quest."""
    AVAILABLE = "available"
    ACTIVE = "active"
    CLAIMABLE = "claimable"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuestType(str, Enum):
    """Cadence of a quest."""
    DAILY = "daily"
    WEEKLY = "weekly"


class QuestSource(str, Enum):
    """Where a quest came from."""
    MANUAL = "manual"
    LLM_GENERATED = "llm_generated"


class CriterionType(str, Enum):
    """Kinds of measurable conditions a criterion can track."""
    HABIT_CHECK = "habit_check"
    STEPS_REACH = "steps_reach"
    FINANCE_UNDER_ALLOWANCE = "finance_under_allowance"
    POMODORO_SESSION = "pomodoro_session"
    TODO_COMPLETE = "todo_complete"


class Quest(Base):
    """
    A quest offered to (and possibly taken on by) a user.
    
    Status moves available -> active -> claimable -> completed, with
    active -> cancelled as the only abnormal exit. Every status change is a
    conditional update on the status column.
    """
    
    __tablename__ = "quests"
    
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=QuestStatus.AVAILABLE.value, index=True)
    source: Mapped[str] = mapped_column(String(20), default=QuestSource.MANUAL.value)
    
    # Timing
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    claimable_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    # Generation audit trail
    llm_prompt_context: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    llm_response_raw: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    
    criteria: Mapped[list["QuestCriterion"]] = relationship(
        "QuestCriterion",
        back_populates="quest",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuestCriterion.created_at",
    )
    
    def __repr__(self) -> str:
        return f"<Quest(id={self.id}, type={self.type}, status={self.status})>"


class QuestCriterion(Base):
    """
    One measurable condition of a quest.
    
    Invariant: is_met is true iff current_progress >= target_count, except for
    pass/fail criteria (finance_under_allowance) where is_met reflects the
    reported condition and current_progress is pinned to the target.
    """
    
    __tablename__ = "quest_criteria"
    
    quest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    target_count: Mapped[int] = mapped_column(Integer, default=1)
    current_progress: Mapped[int] = mapped_column(Integer, default=0)
    is_met: Mapped[bool] = mapped_column(Boolean, default=False)
    
    quest: Mapped["Quest"] = relationship("Quest", back_populates="criteria")
    
    def __repr__(self) -> str:
        return (
            f"<QuestCriterion(id={self.id}, type={self.type}, "
            f"progress={self.current_progress}/{self.target_count}, met={self.is_met})>"
        )
