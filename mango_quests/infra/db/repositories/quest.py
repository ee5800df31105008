"""
Quest repository: reads, conditional status transitions and batch replacement.
"""
import logging
from typing import TYPE_CHECKING, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from mango_quests.infra.db.base import utcnow
from mango_quests.infra.db.models.quest import Quest, QuestCriterion, QuestSource, QuestStatus
from mango_quests.infra.db.repositories.base import BaseRepository

if TYPE_CHECKING:
    from mango_quests.services.quest_validation import PendingCriterion, PendingQuest

logger = logging.getLogger(__name__)


class QuestRepository(BaseRepository[Quest]):
    """Repository for Quest rows and their criteria."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(Quest, session)
    
    async def get_with_criteria(self, id: str) -> Optional[Quest]:
        """Get a quest with its criteria eagerly loaded, always re-read from storage."""
        stmt = (
            select(Quest)
            .options(selectinload(Quest.criteria))
            .where(Quest.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
    
    async def list_for_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        quest_type: Optional[str] = None,
    ) -> Sequence[Quest]:
        """List a user's quests with criteria, newest first."""
        stmt = (
            select(Quest)
            .options(selectinload(Quest.criteria))
            .where(Quest.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        if status:
            stmt = stmt.where(Quest.status == status)
        if quest_type:
            stmt = stmt.where(Quest.type == quest_type)
        stmt = stmt.order_by(Quest.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()
    
    async def count_active(self, user_id: str, quest_type: str) -> int:
        """Count a user's currently active quests of one type."""
        stmt = select(func.count()).select_from(Quest).where(
            Quest.user_id == user_id,
            Quest.type == quest_type,
            Quest.status == QuestStatus.ACTIVE.value,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
    
    async def count_by_status_and_type(self, user_id: str) -> dict[tuple[str, str], int]:
        """Quest counts keyed by (status, type)."""
        stmt = (
            select(Quest.status, Quest.type, func.count())
            .where(Quest.user_id == user_id)
            .group_by(Quest.status, Quest.type)
        )
        result = await self.session.execute(stmt)
        return {(status, quest_type): count for status, quest_type, count in result.all()}

    async def transition(
        self,
        id: str,
        user_id: str,
        from_status: QuestStatus,
        to_status: QuestStatus,
        stamp_field: str,
        active_cap: Optional[int] = None,
        quest_type: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-swap the status of one quest.
        
        The row is only written if it still has ``from_status`` (and, when
        ``active_cap`` is given, the owner still has fewer than ``active_cap``
        active quests of ``quest_type``) at write time.
        
        Returns:
            True if exactly this call moved the quest, False if nothing matched.
        """
        stmt = (
            update(Quest)
            .where(
                Quest.id == id,
                Quest.user_id == user_id,
                Quest.status == from_status.value,
            )
            .values(status=to_status.value, **{stamp_field: utcnow()})
            .returning(Quest.id)
            .execution_options(synchronize_session=False)
        )
        if active_cap is not None:
            active = aliased(Quest)
            active_count = (
                select(func.count())
                .select_from(active)
                .where(
                    active.user_id == user_id,
                    active.type == quest_type,
                    active.status == QuestStatus.ACTIVE.value,
                )
                .scalar_subquery()
            )
            stmt = stmt.where(active_count < active_cap)
        
        result = await self.session.execute(stmt)
        moved = result.scalar_one_or_none() is not None
        await self.session.commit()
        return moved
    
    async def find_active_with_habit(self, user_id: str, habit_id: str) -> Sequence[str]:
        """IDs of the user's active quests with a habit_check criterion on ``habit_id``."""
        stmt = (
            select(Quest.id)
            .join(QuestCriterion, QuestCriterion.quest_id == Quest.id)
            .where(
                Quest.user_id == user_id,
                Quest.status == QuestStatus.ACTIVE.value,
                QuestCriterion.type == "habit_check",
                QuestCriterion.config["habit_id"].as_string() == habit_id,
            )
            .distinct()
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
    
    async def replace_available(
        self,
        user_id: str,
        quest_type: str,
        quests: Sequence["PendingQuest"],
        criteria: Sequence["PendingCriterion"],
        prompt_context: Optional[dict] = None,
        response_raw: Optional[dict] = None,
    ) -> list[Quest]:
        """
        Replace the user's available quests of one type with a generated batch.
        
        Runs as a single transaction: clear stale offers, insert quests, map each
        pending quest's temporary id to its durable id, then insert the criteria
        pointing at the durable ids. Any failure rolls everything back.
        """
        generated_at = utcnow()
        try:
            # 1. Clear stale offers (never touches non-available quests)
            stale_ids = select(Quest.id).where(
                Quest.user_id == user_id,
                Quest.type == quest_type,
                Quest.status == QuestStatus.AVAILABLE.value,
            )
            await self.session.execute(
                delete(QuestCriterion)
                .where(QuestCriterion.quest_id.in_(stale_ids))
                .execution_options(synchronize_session=False)
            )
            deleted = await self.session.execute(
                delete(Quest)
                .where(
                    Quest.user_id == user_id,
                    Quest.type == quest_type,
                    Quest.status == QuestStatus.AVAILABLE.value,
                )
                .execution_options(synchronize_session=False)
            )
            logger.info(f"[QuestRepo] Cleared {deleted.rowcount} available {quest_type} quests for user {user_id}")
            
            # 2. Insert quests; durable ids are assigned at flush, in submission order
            rows = [
                Quest(
                    user_id=user_id,
                    type=quest_type,
                    description=pending.description,
                    xp_reward=pending.xp_reward,
                    status=QuestStatus.AVAILABLE.value,
                    source=QuestSource.LLM_GENERATED.value,
                    generated_at=generated_at,
                    llm_prompt_context=prompt_context,
                    llm_response_raw=response_raw,
                )
                for pending in quests
            ]
            self.session.add_all(rows)
            await self.session.flush()
            if len(rows) != len(quests) or any(row.id is None for row in rows):
                raise RuntimeError("Quest insertion count mismatch")
            
            # 3. Stitch temporary ids to durable ids
            id_map = {pending.temp_id: row.id for pending, row in zip(quests, rows)}
            criterion_rows = []
            for pending in criteria:
                durable_id = id_map.get(pending.quest_ref)
                if durable_id is None:
                    raise RuntimeError(f"Could not find durable quest id for temporary id {pending.quest_ref}")
                criterion_rows.append(
                    QuestCriterion(
                        quest_id=durable_id,
                        description=pending.description,
                        type=pending.type,
                        config=pending.config,
                        target_count=pending.target_count,
                        current_progress=0,
                        is_met=False,
                    )
                )
            self.session.add_all(criterion_rows)
            await self.session.flush()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        
        inserted = []
        for row in rows:
            quest = await self.get_with_criteria(row.id)
            if quest is not None:
                inserted.append(quest)
        return inserted
