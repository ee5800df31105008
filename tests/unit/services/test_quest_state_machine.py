"""
Tests for quest status transitions.
"""
import pytest
from sqlalchemy import select

from mango_quests.infra.db.models import Quest, UserProgress
from mango_quests.infra.db.repositories import QuestRepository
from mango_quests.services.errors import (
    QuestConflictError,
    QuestForbiddenError,
    QuestLimitError,
    QuestNotFoundError,
    QuestValidationError,
)
from mango_quests.services.quest_state_machine import (
    Ownership,
    QuestStateMachine,
    load_and_authorize,
)

from tests.conftest import OTHER_USER_ID, USER_ID


@pytest.fixture
def machine(session, settings) -> QuestStateMachine:
    return QuestStateMachine(session, settings=settings)


class TestLoadAndAuthorize:
    
    @pytest.mark.asyncio
    async def test_classifies_ownership(self, machine, make_quest):
        quest = await make_quest()
        
        assert (await load_and_authorize(machine.repo, USER_ID, quest.id)).ownership is Ownership.OK
        assert (await load_and_authorize(machine.repo, OTHER_USER_ID, quest.id)).ownership is Ownership.FORBIDDEN
        assert (await load_and_authorize(machine.repo, USER_ID, "missing")).ownership is Ownership.NOT_FOUND
    
    @pytest.mark.asyncio
    async def test_errors_are_distinct(self, machine, make_quest):
        quest = await make_quest()
        with pytest.raises(QuestNotFoundError):
            await machine.activate(USER_ID, "missing")
        with pytest.raises(QuestForbiddenError):
            await machine.activate(OTHER_USER_ID, quest.id)


class TestActivate:
    
    @pytest.mark.asyncio
    async def test_activate_stamps_time(self, machine, make_quest):
        quest = await make_quest()
        activated = await machine.activate(USER_ID, quest.id)
        assert activated.status == "active"
        assert activated.activated_at is not None
        assert len(activated.criteria) == 1
    
    @pytest.mark.asyncio
    async def test_daily_cap_of_two(self, machine, make_quest):
        quests = [await make_quest() for _ in range(3)]
        await machine.activate(USER_ID, quests[0].id)
        await machine.activate(USER_ID, quests[1].id)
        
        with pytest.raises(QuestLimitError) as excinfo:
            await machine.activate(USER_ID, quests[2].id)
        assert excinfo.value.status_code == 400
        assert excinfo.value.details == {"type": "daily", "limit": 2, "active": 2}
    
    @pytest.mark.asyncio
    async def test_weekly_cap_of_four_is_independent(self, machine, make_quest):
        for _ in range(2):
            await make_quest(status="active")
        weekly = [await make_quest(quest_type="weekly") for _ in range(5)]
        for quest in weekly[:4]:
            await machine.activate(USER_ID, quest.id)
        with pytest.raises(QuestLimitError):
            await machine.activate(USER_ID, weekly[4].id)
    
    @pytest.mark.asyncio
    async def test_cap_counts_only_own_quests(self, machine, make_quest):
        for _ in range(2):
            await make_quest(user_id=OTHER_USER_ID, status="active")
        quest = await make_quest()
        assert (await machine.activate(USER_ID, quest.id)).status == "active"
    
    @pytest.mark.asyncio
    async def test_cancel_frees_a_slot(self, machine, make_quest):
        first, second, third = [await make_quest() for _ in range(3)]
        await machine.activate(USER_ID, first.id)
        await machine.activate(USER_ID, second.id)
        await machine.cancel(USER_ID, first.id)
        assert (await machine.activate(USER_ID, third.id)).status == "active"
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["active", "claimable", "completed", "cancelled"])
    async def test_only_available_can_be_activated(self, machine, make_quest, status):
        quest = await make_quest(status=status)
        with pytest.raises(QuestValidationError):
            await machine.activate(USER_ID, quest.id)
    
    @pytest.mark.asyncio
    async def test_concurrent_activation_loser_gets_conflict(self, machine, session_factory, settings, make_quest, monkeypatch):
        quest = await make_quest()
        
        # Another request activates the quest between our read and our write
        async def interleave(*args, **kwargs):
            async with session_factory() as other_session:
                await QuestStateMachine(other_session, settings=settings).activate(USER_ID, quest.id)
            return 0
        
        monkeypatch.setattr(machine.repo, "count_active", interleave)
        
        with pytest.raises(QuestConflictError):
            await machine.activate(USER_ID, quest.id)
        
        stored = await machine.repo.get_with_criteria(quest.id)
        assert stored.status == "active"
    
    @pytest.mark.asyncio
    async def test_quest_replaced_mid_activation_is_conflict(self, machine, session_factory, make_quest, monkeypatch):
        quest = await make_quest()
        
        # A regeneration clears the offer between our read and our write
        async def interleave(*args, **kwargs):
            async with session_factory() as other_session:
                await QuestRepository(other_session).replace_available(USER_ID, "daily", [], [])
            return 0
        
        monkeypatch.setattr(machine.repo, "count_active", interleave)
        
        with pytest.raises(QuestConflictError):
            await machine.activate(USER_ID, quest.id)
        assert await machine.repo.get_with_criteria(quest.id) is None
    
    @pytest.mark.asyncio
    async def test_cap_enforced_at_write_time(self, machine, session_factory, settings, make_quest, monkeypatch):
        quests = [await make_quest() for _ in range(3)]
        await machine.activate(USER_ID, quests[0].id)
        
        # Another request fills the last slot after our pre-check passed
        async def interleave(*args, **kwargs):
            async with session_factory() as other_session:
                await QuestStateMachine(other_session, settings=settings).activate(USER_ID, quests[1].id)
            monkeypatch.setattr(machine.repo, "count_active", real_count_active)
            return 1
        
        real_count_active = machine.repo.count_active
        monkeypatch.setattr(machine.repo, "count_active", interleave)
        
        with pytest.raises(QuestLimitError):
            await machine.activate(USER_ID, quests[2].id)
        stored = await machine.repo.get_with_criteria(quests[2].id)
        assert stored.status == "available"


class TestCancelAndClaim:
    
    @pytest.mark.asyncio
    async def test_cancel_active(self, machine, make_quest):
        quest = await make_quest(status="active")
        cancelled = await machine.cancel(USER_ID, quest.id)
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["available", "claimable", "completed", "cancelled"])
    async def test_cancel_requires_active(self, machine, make_quest, status):
        quest = await make_quest(status=status)
        with pytest.raises(QuestValidationError):
            await machine.cancel(USER_ID, quest.id)
    
    @pytest.mark.asyncio
    async def test_claim_awards_xp_once(self, machine, session, make_quest):
        quest = await make_quest(status="claimable", xp_reward=120)
        
        result = await machine.claim(USER_ID, quest.id)
        assert result.quest.status == "completed"
        assert result.quest.completed_at is not None
        assert result.xp_award.awarded == 120
        assert result.xp_award.new_xp == 120
        assert result.xp_award.new_level == 2
        assert result.xp_award.level_up is True
        
        with pytest.raises(QuestValidationError):
            await machine.claim(USER_ID, quest.id)
        progress = await session.scalar(select(UserProgress).where(UserProgress.user_id == USER_ID))
        assert progress.xp == 120
    
    @pytest.mark.asyncio
    async def test_concurrent_cancel_loser_gets_conflict(self, machine, session_factory, settings, make_quest, monkeypatch):
        quest = await make_quest(status="active")
        real_transition = machine.repo.transition
        
        async def interleave(*args, **kwargs):
            async with session_factory() as other_session:
                await QuestStateMachine(other_session, settings=settings).cancel(USER_ID, quest.id)
            return await real_transition(*args, **kwargs)
        
        monkeypatch.setattr(machine.repo, "transition", interleave)
        
        with pytest.raises(QuestConflictError):
            await machine.cancel(USER_ID, quest.id)
        stored = await machine.repo.get_with_criteria(quest.id)
        assert stored.status == "cancelled"
    
    @pytest.mark.asyncio
    async def test_concurrent_claim_awards_xp_once(self, machine, session, session_factory, settings, make_quest, monkeypatch):
        quest = await make_quest(status="claimable", xp_reward=80)
        real_transition = machine.repo.transition
        winners = []
        
        # Another request claims the quest between our read and our write
        async def interleave(*args, **kwargs):
            async with session_factory() as other_session:
                winners.append(await QuestStateMachine(other_session, settings=settings).claim(USER_ID, quest.id))
            return await real_transition(*args, **kwargs)
        
        monkeypatch.setattr(machine.repo, "transition", interleave)
        
        with pytest.raises(QuestConflictError):
            await machine.claim(USER_ID, quest.id)
        
        assert len(winners) == 1
        assert winners[0].xp_award.awarded == 80
        progress = await session.scalar(
            select(UserProgress)
            .where(UserProgress.user_id == USER_ID)
            .execution_options(populate_existing=True)
        )
        assert progress.xp == 80
    
    @pytest.mark.asyncio
    async def test_claim_active_fails(self, machine, make_quest):
        quest = await make_quest(status="active")
        with pytest.raises(QuestValidationError):
            await machine.claim(USER_ID, quest.id)
    
    @pytest.mark.asyncio
    async def test_xp_failure_does_not_undo_completion(self, machine, make_quest, monkeypatch):
        quest = await make_quest(status="claimable")
        
        async def broken(*args, **kwargs):
            raise RuntimeError("progress store down")
        
        monkeypatch.setattr(machine.progress, "award_xp", broken)
        result = await machine.claim(USER_ID, quest.id)
        assert result.xp_award is None
        assert result.quest.status == "completed"


class TestSystemTransitions:
    
    @pytest.mark.asyncio
    async def test_mark_claimable_requires_active(self, machine, make_quest):
        active = await make_quest(status="active")
        available = await make_quest()
        assert await machine.mark_claimable(USER_ID, active.id) is True
        assert await machine.mark_claimable(USER_ID, active.id) is False
        assert await machine.mark_claimable(USER_ID, available.id) is False
    
    @pytest.mark.asyncio
    async def test_force_claimable(self, machine, make_quest):
        quest = await make_quest(status="active")
        forced = await machine.force_claimable(USER_ID, quest.id)
        assert forced.status == "claimable"
        assert forced.claimable_at is not None
    
    @pytest.mark.asyncio
    async def test_cancel_quests_for_deleted_habit(self, machine, session, make_quest):
        tracked = await make_quest(status="active", criteria=[
            {"type": "habit_check", "config": {"habit_id": "habit-9"}},
        ])
        untracked = await make_quest(status="active", criteria=[
            {"type": "habit_check", "config": {"habit_id": "habit-1"}},
        ])
        offered = await make_quest(criteria=[
            {"type": "habit_check", "config": {"habit_id": "habit-9"}},
        ])
        
        cancelled = await machine.cancel_quests_for_habit(USER_ID, "habit-9")
        
        assert cancelled == [tracked.id]
        statuses = dict((await session.execute(select(Quest.id, Quest.status))).all())
        assert statuses == {tracked.id: "cancelled", untracked.id: "active", offered.id: "available"}


class TestListQuests:
    
    @pytest.mark.asyncio
    async def test_filters(self, machine, make_quest):
        await make_quest()
        active = await make_quest(status="active")
        await make_quest(quest_type="weekly")
        await make_quest(user_id=OTHER_USER_ID)
        
        assert len(await machine.list_quests(USER_ID)) == 3
        assert [q.id for q in await machine.list_quests(USER_ID, status="active")] == [active.id]
        assert len(await machine.list_quests(USER_ID, quest_type="weekly")) == 1
    
    @pytest.mark.asyncio
    async def test_invalid_filters_rejected(self, machine):
        with pytest.raises(QuestValidationError):
            await machine.list_quests(USER_ID, status="done")
        with pytest.raises(QuestValidationError):
            await machine.list_quests(USER_ID, quest_type="monthly")
