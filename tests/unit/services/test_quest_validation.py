"""
Tests for generated quest validation and normalization.
"""
import pytest

from mango_quests.services.quest_validation import (
    GeneratedContentError,
    resolve_habit,
    validate_generated_quests,
)

HABITS = {"Meditate": "habit-1", "Read 20 pages": "habit-2"}


def quest(criteria, description="Do things", xp_reward=20):
    return {"description": description, "xp_reward": xp_reward, "criteria": criteria}


def criterion(ctype, **config):
    return {"description": f"{ctype} criterion", "type": ctype, "config": config}


class TestResolveHabit:
    
    def test_exact_match(self):
        assert resolve_habit("Meditate", HABITS) == "habit-1"
    
    def test_case_and_whitespace_insensitive_fallback(self):
        assert resolve_habit("  read 20 PAGES ", HABITS) == "habit-2"
    
    def test_unknown(self):
        assert resolve_habit("Run", HABITS) is None


class TestValidateGeneratedQuests:
    
    @pytest.mark.parametrize("raw", [None, [], {"quests": "nope"}, {"items": []}])
    def test_bad_shape_raises(self, raw):
        with pytest.raises(GeneratedContentError):
            validate_generated_quests(raw, HABITS)
    
    def test_habit_name_replaced_by_habit_id(self):
        raw = {"quests": [quest([criterion("habit_check", habit_name="Meditate", target_count=1)])]}
        outcome = validate_generated_quests(raw, HABITS)
        
        assert outcome.errors == []
        [pending] = outcome.criteria
        assert pending.config == {"habit_id": "habit-1"}
        assert pending.target_count == 1
        assert pending.quest_ref == outcome.quests[0].temp_id
    
    def test_unknown_habit_drops_whole_quest(self):
        raw = {"quests": [
            quest([
                criterion("steps_reach", target_count=5000),
                criterion("habit_check", habit_name="Yoga", target_count=1),
            ], description="Mixed"),
            quest([criterion("todo_complete", target_count=3)], description="Todos"),
        ]}
        outcome = validate_generated_quests(raw, HABITS)
        
        assert [q.description for q in outcome.quests] == ["Todos"]
        assert len(outcome.criteria) == 1
        assert len(outcome.errors) == 1
        assert "Yoga" in outcome.errors[0]
    
    def test_disallowed_criterion_type_rejected(self):
        raw = {"quests": [quest([criterion("sleep_hours", target_count=8)])]}
        outcome = validate_generated_quests(raw, HABITS)
        assert outcome.quests == []
        assert "not allowed" in outcome.errors[0]
    
    @pytest.mark.parametrize("target", [None, 0, -3, "5", 2.5, True])
    def test_invalid_target_rejected(self, target):
        config = {} if target is None else {"target_count": target}
        raw = {"quests": [quest([criterion("pomodoro_session", **config)])]}
        outcome = validate_generated_quests(raw, HABITS)
        assert outcome.quests == []
        assert "target_count" in outcome.errors[0]
    
    def test_finance_target_forced_to_one(self):
        raw = {"quests": [quest([criterion("finance_under_allowance", target_count=7)])]}
        outcome = validate_generated_quests(raw, HABITS)
        [pending] = outcome.criteria
        assert pending.target_count == 1
        assert "target_count" not in pending.config
    
    @pytest.mark.parametrize("bad", [
        {"xp_reward": 20, "criteria": [criterion("todo_complete", target_count=1)]},
        {"description": "No xp", "criteria": [criterion("todo_complete", target_count=1)]},
        {"description": "Zero xp", "xp_reward": 0, "criteria": [criterion("todo_complete", target_count=1)]},
        {"description": "No criteria", "xp_reward": 20, "criteria": []},
        "just a string",
    ])
    def test_malformed_quest_rejected(self, bad):
        outcome = validate_generated_quests({"quests": [bad]}, HABITS)
        assert outcome.quests == []
        assert len(outcome.errors) == 1
    
    def test_temp_ids_are_unique(self):
        raw = {"quests": [quest([criterion("todo_complete", target_count=1)]) for _ in range(3)]}
        outcome = validate_generated_quests(raw, HABITS)
        temp_ids = {q.temp_id for q in outcome.quests}
        assert len(temp_ids) == 3
        assert all(t.startswith("tmp-") for t in temp_ids)
