"""
Validation and normalization of generated quest batches.

Generated output is untrusted. Each proposed quest is accepted or rejected as
a whole: a single bad criterion (unknown type, malformed config, missing
target, unresolvable habit) drops its entire quest. Accepted quests get a
temporary id that their criteria reference until durable ids exist.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from mango_quests.infra.db.models.quest import CriterionType
from mango_quests.services.errors import QuestValidationError

logger = logging.getLogger(__name__)

ALLOWED_CRITERION_TYPES = frozenset(t.value for t in CriterionType)

# Pass/fail criteria with an implicit target of 1
BINARY_CRITERION_TYPES = frozenset({CriterionType.FINANCE_UNDER_ALLOWANCE.value})


class GeneratedContentError(QuestValidationError):
    """The generative service returned content that cannot be used."""
    status_code = 502
    error_code = "INVALID_GENERATED_CONTENT"


@dataclass
class PendingCriterion:
    """A validated criterion waiting for its quest's durable id."""
    quest_ref: str
    description: str
    type: str
    config: dict[str, Any]
    target_count: int


@dataclass
class PendingQuest:
    """A validated quest identified by a temporary id until inserted."""
    temp_id: str
    description: str
    xp_reward: int
    criteria: list[PendingCriterion] = field(default_factory=list)


@dataclass
class ValidationOutcome:
    quests: list[PendingQuest] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    
    @property
    def criteria(self) -> list[PendingCriterion]:
        return [criterion for quest in self.quests for criterion in quest.criteria]


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _preview(value: Any, limit: int = 200) -> str:
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    return text if len(text) <= limit else text[:limit] + "..."


def resolve_habit(name: str, habits_by_name: dict[str, str]) -> Optional[str]:
    """Habit id for ``name``: exact match first, then case/whitespace-insensitive."""
    if name in habits_by_name:
        return habits_by_name[name]
    wanted = name.strip().casefold()
    for habit_name, habit_id in habits_by_name.items():
        if habit_name.strip().casefold() == wanted:
            return habit_id
    return None


def _validate_criterion(
    criterion: Any,
    quest_ref: str,
    quest_label: str,
    habits_by_name: dict[str, str],
) -> tuple[Optional[PendingCriterion], Optional[str]]:
    if not isinstance(criterion, dict):
        return None, f"Criterion in quest '{quest_label}' is not an object: {_preview(criterion)}"
    
    description = criterion.get("description")
    ctype = criterion.get("type")
    config = criterion.get("config")
    
    if not _is_text(description):
        return None, f"Criterion in quest '{quest_label}' is missing a description: {_preview(criterion)}"
    if ctype not in ALLOWED_CRITERION_TYPES:
        return None, f"Criterion type {ctype!r} in quest '{quest_label}' is not allowed"
    if not isinstance(config, dict):
        return None, f"Criterion config in quest '{quest_label}' is not an object: {_preview(config)}"
    
    normalized = dict(config)
    raw_target = normalized.pop("target_count", None)
    if ctype in BINARY_CRITERION_TYPES:
        target_count = 1
    elif _is_positive_int(raw_target):
        target_count = raw_target
    else:
        return None, f"Invalid or missing target_count for criterion type '{ctype}' in quest '{quest_label}'"
    
    if ctype == CriterionType.HABIT_CHECK.value:
        habit_name = normalized.pop("habit_name", None)
        if not _is_text(habit_name):
            return None, f"Missing or invalid habit_name for habit_check criterion in quest '{quest_label}'"
        habit_id = resolve_habit(habit_name, habits_by_name)
        if habit_id is None:
            available = ", ".join(habits_by_name) or "none"
            return None, (
                f"Quest '{quest_label}' references unknown habit '{habit_name}'. "
                f"Available habits: {available}"
            )
        normalized["habit_id"] = habit_id
    
    return PendingCriterion(
        quest_ref=quest_ref,
        description=description.strip(),
        type=ctype,
        config=normalized,
        target_count=target_count,
    ), None


def validate_generated_quests(raw: Any, habits_by_name: dict[str, str]) -> ValidationOutcome:
    """
    Validate a generated ``{"quests": [...]}`` object.
    
    Returns:
        ValidationOutcome with the accepted quests and a human-readable error
        for every rejected one.
    
    Raises:
        GeneratedContentError: The object does not have the expected shape at all
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("quests"), list):
        raise GeneratedContentError(
            "Generated content did not have the expected {\"quests\": [...]} structure.",
            details=_preview(raw),
        )
    
    outcome = ValidationOutcome()
    for index, quest in enumerate(raw["quests"]):
        if not isinstance(quest, dict):
            outcome.errors.append(f"Quest #{index + 1} is not an object: {_preview(quest)}")
            continue
        
        description = quest.get("description")
        xp_reward = quest.get("xp_reward")
        criteria = quest.get("criteria")
        if (
            not _is_text(description)
            or not _is_positive_int(xp_reward)
            or not isinstance(criteria, list)
            or not criteria
        ):
            outcome.errors.append(f"Invalid quest structure or missing/invalid fields: {_preview(quest)}")
            continue
        
        pending = PendingQuest(
            temp_id=f"tmp-{uuid4()}",
            description=description.strip(),
            xp_reward=xp_reward,
        )
        for criterion in criteria:
            accepted, error = _validate_criterion(criterion, pending.temp_id, description, habits_by_name)
            if error:
                outcome.errors.append(error)
                break
            pending.criteria.append(accepted)
        else:
            outcome.quests.append(pending)
    
    if outcome.errors:
        logger.warning(
            f"[QuestGen] Rejected {len(outcome.errors)} generated quest(s); "
            f"accepted {len(outcome.quests)}"
        )
    return outcome
