"""
Per-criterion-type progress rules.

Each rule has two halves. ``validate`` checks an event payload once and
returns the normalized event; it is the only place a payload is rejected.
``apply`` inspects one unmet criterion against that event and says how the
criterion moves: an increment, an absolute running total, or met outright.
Rules are pure; storage writes happen in the progress tracker.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional

import pytz

from mango_quests.infra.db.models.quest import CriterionType, QuestCriterion
from mango_quests.services.errors import QuestValidationError

logger = logging.getLogger(__name__)


@dataclass
class CriterionProgress:
    """How a single event advances a criterion. A no-op when nothing is set."""
    increment: int = 0
    absolute: Optional[int] = None
    met: bool = False

    @property
    def is_noop(self) -> bool:
        return self.increment <= 0 and self.absolute is None and not self.met


@dataclass
class ProgressContext:
    user_id: str
    tz: pytz.BaseTzInfo
    today: date
    activation_date: Optional[date] = None


Validator = Callable[[dict, date], dict]
Evaluator = Callable[[QuestCriterion, dict, ProgressContext], CriterionProgress]


@dataclass(frozen=True)
class CriterionRule:
    validate: Validator
    apply: Evaluator


NO_PROGRESS = CriterionProgress()


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise QuestValidationError(f"'{field}' must be an ISO date string.", details={field: value})
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise QuestValidationError(f"'{field}' must be an ISO date string.", details={field: value})


def _is_non_negative(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and value >= 0


def _non_negative(value: Any, field: str) -> float:
    if not _is_non_negative(value):
        raise QuestValidationError(f"'{field}' must be a non-negative number.", details={field: value})
    return value


def _count(payload: dict) -> int:
    count = payload.get("count", 1)
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise QuestValidationError("'count' must be a positive integer.", details={"count": count})
    return count


def _before_activation(day: date, context: ProgressContext) -> bool:
    return context.activation_date is not None and day < context.activation_date


def validate_habit_check(payload: dict, today: date) -> dict:
    habit_id = payload.get("habit_id")
    if not habit_id:
        raise QuestValidationError("'habit_id' is required for habit_check progress.")
    return {"habit_id": habit_id, "entry_date": _parse_date(payload.get("entry_date", today), "entry_date")}


def apply_habit_check(criterion: QuestCriterion, event: dict, context: ProgressContext) -> CriterionProgress:
    # Only a check-in for today (local), on or after activation, for the tracked habit counts
    if (criterion.config or {}).get("habit_id") != event["habit_id"]:
        return NO_PROGRESS
    entry_date = event["entry_date"]
    if entry_date != context.today or _before_activation(entry_date, context):
        return NO_PROGRESS
    return CriterionProgress(increment=1)


def validate_steps_reach(payload: dict, today: date) -> dict:
    """Steps are reported as the day's running total, not as a delta."""
    return {
        "steps": int(_non_negative(payload.get("steps"), "steps")),
        "date": _parse_date(payload.get("date", today), "date"),
    }


def apply_steps_reach(criterion: QuestCriterion, event: dict, context: ProgressContext) -> CriterionProgress:
    steps = event["steps"]
    if steps <= (criterion.current_progress or 0) or _before_activation(event["date"], context):
        return NO_PROGRESS
    return CriterionProgress(absolute=steps)


def validate_count(payload: dict, today: date) -> dict:
    return {"count": _count(payload)}


def apply_count(criterion: QuestCriterion, event: dict, context: ProgressContext) -> CriterionProgress:
    return CriterionProgress(increment=event["count"])


def validate_finance_under_allowance(payload: dict, today: date) -> dict:
    allowance = payload.get("allowance")
    return {
        "spent": _non_negative(payload.get("spent"), "spent"),
        "allowance": None if allowance is None else _non_negative(allowance, "allowance"),
        "date": _parse_date(payload.get("date", today), "date"),
    }


def apply_finance_under_allowance(criterion: QuestCriterion, event: dict, context: ProgressContext) -> CriterionProgress:
    allowance = event["allowance"]
    if allowance is None:
        allowance = (criterion.config or {}).get("allowance")
        if not _is_non_negative(allowance):
            logger.warning(
                f"[QuestProgress] Criterion {criterion.id} has no usable allowance ({allowance!r}), skipping"
            )
            return NO_PROGRESS
    if _before_activation(event["date"], context):
        return NO_PROGRESS
    return CriterionProgress(met=event["spent"] <= allowance)


CRITERIA_RULES: dict[str, CriterionRule] = {
    CriterionType.HABIT_CHECK.value: CriterionRule(validate_habit_check, apply_habit_check),
    CriterionType.STEPS_REACH.value: CriterionRule(validate_steps_reach, apply_steps_reach),
    CriterionType.POMODORO_SESSION.value: CriterionRule(validate_count, apply_count),
    CriterionType.TODO_COMPLETE.value: CriterionRule(validate_count, apply_count),
    CriterionType.FINANCE_UNDER_ALLOWANCE.value: CriterionRule(
        validate_finance_under_allowance, apply_finance_under_allowance
    ),
}


def get_rule(criterion_type: str) -> CriterionRule:
    rule = CRITERIA_RULES.get(criterion_type)
    if rule is None:
        raise QuestValidationError(
            f"Unsupported criterion type: {criterion_type}",
            details={"supported": sorted(CRITERIA_RULES)},
        )
    return rule
