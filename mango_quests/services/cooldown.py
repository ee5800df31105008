"""
Generation cooldown rules.

Daily quests may be generated once per local calendar day. Weekly quests may
be generated once per local week, where a week starts at a fixed local weekday
and hour (Monday 00:00 by default). All boundaries are computed in the
caller's IANA time zone; stored timestamps are UTC.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from mango_quests.infra.db.base import as_utc
from mango_quests.infra.db.models.quest import QuestType
from mango_quests.infra.db.models.user_quest_state import UserQuestState
from mango_quests.services.errors import QuestValidationError


@dataclass
class CooldownDecision:
    """Outcome of a cooldown check."""
    allowed: bool
    reason: Optional[str] = None
    next_allowed_at: Optional[datetime] = None


def resolve_timezone(name: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve an IANA zone name; a missing or unknown zone is a validation error."""
    if not name or not name.strip():
        raise QuestValidationError("A user timezone is required.")
    try:
        return pytz.timezone(name.strip())
    except pytz.UnknownTimeZoneError:
        raise QuestValidationError(f"Unknown timezone: {name}")


def _localize(tz: pytz.BaseTzInfo, day: date, at: time) -> datetime:
    return tz.normalize(tz.localize(datetime.combine(day, at)))


def start_of_local_day(now_local: datetime, tz: pytz.BaseTzInfo) -> datetime:
    return _localize(tz, now_local.date(), time.min)


def current_week_start(
    now_local: datetime,
    tz: pytz.BaseTzInfo,
    weekday: int = 0,
    hour: int = 0,
) -> datetime:
    """Most recent local weekly boundary at or before ``now_local``."""
    days_back = (now_local.weekday() - weekday) % 7
    boundary = _localize(tz, now_local.date() - timedelta(days=days_back), time(hour=hour))
    if boundary > now_local:
        boundary = _localize(tz, boundary.date() - timedelta(days=7), time(hour=hour))
    return boundary


def next_week_start(
    now_local: datetime,
    tz: pytz.BaseTzInfo,
    weekday: int = 0,
    hour: int = 0,
) -> datetime:
    """First local weekly boundary strictly after ``now_local``."""
    start = current_week_start(now_local, tz, weekday, hour)
    return _localize(tz, start.date() + timedelta(days=7), time(hour=hour))


def check_generation_allowed(
    state: Optional[UserQuestState],
    quest_type: str,
    tz: pytz.BaseTzInfo,
    now_utc: datetime,
    weekly_reset_weekday: int = 0,
    weekly_reset_hour: int = 0,
) -> CooldownDecision:
    """Decide whether a new batch of ``quest_type`` quests may be generated now."""
    now_local = as_utc(now_utc).astimezone(tz)
    
    if quest_type == QuestType.DAILY.value:
        last = as_utc(state.last_daily_generated_at) if state else None
        boundary = start_of_local_day(now_local, tz)
        if last is None or last.astimezone(tz) < boundary:
            return CooldownDecision(allowed=True)
        next_midnight = _localize(tz, now_local.date() + timedelta(days=1), time.min)
        return CooldownDecision(
            allowed=False,
            reason="Daily quests can only be generated once per day.",
            next_allowed_at=next_midnight.astimezone(pytz.utc),
        )
    
    last = as_utc(state.last_weekly_generated_at) if state else None
    boundary = current_week_start(now_local, tz, weekly_reset_weekday, weekly_reset_hour)
    if last is None or last.astimezone(tz) < boundary:
        return CooldownDecision(allowed=True)
    upcoming = next_week_start(now_local, tz, weekly_reset_weekday, weekly_reset_hour)
    return CooldownDecision(
        allowed=False,
        reason="Weekly quests can only be generated once per week.",
        next_allowed_at=upcoming.astimezone(pytz.utc),
    )
