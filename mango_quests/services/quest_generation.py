"""
Quest generation pipeline.

cooldown check -> context assembly -> prompt -> one generation call ->
validation/normalization -> transactional replace of available quests ->
cooldown bookkeeping.

Nothing is written unless the generation call succeeded and at least one
quest survived validation.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.adapters.base import GenerativeClient
from mango_quests.config import Settings, get_settings
from mango_quests.infra.db.base import utcnow
from mango_quests.infra.db.models.quest import Quest, QuestType
from mango_quests.infra.db.repositories import QuestRepository, UserQuestStateRepository
from mango_quests.services.cooldown import (
    check_generation_allowed,
    next_week_start,
    resolve_timezone,
)
from mango_quests.services.errors import (
    GenerationCooldownError,
    GenerationUpstreamError,
    QuestInternalError,
    QuestValidationError,
)
from mango_quests.services.quest_prompt import build_quest_prompt
from mango_quests.services.quest_validation import GeneratedContentError, validate_generated_quests
from mango_quests.services.user_context import UserContextService
from mango_quests.utils.json_utils import to_jsonable

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of a successful generation run."""
    quest_type: str
    quests: list[Quest] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    
    @property
    def message(self) -> str:
        text = f"Generated {len(self.quests)} {self.quest_type} quests."
        if self.errors:
            text += f" {len(self.errors)} proposed quest(s) were rejected."
        return text


def parse_quest_type(value: Optional[str]) -> str:
    try:
        return QuestType(value).value
    except ValueError:
        raise QuestValidationError("Invalid quest type: 'type' must be 'daily' or 'weekly'.")


class QuestGenerationService:
    """Generates a fresh batch of available quests for one user and type."""
    
    def __init__(
        self,
        session: AsyncSession,
        client: GenerativeClient,
        settings: Optional[Settings] = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.client = client
        self.settings = settings or get_settings()
        self.now_fn = now_fn
        self.quests = QuestRepository(session)
        self.states = UserQuestStateRepository(session)
        self.context = UserContextService(session)
    
    def quest_count(self, quest_type: str) -> int:
        if quest_type == QuestType.DAILY.value:
            return self.settings.daily_quest_count
        return self.settings.weekly_quest_count
    
    async def generate(self, user_id: str, quest_type: str, user_timezone: Optional[str]) -> GenerationResult:
        """
        Run the full pipeline.
        
        Raises:
            QuestValidationError: bad type or timezone
            GenerationCooldownError: the cooldown window has not elapsed
            GenerationUpstreamError: the generation call failed
            GeneratedContentError: no usable quest in the generated content
            QuestInternalError: storage failed (nothing was persisted)
        """
        quest_type = parse_quest_type(quest_type)
        tz = resolve_timezone(user_timezone)
        now = self.now_fn()
        logger.info(f"[QuestGen] Starting {quest_type} quest generation for user {user_id}")
        
        # 1. Cooldown check
        state = await self.states.get_for_user(user_id)
        decision = check_generation_allowed(
            state,
            quest_type,
            tz,
            now,
            weekly_reset_weekday=self.settings.weekly_reset_weekday,
            weekly_reset_hour=self.settings.weekly_reset_hour,
        )
        if not decision.allowed:
            raise GenerationCooldownError(
                decision.reason,
                details={"next_allowed_at": decision.next_allowed_at.isoformat() if decision.next_allowed_at else None},
            )
        
        # 2. Context assembly
        context = await self.context.gather(user_id)
        
        # 3. Prompt construction
        prompt = build_quest_prompt(context, quest_type, self.quest_count(quest_type))
        
        # 4. Generation call
        try:
            raw = await self.client.generate_json(prompt)
        except Exception as e:
            logger.error(f"[QuestGen] {self.client.name} call failed for user {user_id} ({quest_type}): {e}")
            raise GenerationUpstreamError("The quest generator is unavailable. Please try again later.") from e
        if not raw:
            logger.error(f"[QuestGen] {self.client.name} returned no content for user {user_id} ({quest_type})")
            raise GenerationUpstreamError("The quest generator returned no content.")
        
        # 5. Validation & normalization
        outcome = validate_generated_quests(raw, context.habits_by_name)
        if not outcome.quests:
            logger.error(f"[QuestGen] No valid quests for user {user_id} ({quest_type}): {outcome.errors}")
            raise GeneratedContentError("Generated content contained no valid quests.", details=outcome.errors)
        
        # 6-7. Replace available quests and stitch criteria in one transaction
        prompt_context = {"type": quest_type, "user_context": context.summary()}
        try:
            inserted = await self.quests.replace_available(
                user_id,
                quest_type,
                outcome.quests,
                outcome.criteria,
                prompt_context=prompt_context,
                response_raw=to_jsonable(raw),
            )
        except Exception as e:
            logger.error(f"[QuestGen] Failed to store {quest_type} quests for user {user_id}: {e}", exc_info=True)
            raise QuestInternalError(f"Failed to store generated {quest_type} quests.") from e
        
        # 8. Cooldown bookkeeping (best effort)
        next_weekly = None
        if quest_type == QuestType.WEEKLY.value:
            next_weekly = next_week_start(
                now.astimezone(tz),
                tz,
                self.settings.weekly_reset_weekday,
                self.settings.weekly_reset_hour,
            ).astimezone(pytz.utc)
        try:
            await self.states.record_generation(user_id, quest_type, now, next_weekly)
        except Exception as e:
            logger.error(f"[QuestGen] Failed to update quest state for user {user_id} ({quest_type}): {e}")
        
        result = GenerationResult(quest_type=quest_type, quests=inserted, errors=outcome.errors)
        logger.info(f"[QuestGen] {result.message} (user {user_id})")
        return result
