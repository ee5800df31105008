"""
Prompt construction for quest generation.

The prompt is a pure function of the user context and the requested type so
the same inputs always produce the same text.
"""
from mango_quests.infra.db.models.quest import CriterionType, QuestType
from mango_quests.services.user_context import UserContext

XP_GUIDANCE = {
    QuestType.DAILY.value: "10-50",
    QuestType.WEEKLY.value: "50-200",
}

CRITERION_CONFIG_EXAMPLES = {
    CriterionType.HABIT_CHECK.value: (
        '{ "habit_name": "Meditate", "target_count": 1 } '
        "(habit_name MUST be copied EXACTLY from the habit list above)"
    ),
    CriterionType.STEPS_REACH.value: '{ "target_count": 5000 } (steps walked in a day)',
    CriterionType.FINANCE_UNDER_ALLOWANCE.value: (
        '{ "target_count": 1 } (always 1: stay within the daily spending allowance)'
    ),
    CriterionType.POMODORO_SESSION.value: '{ "target_count": 3 } (completed focus sessions)',
    CriterionType.TODO_COMPLETE.value: '{ "target_count": 5 } (todos completed)',
}


def build_quest_prompt(context: UserContext, quest_type: str, quest_count: int) -> str:
    """Build the generation instruction for one batch of quests."""
    if context.habits:
        habit_lines = "\n".join(f'  - "{name}"' for name in context.habit_names)
        habit_rule = "Only use 'habit_check' with one of these exact habit names."
    else:
        habit_lines = "  (none)"
        habit_rule = "The user has no habits, so do NOT use the 'habit_check' criterion type."
    
    allowed_types = ", ".join(f"'{t.value}'" for t in CriterionType)
    config_examples = "\n".join(
        f"    - For '{ctype}': {example}" for ctype, example in CRITERION_CONFIG_EXAMPLES.items()
    )
    
    return f"""
You are a quest generator for a personal productivity gamification app called Mango.
Generate exactly {quest_count} {quest_type} quests suitable for a Level {context.level} user.

{context.summary()}

The user's habits (exact names):
{habit_lines}
{habit_rule}

For each quest, provide:
- description: A short, engaging description for the user.
- xp_reward: A positive integer XP value ({XP_GUIDANCE[quest_type]} for {quest_type} quests, scaled by difficulty).
- criteria: An array of 1-3 criteria needed to complete the quest.

For each criterion, provide:
- description: A short description of the criterion.
- type: One of the allowed types: {allowed_types}.
- config: A JSON object specific to the type:
{config_examples}

Output ONLY a single valid JSON object with this structure and no other text, markdown or explanation:
{{
  "quests": [
    {{
      "description": "string",
      "xp_reward": 25,
      "criteria": [
        {{ "description": "string", "type": "string", "config": {{}} }}
      ]
    }}
  ]
}}
""".strip()
