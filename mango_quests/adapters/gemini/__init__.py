"""
Google Gemini adapter.
"""
from mango_quests.adapters.gemini.adapter import GeminiAdapter, GeminiConfig
from mango_quests.adapters.gemini.errors import (
    GeminiConfigError,
    GeminiError,
    GeminiRequestError,
    GeminiResponseError,
)

__all__ = [
    "GeminiAdapter",
    "GeminiConfig",
    "GeminiError",
    "GeminiConfigError",
    "GeminiRequestError",
    "GeminiResponseError",
]
