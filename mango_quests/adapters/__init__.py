"""
Adapters for external content generators.
"""
from mango_quests.adapters.base import GenerationConfig, GenerativeClient

__all__ = ["GenerationConfig", "GenerativeClient"]
