"""
Caller identity for the quest API.
"""
from mango_quests.auth.middleware import AuthenticationError, get_current_user

__all__ = ["AuthenticationError", "get_current_user"]
