"""
Quest service error classes.

Every error carries the HTTP status and machine-readable code the transport
layer renders, so services raise them directly and never build responses.
"""
from typing import Any, Optional


class QuestError(Exception):
    """Base exception for quest service errors."""
    
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class QuestValidationError(QuestError):
    """Request or generated content failed validation."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class QuestLimitError(QuestValidationError):
    """The per-type active quest cap has been reached."""
    error_code = "ACTIVE_LIMIT_REACHED"


class QuestNotFoundError(QuestError):
    """No such quest or criterion."""
    status_code = 404
    error_code = "NOT_FOUND"


class QuestForbiddenError(QuestError):
    """The quest or criterion exists but belongs to another user."""
    status_code = 403
    error_code = "FORBIDDEN"


class QuestConflictError(QuestError):
    """The row changed between read and conditional write; re-fetch and retry."""
    status_code = 409
    error_code = "CONFLICT"


class GenerationCooldownError(QuestError):
    """Generation requested before the cooldown window elapsed."""
    status_code = 429
    error_code = "COOLDOWN"


class GenerationUpstreamError(QuestError):
    """The generative service failed or produced unusable content."""
    status_code = 502
    error_code = "UPSTREAM_ERROR"


class QuestInternalError(QuestError):
    """Storage or other internal failure."""
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
