"""
API request/response schemas.
"""
from mango_quests.api.schemas.quests import (
    ClaimResponse,
    CriterionResponse,
    GenerateRequest,
    GenerateResponse,
    ProgressReportResponse,
    ProgressRequest,
    QuestListResponse,
    QuestResponse,
    XpAwardResponse,
)

__all__ = [
    "ClaimResponse",
    "CriterionResponse",
    "GenerateRequest",
    "GenerateResponse",
    "ProgressReportResponse",
    "ProgressRequest",
    "QuestListResponse",
    "QuestResponse",
    "XpAwardResponse",
]
