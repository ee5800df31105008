from typing import Any, Dict, Optional

import httpx

from mango_quests.api.schemas.quests import (
    ClaimResponse,
    GenerateResponse,
    QuestListResponse,
    QuestResponse,
)


class ApiError(Exception):
    """Error envelope returned by the API."""
    
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class ApiClient:
    """Minimal synchronous API client for the quests CLI."""
    
    def __init__(
        self,
        base_url: str,
        user_id: str,
        timezone: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"X-User-Id": user_id}
        if timezone:
            headers["X-User-Timezone"] = timezone
        self._http = httpx.Client(base_url=self.base_url, headers=headers, timeout=90.0, transport=transport)
    
    def _check(self, resp: httpx.Response) -> Dict[str, Any]:
        if resp.is_error:
            try:
                error = resp.json().get("error") or {}
            except ValueError:
                error = {}
            raise ApiError(
                resp.status_code,
                error.get("code", "HTTP_ERROR"),
                error.get("message", resp.text or resp.reason_phrase),
            )
        return resp.json()
    
    def list_quests(self, status: Optional[str] = None, quest_type: Optional[str] = None) -> QuestListResponse:
        params = {k: v for k, v in {"status": status, "type": quest_type}.items() if v}
        resp = self._http.get("/quests", params=params or None)
        return QuestListResponse.model_validate(self._check(resp))
    
    def generate(self, quest_type: str) -> GenerateResponse:
        resp = self._http.post("/quests/generate", json={"type": quest_type})
        return GenerateResponse.model_validate(self._check(resp))
    
    def activate(self, quest_id: str) -> QuestResponse:
        resp = self._http.post(f"/quests/{quest_id}/activate")
        return QuestResponse.model_validate(self._check(resp))
    
    def cancel(self, quest_id: str) -> QuestResponse:
        resp = self._http.post(f"/quests/{quest_id}/cancel")
        return QuestResponse.model_validate(self._check(resp))
    
    def claim(self, quest_id: str) -> ClaimResponse:
        resp = self._http.post(f"/quests/{quest_id}/claim")
        return ClaimResponse.model_validate(self._check(resp))
    
    def close(self) -> None:
        self._http.close()
