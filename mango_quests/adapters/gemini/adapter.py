"""
Google Gemini adapter.

Calls the generateContent REST endpoint in JSON response mode and returns the
parsed object. Transient failures (429, 5xx, timeouts, connection errors) are
retried with exponential backoff; everything else fails fast.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from mango_quests.adapters.base import GenerationConfig, GenerativeClient
from mango_quests.adapters.gemini.errors import (
    GeminiConfigError,
    GeminiRequestError,
    GeminiResponseError,
)
from mango_quests.config import Settings, get_settings
from mango_quests.utils.json_utils import parse_json_response

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]


@dataclass
class GeminiConfig(GenerationConfig):
    """Gemini connection and sampling settings."""
    api_key: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    
    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GeminiConfig":
        settings = settings or get_settings()
        return cls(
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_tokens=settings.gemini_max_output_tokens,
            timeout_seconds=settings.gemini_timeout_seconds,
            retries=settings.gemini_retries,
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
        )


def build_payload(prompt: str, config: GeminiConfig) -> Dict[str, Any]:
    """Build a generateContent payload requesting a JSON response."""
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": config.temperature,
            "topK": 1,
            "topP": 1,
            "maxOutputTokens": config.max_tokens,
            "responseMimeType": "application/json",
        },
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
            for category in SAFETY_CATEGORIES
        ],
    }


def parse_response(raw: Dict[str, Any]) -> str:
    """Extract the concatenated candidate text from a generateContent response."""
    candidates = raw.get("candidates") or []
    if not candidates:
        block_reason = (raw.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise GeminiResponseError(f"Prompt blocked by provider: {block_reason}")
        raise GeminiResponseError("Response contained no candidates")
    
    first = candidates[0]
    parts = (first.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise GeminiResponseError(
            f"Candidate contained no text (finishReason={first.get('finishReason')})"
        )
    return text


class GeminiAdapter(GenerativeClient):
    """Generative content client for Google Gemini."""
    
    def __init__(
        self,
        config: Optional[GeminiConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or GeminiConfig.from_settings()
        self._http = http_client
    
    @property
    def name(self) -> str:
        return "gemini"
    
    def _endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
    
    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> Dict[str, Any]:
        last_error: Optional[Exception] = None
        
        for attempt in range(self.config.retries + 1):
            try:
                resp = await client.post(
                    self._endpoint(),
                    params={"key": self.config.api_key},
                    json=payload,
                    timeout=self.config.timeout_seconds,
                )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = GeminiRequestError(f"Transport error: {e}")
            else:
                if resp.status_code == 200:
                    try:
                        return resp.json()
                    except ValueError as e:
                        raise GeminiResponseError(f"Response body is not JSON: {e}") from e
                
                last_error = GeminiRequestError(
                    f"Gemini returned HTTP {resp.status_code}: {resp.text[:200]}",
                    status_code=resp.status_code,
                )
                if resp.status_code not in TRANSIENT_STATUS_CODES:
                    raise last_error
            
            if attempt < self.config.retries:
                delay = self.config.retry_delay * (2 ** attempt)
                logger.warning(f"[Gemini] Attempt {attempt + 1} failed ({last_error}); retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
        
        raise last_error
    
    async def generate_json(self, prompt: str) -> dict[str, Any]:
        """
        Send a prompt and return the parsed JSON object.
        
        Raises:
            GeminiConfigError: No API key configured
            GeminiRequestError: HTTP call failed after retries
            GeminiResponseError: Response had no usable JSON content
        """
        if not self.config.api_key:
            raise GeminiConfigError("GEMINI_API_KEY is not configured")
        
        payload = build_payload(prompt, self.config)
        logger.info(f"[Gemini] Requesting generation from {self.config.model} ({len(prompt)} prompt chars)")
        
        if self._http is not None:
            raw = await self._post(self._http, payload)
        else:
            async with httpx.AsyncClient() as client:
                raw = await self._post(client, payload)
        
        text = parse_response(raw)
        try:
            return parse_json_response(text)
        except ValueError as e:
            raise GeminiResponseError(str(e)) from e
