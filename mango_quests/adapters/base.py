"""
Base adapter interface for generative content clients.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class GenerationConfig:
    """Base configuration for all generators."""
    model: str = ""
    temperature: float = 0.5
    max_tokens: int = 4096
    timeout_seconds: float = 60.0
    retries: int = 2
    retry_delay: float = 1.0
    
    def __post_init__(self):
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")


class GenerativeClient(ABC):
    """
    A text-generation service that returns structured output.
    
    Implementations own timeouts, retries and cancellation; callers treat any
    raised exception as "no content produced".
    """
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier used in logs."""
    
    @abstractmethod
    async def generate_json(self, prompt: str) -> dict[str, Any]:
        """Send a single prompt and return the parsed JSON object."""
