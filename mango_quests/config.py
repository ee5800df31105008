"""
Application configuration using pydantic-settings.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Application
    app_name: str = "Mango Quests"
    app_version: str = "0.3.0"
    debug: bool = False
    environment: str = "development"  # development | production
    
    # Database
    database_url: str = "sqlite+aiosqlite:///./mango_quests.db"
    
    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    
    # Generative content (Gemini)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0
    gemini_retries: int = 2
    gemini_temperature: float = 0.5
    gemini_max_output_tokens: int = 4096
    
    # Quest generation
    daily_quest_count: int = 15
    weekly_quest_count: int = 5
    
    # Active quest caps (per type)
    max_active_daily_quests: int = 2
    max_active_weekly_quests: int = 4
    
    # Weekly reset boundary in the user's local zone (0 = Monday)
    weekly_reset_weekday: int = 0
    weekly_reset_hour: int = 0
    
    # Testing-only routes (never served when environment == "production")
    enable_debug_routes: bool = False
    
    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    
    @property
    def debug_routes_allowed(self) -> bool:
        return self.enable_debug_routes and self.environment != "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
