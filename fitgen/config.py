from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"

    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-70b-versatile"
    GROQ_TEMPERATURE: float = 0.75
    GROQ_TOP_P: float = 0.85
    GROQ_MAX_TOKENS: int = 2048
    GROQ_JSON_MODE: bool = True

    # Retry/timeout policy. Worst case per call is
    # MAX_RETRIES * ATTEMPT_TIMEOUT + sum of backoff delays (25*3 + 1 + 2 = 78s by default).
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_ATTEMPT_TIMEOUT_S: float = 25.0
    GENERATION_RETRY_BASE_DELAY_S: float = 1.0

    # Result cache
    CACHE_TTL_S: float = 300.0
    CACHE_MAX_ENTRIES: int = 50
    CACHE_FALLBACK_RESULTS: bool = False
    SINGLE_FLIGHT_ENABLED: bool = False

    # App-level policies
    MAX_CANDIDATE_EXERCISES: int = 20
    HISTORY_LIMIT: int = 5
    FALLBACK_HISTORY_SLOTS: int = 5
    FALLBACK_QUALITY_SCORE: int = 60
    ALTERNATIVES_LIMIT: int = 5
    ALTERNATIVE_CANDIDATE_LIMIT: int = 15

    @property
    def remote_enabled(self) -> bool:
        return bool(self.GROQ_API_KEY and self.GROQ_MODEL)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
