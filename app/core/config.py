"""
Application configuration management
"""
import json
from typing import Any, List, Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Ensure repository .env values win over stale exported shell variables.
load_dotenv(override=True)

VALID_ISOLATION_LEVELS = {"READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"}


class Settings(BaseSettings):
    """Application settings"""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./trade_journal.db"
    DATABASE_ISOLATION_LEVEL: Optional[str] = None  # e.g. SERIALIZABLE on PostgreSQL
    DATABASE_ECHO: bool = False

    # Listing
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # Security
    API_AUTH_ENABLED: bool = True
    API_AUTH_TOKEN: str = "change-me-api-token"
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/trade_journal.log"

    @field_validator('DEFAULT_PAGE_SIZE', 'MAX_PAGE_SIZE')
    @classmethod
    def validate_page_sizes(cls, v):
        if int(v) <= 0:
            raise ValueError('Page sizes must be positive')
        return int(v)

    @field_validator('DATABASE_ISOLATION_LEVEL')
    @classmethod
    def validate_isolation_level(cls, v):
        if v is None:
            return None
        level = str(v).strip().upper().replace("_", " ")
        if not level:
            return None
        if level not in VALID_ISOLATION_LEVELS:
            raise ValueError(
                f"DATABASE_ISOLATION_LEVEL must be one of: {', '.join(sorted(VALID_ISOLATION_LEVELS))}"
            )
        return level

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        level = str(v or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError('LOG_LEVEL must be a standard logging level name')
        return level

    @model_validator(mode='after')
    def validate_page_size_range(self):
        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError('DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE')
        return self

    @staticmethod
    def _parse_str_list(value: Any) -> List[str]:
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        if value is None:
            return []
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith('[') and stripped.endswith(']'):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in stripped.split(',') if item.strip()]
        return [str(value).strip()] if str(value).strip() else []

    def get_cors_origins(self) -> List[str]:
        origins = self._parse_str_list(self.CORS_ORIGINS)
        return origins or ["http://localhost:5173", "http://127.0.0.1:5173"]

# Global settings instance
settings = Settings()
