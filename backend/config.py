"""Runtime settings for the GitSignal backend, read from the environment (.env supported)."""

import logging
import os
import re
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_TIMEOUT_RE = re.compile(r"^(\d+)(s|m|h)$")
_TIMEOUT_UNITS = {"s": 1, "m": 60, "h": 3600}

LLM_PROVIDERS = ("ollama", "anthropic", "gemini", "xai")


def parse_timeout(value: str) -> float:
    """Convert a duration like '30s', '5m' or '1h' into seconds."""
    match = _TIMEOUT_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timeout format: {value}. Use format like '5m', '1h', '30s'")
    amount, unit = match.groups()
    return float(int(amount) * _TIMEOUT_UNITS[unit])


class Settings(BaseModel):
    """Application settings. Every field maps to an upper-cased environment variable."""

    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_timeout: float = Field(10.0, gt=0)
    github_retries: int = Field(3, ge=1, le=10)

    database_url: str = "sqlite:///gitsignal.db"

    llm_provider: str = "ollama"
    llm_model: Optional[str] = None
    llm_temperature: float = Field(0.2, ge=0, le=2)

    repo_analysis_timeout: str = "5m"
    repo_analysis_max_steps: int = Field(25, ge=1)
    research_max_results: int = Field(10, ge=1, le=25)
    ranking_max_profiles: int = Field(10, ge=1)
    chat_max_steps: int = Field(10, ge=1)
    sonar_max_profiles: int = Field(20, ge=1)
    sonar_min_score: int = Field(35, ge=0, le=100)

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:5173"]
    log_level: str = "INFO"

    @field_validator("llm_provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in LLM_PROVIDERS:
            raise ValueError(f"Unknown LLM provider '{v}'. Available: {', '.join(LLM_PROVIDERS)}")
        return v

    @field_validator("repo_analysis_timeout")
    @classmethod
    def timeout_parses(cls, v: str) -> str:
        parse_timeout(v)
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def level_upper(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def repo_analysis_timeout_seconds(self) -> float:
        return parse_timeout(self.repo_analysis_timeout)

    @classmethod
    def from_env(cls) -> "Settings":
        values: dict = {}
        for name in cls.model_fields:
            raw = os.getenv(name.upper())
            if raw is None or raw.strip() == "":
                continue
            if name == "cors_origins":
                values[name] = [o.strip() for o in raw.split(",") if o.strip()]
            else:
                values[name] = raw
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get or create the settings instance."""
    return Settings.from_env()


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the service process."""
    level = level or get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    # Quieten noisy HTTP client logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
