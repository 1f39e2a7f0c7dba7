import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class Settings(BaseModel):
    serper_api_key: Optional[str] = Field(default=None, alias="SERPER_API_KEY")
    brave_api_key: Optional[str] = Field(default=None, alias="BRAVE_API_KEY")
    ddg_fallback: bool = Field(default=False, alias="SCOUT_DDG_FALLBACK")
    scraper_api_key: Optional[str] = Field(default=None, alias="SCRAPER_API_KEY")

    ollama_url: Optional[str] = Field(default=None, alias="SCOUT_OLLAMA_URL")
    ollama_model: str = Field(default="llama3.1:8b", alias="SCOUT_OLLAMA_MODEL")
    ollama_tokens: int = Field(default=400, alias="SCOUT_OLLAMA_TOKENS")
    ollama_temp: float = Field(default=0.05, alias="SCOUT_OLLAMA_TEMP")

    crawl_delay_ms: int = Field(default=300, alias="SCOUT_CRAWL_DELAY_MS")
    request_timeout_sec: float = Field(default=120.0, alias="SCOUT_REQUEST_TIMEOUT")
    log_level: str = Field(default="INFO", alias="SCOUT_LOG_LEVEL")
    env: str = Field(default="local", alias="APP_ENV")

    @property
    def llm_enabled(self) -> bool:
        return bool(self.ollama_url)


def _load_dotenv():
    # Load from repo root if present, otherwise rely on environment variables.
    root_env = Path(__file__).resolve().parents[2] / ".env"
    if root_env.exists():
        load_dotenv(root_env)
    else:
        load_dotenv()


def _from_environ() -> dict:
    # empty strings count as unset so `FOO=` in .env does not enable a provider
    return {k: v for k, v in os.environ.items() if v != ""}


@lru_cache()
def get_settings() -> Settings:
    _load_dotenv()
    try:
        return Settings(**_from_environ())
    except ValidationError as exc:
        bad = [str(e["loc"][0]) for e in exc.errors()]
        detail = f"Invalid environment variables: {', '.join(bad)}"
        raise RuntimeError(detail) from exc
