from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from the project root so it works regardless of CWD
_env_file = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    database_url: str = "postgresql://localhost/careprofile"
    sql_echo: bool = False

    # Chat (OpenAI or OpenAI-compatible); None => provider-specific default
    openai_api_key: str | None = None
    chat_api_base_url: str | None = None
    chat_api_key: str | None = None
    chat_model: str | None = None
    chat_temperature: float = 0.8
    chat_timeout_seconds: float = 60.0
    # False => single JSON answer {"message", "extracted_data"} instead of tool calls
    chat_use_tools: bool = True

    # Turns of history sent to the model as context
    max_history_turns: int = 20

    # Rate limiting (per client address; multi-instance needs Redis later)
    chat_rate_limit: str = "30/minute"

    # CORS (comma-separated origins; * allows all)
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parsed CORS origins for middleware."""
        raw = self.cors_origins.strip()
        return ["*"] if not raw else [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
