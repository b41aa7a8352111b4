# remixer/settings/config.py  (Pydantic v2)
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from sqlalchemy.engine import URL, make_url

SYNC_POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}
DEFAULT_STYLES = ["storytelling", "insights", "tips", "question", "achievement", "industry_trend"]


class Settings(BaseSettings):
    # ---------- Store ----------
    # Unset URL = persistence disabled (saves report "unavailable", lists stay empty)
    DATABASE_URL: Optional[str] = Field(default=None)
    # Access key for the store; replaces the password part of DATABASE_URL when set
    DATABASE_KEY: Optional[str] = Field(default=None)
    RUN_DB_CREATE_ALL: bool = Field(default=False)

    # ---------- LLM provider (OpenAI-compatible chat completions) ----------
    LLM_API_URL: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices("LLM_API_URL", "OPENAI_API_URL"),
    )
    LLM_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LLM_API_KEY", "OPENAI_API_KEY"),
    )
    LLM_MODEL: str = Field(default="gpt-4o-mini")
    LLM_MAX_TOKENS: int = Field(default=800)
    LLM_TEMPERATURE: float = Field(default=0.8)
    # Transport timeout in seconds for each provider request
    LLM_TIMEOUT: float = Field(default=60.0)

    # ---------- Remix UI ----------
    REMIX_STYLES: List[str] = Field(default_factory=lambda: list(DEFAULT_STYLES))
    SHARE_BASE_URL: str = Field(default="https://www.linkedin.com/sharing/share-offsite/")
    SESSION_COOKIE: str = Field(default="remixer_session")
    LOG_LEVEL: str = Field(default="INFO")

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )

    @property
    def store_configured(self) -> bool:
        return bool((self.DATABASE_URL or "").strip())

    @property
    def llm_configured(self) -> bool:
        return bool((self.LLM_API_KEY or "").strip())

    def database_url(self) -> Optional[URL]:
        """Async SQLAlchemy URL for the store, or None when persistence is off."""
        if not self.store_configured:
            return None
        raw = self.DATABASE_URL.strip()
        scheme, _, rest = raw.partition("://")
        # if someone provided a sync URL by mistake, upgrade it to async
        if scheme in SYNC_POSTGRES_SCHEMES:
            raw = f"postgresql+asyncpg://{rest}"
        url = make_url(raw)
        if self.DATABASE_KEY:
            url = url.set(password=self.DATABASE_KEY)
        return url
