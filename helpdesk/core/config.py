from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[2]
PROMPTS_DIR = ROOT_DIR / "helpdesk" / "prompts"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    STORAGE_BACKEND: str = "sql"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-ada-002"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 500
    LLM_TIMEOUT_SEC: float = 30.0

    AI_ENABLED: bool = True
    AI_AGENT_ID: str = "ai-agent"
    AI_AGENT_NAME: str = "NeuroAI"
    DEFAULT_CONFIDENCE_THRESHOLD: float = 0.7
    DUPLICATE_ESCALATION_ENABLED: bool = False
    LICENSE_ACTIVATION_URL: str = "https://support.neurovirtual.com/license-activation"

    CHUNK_MAX_SIZE: int = 1000
    CHUNK_OVERLAP: int = 100
    RETRIEVAL_MAX_RESULTS: int = 3
    RETRIEVAL_MIN_SIMILARITY: float = 0.3

    DOCUMENT_MAX_BYTES: int = 200 * 1024 * 1024
    UPLOAD_DIR: str = "uploads"
    SNAPSHOT_DIR: str = "data"
    SNAPSHOT_INTERVAL_SEC: int = 300

    ADMIN_UI_ORIGINS: str = ""


settings = Settings()
