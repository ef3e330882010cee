from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "Chatbridge"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # Provider endpoints
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    provider_timeout: float = 120.0
    max_output_tokens: int = 1000

    # Models
    free_models: list[str] = ["gpt-3.5-turbo", "gemini-1.5-flash"]
    default_free_model: str = "gpt-3.5-turbo"
    default_premium_model: str = "chatgpt-5.1"
    # Exact identifiers that map onto a different upstream model name
    model_aliases: dict[str, str] = {"chatgpt-5.1": "openai:gpt-4o"}
    # Prefix -> provider family, checked in order
    model_prefixes: list[tuple[str, str]] = [
        ("gpt", "openai"),
        ("claude", "anthropic"),
        ("gemini", "gemini"),
    ]

    # Conversation behaviour
    persona_instruction: str = (
        "You are a fun, friendly, lightly comedic assistant. "
        "Keep responses concise, clear, and helpful."
    )
    title_source_length: int = 30
    title_max_length: int = 100
    title_context_messages: int = 4
    default_chat_title: str = "New Chat"
    persist_on_disconnect: bool = True
    persist_guest_language: bool = True

    # Database - PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "chatbridge"
    postgres_password: str = "chatbridge"
    postgres_db: str = "chatbridge"
    # Full URL override, e.g. sqlite+aiosqlite:///./chatbridge.db
    database_url_override: str = ""

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def database_url_sync(self) -> str:
        """Sync URL for Alembic migrations"""
        if self.database_url_override:
            return self.database_url_override.replace("+asyncpg", "").replace("+aiosqlite", "")
        return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # Langfuse Observability
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_host: str = "https://cloud.langfuse.com"

    @property
    def langfuse_enabled(self) -> bool:
        return bool(self.langfuse_public_key and self.langfuse_secret_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
