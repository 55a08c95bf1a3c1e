"""Configuration management."""

from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Assistant backend
    assistant_backend: Literal["gemini", "claude", "mock"] = "gemini"
    request_timeout: float = 120.0

    # Gemini (default backend)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.5-flash"
    image_model: str = "imagen-4.0-generate-001"

    # Claude (via the Agent SDK)
    claude_model: str = "sonnet"

    # Storage for user, settings and conversations
    storage_backend: Literal["memory", "file", "postgres"] = "file"
    data_dir: Path = Path.home() / ".murmur"
    storage_key_prefix: str = "murmur"

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "murmur"
    db_user: str = "murmur"
    db_password: str = ""

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()
