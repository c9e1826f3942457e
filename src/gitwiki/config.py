"""Application configuration."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    repo_path: Path = Field(default_factory=lambda: Path.home() / "wiki")
    page_extension: str = ".md"
    homepage: str = "Home"
    debug: bool = False
    app_title: str = "GitWiki"
    resolve_links_once: bool = False
    commit_author_name: str = "GitWiki"
    commit_author_email: str = "gitwiki@localhost"
    host: str = "127.0.0.1"
    port: int = 4567
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="GITWIKI_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("page_extension")
    @classmethod
    def extension_has_dot(cls, value: str) -> str:
        if not value.startswith(".") or len(value) < 2:
            raise ValueError("page_extension must look like '.md'")
        return value
