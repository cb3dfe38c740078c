"""
Configuration management for the FieldRAG retrieval service.

This module centralizes environment-driven configuration using Pydantic's
`BaseSettings`. All services consume the shared `settings` instance to ensure
consistent configuration across the stack.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import AnyUrl, Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General application settings
    API_TITLE: str = "FieldRAG API"
    API_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field("development", pattern=r"^(development|staging|production)$")
    LOG_LEVEL: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # Embedding provider selection
    EMBEDDING_PROVIDER: str = Field("openai", pattern=r"^(openai|azure-openai|cohere|huggingface|ollama|local)$")
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: Optional[PositiveInt] = None
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0
    LOCAL_EMBEDDING_DIMENSIONS: PositiveInt = 256

    # Provider credentials
    OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_ENDPOINT: Optional[AnyUrl] = None
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_API_VERSION: str = "2023-05-15"
    COHERE_API_KEY: Optional[str] = None
    HUGGINGFACE_API_KEY: Optional[str] = None
    OLLAMA_BASE_URL: AnyUrl = Field("http://localhost:11434")

    # Summary generation
    ENABLE_SUMMARY: bool = True
    SUMMARY_MODEL: str = "gpt-4"
    SUMMARY_MAX_TOKENS: int = 300
    SUMMARY_TEMPERATURE: float = 0.3
    SUMMARY_CONTEXT_DOCUMENTS: PositiveInt = 3

    # Durable sinks (best-effort replication)
    DURABLE_SINKS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["file"])
    FILE_SINK_PATH: Path = Field(default_factory=lambda: Path("data") / "hybrid-rag-data.json")
    SQLITE_SINK_PATH: Path = Field(default_factory=lambda: Path("data") / "hybrid-rag.sqlite3")
    REDIS_URL: AnyUrl = Field("redis://localhost:6379/0")
    REDIS_KEY_PREFIX: str = "fieldrag:document:"

    # Search tuning
    SEARCH_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_THRESHOLD: float = Field(0.3, ge=0.0, le=1.0)
    DEFAULT_LIMIT: PositiveInt = 5
    DEFAULT_LOG_WEIGHT: float = Field(1.0, ge=0.0)
    DEFAULT_KNOWLEDGE_WEIGHT: float = Field(1.2, ge=0.0)
    DEFAULT_INTERNAL_WEIGHT: float = Field(1.1, ge=0.0)
    COMPANY_KNOWLEDGE_THRESHOLD: float = Field(0.6, ge=0.0, le=1.0)

    # Retention
    RETENTION_DAYS: PositiveInt = 30
    SEED_SAMPLE_DATA: bool = False

    # Monitoring / tracing
    ENABLE_TRACING: bool = False
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[AnyUrl] = None
    OTEL_EXPORTER_OTLP_HEADERS: Optional[str] = None

    @field_validator("ALLOWED_ORIGINS", mode="before")
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("DURABLE_SINKS", mode="before")
    def _split_sinks(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        return value or []

    @field_validator("LOG_LEVEL", mode="before")
    def _upper_log_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value


@lru_cache()
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


# Singleton-style settings instance for modules that prefer direct access.
settings = get_settings()
