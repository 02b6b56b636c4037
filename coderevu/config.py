"""
CodeRevU settings, read from the environment and an optional .env file.

A Settings instance is built once at process start and handed to the
components that need it.
"""

import logging
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, ConfigDict


class Settings(BaseSettings):
    """Typed configuration for the API, the worker and their integrations."""

    # ============================================================================
    # LLM Configuration
    # ============================================================================

    llm_provider: Literal["claude", "ollama"] = Field(
        default="claude",
        description="LLM provider used to write reviews (claude or ollama)"
    )

    claude_api_key: str = Field(
        default="",
        description="API key for Anthropic, required when llm_provider is claude"
    )

    claude_model: str = Field(
        default="claude-sonnet-4-5",
        description="Claude model ID used for review generation"
    )

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server used for generation and embeddings"
    )

    ollama_model: str = Field(
        default="llama3",
        description="Ollama model used for review generation"
    )

    embedding_model: str = Field(
        default="nomic-embed-text",
        description="Ollama model used to embed repository files"
    )

    # ============================================================================
    # GitHub Integration
    # ============================================================================

    github_webhook_secret: str = Field(
        default="",
        description="Shared secret GitHub signs deliveries with; webhooks are refused while empty"
    )

    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL GitHub delivers webhooks to"
    )

    # ============================================================================
    # Database Configuration
    # ============================================================================

    database_url: str = Field(
        default="sqlite:///./coderevu.db",
        description="SQLAlchemy URL of the application database"
    )

    # ============================================================================
    # Vector Store Configuration
    # ============================================================================

    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant URL, or ':memory:' for an in-process store"
    )

    qdrant_api_key: str = Field(
        default="",
        description="Qdrant API key (empty for unauthenticated instances)"
    )

    qdrant_collection: str = Field(
        default="coderevu-indexing-v1",
        description="Collection holding repository file embeddings"
    )

    context_top_k: int = Field(
        default=5,
        description="Number of indexed snippets retrieved per review"
    )

    # ============================================================================
    # Background Jobs
    # ============================================================================

    worker_enabled: bool = Field(
        default=True,
        description="Run the workflow worker inside the API process"
    )

    worker_poll_interval_seconds: int = Field(
        default=2,
        description="How often the worker polls the job queue"
    )

    job_max_attempts: int = Field(
        default=4,
        description="Attempts per workflow run before it is marked failed"
    )

    review_concurrency: int = Field(
        default=5,
        description="Maximum review workflows running at the same time"
    )

    # ============================================================================
    # Server Configuration
    # ============================================================================

    host: str = Field(
        default="0.0.0.0",
        description="Interface uvicorn binds to"
    )

    port: int = Field(
        default=8000,
        description="Port uvicorn listens on"
    )

    # ============================================================================
    # Logging Configuration
    # ============================================================================

    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # ============================================================================
    # Validation Methods
    # ============================================================================

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Only Claude and Ollama can write reviews."""
        if v not in ["claude", "ollama"]:
            raise ValueError("llm_provider must be 'claude' or 'ollama'")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Accept SQLite and PostgreSQL URLs only."""
        if not (v.startswith("sqlite://") or v.startswith("postgresql://") or v.startswith("postgres://")):
            raise ValueError(
                "database_url must start with 'sqlite://', 'postgresql://', or 'postgres://'"
            )
        return v

    @field_validator("app_base_url")
    @classmethod
    def validate_app_base_url(cls, v: str) -> str:
        """Validate that the public base URL is an http(s) URL."""
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("app_base_url must start with 'http://' or 'https://'")
        return v.rstrip("/")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Reject ports outside 1-65535."""
        if not (1 <= v <= 65535):
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator(
        "context_top_k",
        "worker_poll_interval_seconds",
        "job_max_attempts",
        "review_concurrency",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that counts and intervals are at least 1."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize to an upper-case standard level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    # ============================================================================
    # Sources
    # ============================================================================

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def webhook_url(self) -> str:
        """URL registered on GitHub repositories for webhook delivery."""
        return f"{self.app_base_url}/api/webhooks/github"


def configure_logging(level: str) -> None:
    """Apply the process-wide log format and level."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
