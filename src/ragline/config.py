"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat API. Leave empty to use "
            "OpenAI cloud."
        ),
    )

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Vector store
    vector_backend: str = Field(default="chroma", description="One of 'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "ragline"

    # Hash store
    hash_db_url: str = "sqlite+aiosqlite:///./ragline.db"

    # Document sources
    config_dir: str = Field(default=".ragline", description="Directory holding FileSystem.json, Website.json, ...")
    enabled_sources: list[str] = Field(default_factory=lambda: ["filesystem", "website"])
    excluded_paths: list[str] = Field(default_factory=lambda: ["bin", "obj", ".git", ".vs"])
    crawl_max_pages: int = 500
    http_timeout_seconds: float = 30.0
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_access_token: str = ""

    # Chunking
    chunk_size: int = 5000
    chunk_overlap: int = 100

    # Resilience
    embed_backoff_seconds: float = 5.0
    embed_max_attempts: int = 5
    embed_outer_attempts: int = 3
    store_max_attempts: int = 3
    store_timeout_seconds: float = 7.0

    # Query
    search_top_k: int = 3
    chat_history_size: int = 5
    chat_sessions_max: int = 1000

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "RAGLINE_"}


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Singleton: import `settings` wherever needed.
settings = Settings()
