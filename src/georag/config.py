"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, KServe) for local serving."
        ),
    )
    llm_max_tokens: int = 512
    llm_temperature: float = 0.2

    # Vector store
    vector_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    index_name: str = "georag"
    index_region: str = "us-east-1"
    similarity_metric: str = "cosine"
    index_ready_timeout_seconds: float = 60.0
    index_ready_poll_seconds: float = 1.0

    # Embedding
    embedding_model: str = "BAAI/bge-m3"
    embedding_dimension: int = 1024
    embedding_concurrency: int = Field(default=3, ge=1)

    # Chunking
    chunk_strategy: str = Field(
        default="semantic",
        description="'semantic' drops short or unpunctuated chunks; 'fixed' and 'recursive' keep every chunk",
    )
    chunk_size: int = 500
    chunk_overlap: int = 50
    chunk_separators: list[str] = ["\n\n", "\n", ". ", " ", ""]
    chunk_min_words: int = 5
    chunk_max_punctuation_ratio: float = 0.3

    # Pipeline
    upsert_batch_size: int = Field(default=100, ge=1)
    document_timeout_seconds: float = 300.0
    query_overfetch_factor: int = Field(default=2, ge=1)
    max_context_chars: int = 12_000
    preview_chars: int = 300

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Process-wide instance; import `settings` wherever needed.
settings = Settings()
