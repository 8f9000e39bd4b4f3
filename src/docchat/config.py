"""Shared configuration loaded from environment / .env."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    openrouter_api_key: str = Field(default="", description="API key for models served through OpenRouter")
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    gemini_api_key: str = Field(default="", description="Google AI Studio key for Gemini models")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL of an OpenAI-compatible vLLM server, used by models "
            "registered with the 'vllm' provider, e.g. 'http://llm-server:8000/v1'"
        ),
    )
    openrouter_app_title: str = Field(default="docchat", description="Sent as the X-Title header to OpenRouter")
    llm_model_name: str = Field(default="meta-llama/Llama-3.1-8B-Instruct", description="Model served by the vLLM endpoint")
    default_model: str = "openai/gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048
    generation_timeout_s: float = Field(
        default=120.0,
        description="Upper bound on a whole generation turn in seconds; 0 disables it.",
    )

    # Vector store
    vector_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "documents"

    # Embedding
    embedding_provider: str = Field(default="huggingface", description="'huggingface' or 'openai'")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_batch_size: int = 64

    # Ingestion
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_concurrent_ingestions: int = 8

    # Retrieval
    retrieval_k: int = 5

    # Serving
    log_level: str = "INFO"
    max_upload_bytes: int = 25 * 1024 * 1024

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton; import `settings` wherever needed.
settings = Settings()
