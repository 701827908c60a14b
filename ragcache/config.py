"""Application configuration using Pydantic Settings."""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    redis_url: str = "redis://localhost:6379"
    cache_ttl: int = 86400
    embedding_cache_ttl: int = 604800
    similarity_threshold: float = 0.85
    semantic_scan_warn_keys: int = 1000

    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    llm_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("llm_api_key", "groq_api_key", "openai_api_key"),
    )
    llm_base_url: str | None = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.5
    llm_max_tokens: int = 1024

    supabase_url: str = ""
    supabase_api_key: str = ""
    vector_match_function: str = "huntlysimilar"
    retrieval_count: int = 2
    retrieval_threshold: float = 0.05
    retrieval_fallback_thresholds: list[float] = [0.025, 0.0125]
    retrieval_fallback_count_step: int = 1

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("similarity_threshold")
    @classmethod
    def threshold_in_unit_range(cls, v: float) -> float:
        """Validate that the similarity threshold lies in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("similarity_threshold must be between 0 and 1")
        return v

    @field_validator("retrieval_fallback_thresholds")
    @classmethod
    def fallback_thresholds_in_unit_range(cls, v: list[float]) -> list[float]:
        """Require at least one fallback stage, each threshold in (0, 1)."""
        if not v:
            raise ValueError("retrieval_fallback_thresholds must not be empty")
        if any(not 0.0 < t < 1.0 for t in v):
            raise ValueError("retrieval_fallback_thresholds must lie in (0, 1)")
        return v

    @field_validator("cache_ttl", "embedding_cache_ttl")
    @classmethod
    def ttl_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("TTL must be a positive number of seconds")
        return v


settings = Settings()
