"""Runtime configuration for the legisearch pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="legisearch_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Metadata store
    database_url: str = "sqlite:///./legisearch.db"
    database_echo: bool = False

    # Vector index
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "legislation_chunks"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False
    index_batch_size: int = 100
    index_max_retries: int = 3
    index_retry_backoff_seconds: float = 0.5
    index_timeout_seconds: float = 30.0

    # all-MiniLM-L6-v2 produces 384-dim vectors
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    use_model_embeddings: bool = True
    embedding_device: str | None = None
    embedding_batch_size: int = 8
    embedding_max_length: int = 256
    embedding_workers: int = 2
    embedding_cache_dir: str | None = None

    # Document source
    source_url: str = "https://prsindia.org/billtrack"
    source_base_url: str = "https://prsindia.org"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    fetch_timeout_seconds: float = 30.0
    download_timeout_seconds: float = 60.0
    max_download_size_mb: int = 25

    # Ingestion
    ingest_concurrency: int = 2
    default_ingest_count: int = 5
    min_segment_chars: int = 5

    # Query
    default_top_k: int = 3
    max_top_k: int = 50

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def max_download_bytes(self) -> int:
        return self.max_download_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
