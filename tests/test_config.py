from __future__ import annotations

from legisearch.config import get_settings


def test_defaults_embedding_model_and_dim():
    settings = get_settings({})
    assert settings.embedding_model == "sentence-transformers/all-MiniLM-L6-v2"
    assert settings.embedding_dim == 384
    assert settings.embedding_batch_size == 8


def test_index_and_query_defaults():
    settings = get_settings({})
    assert settings.chroma_collection == "legislation_chunks"
    assert settings.index_batch_size == 100
    assert settings.default_top_k == 3
    assert settings.max_top_k >= settings.default_top_k


def test_override_does_not_touch_cache():
    override = get_settings({"environment": "test", "max_download_size_mb": 2})
    assert override.is_test
    assert override.max_download_bytes == 2 * 1024 * 1024
    assert get_settings() is get_settings()
