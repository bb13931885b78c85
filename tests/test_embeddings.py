from __future__ import annotations

import asyncio
import math
from types import SimpleNamespace

import pytest
import torch

from legisearch.embeddings.service import (
    EmbeddingConfig,
    EmbeddingEngine,
    HashEmbeddingBackend,
    TransformerEmbeddingBackend,
    get_embedding_backend,
    mean_pool,
)
from legisearch.errors import EmbeddingModelError

VOCAB = 64


class _WordTokenizer:
    """Whitespace tokenizer producing padded id/mask tensors."""

    def __call__(self, texts, padding, truncation, max_length, return_tensors):
        rows = [[1 + sum(map(ord, word)) % (VOCAB - 1) for word in text.split()][:max_length] or [1] for text in texts]
        width = max(len(row) for row in rows)
        ids = [row + [0] * (width - len(row)) for row in rows]
        mask = [[1] * len(row) + [0] * (width - len(row)) for row in rows]
        return {"input_ids": torch.tensor(ids), "attention_mask": torch.tensor(mask)}


class _TinyEncoder(torch.nn.Module):
    def __init__(self, dim: int) -> None:
        super().__init__()
        generator = torch.Generator().manual_seed(0)
        self.embed = torch.nn.Embedding(VOCAB, dim)
        with torch.no_grad():
            self.embed.weight.copy_(torch.randn(VOCAB, dim, generator=generator))

    def forward(self, input_ids, attention_mask):
        return SimpleNamespace(last_hidden_state=self.embed(input_ids))


def _norm(vector) -> float:
    return math.sqrt(sum(value * value for value in vector))


def test_hash_embedding_dim_and_unit_norm():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64, use_model=False))
    vec = backend.embed_query("hello world")
    assert isinstance(vec, tuple)
    assert len(vec) == 64
    assert _norm(vec) == pytest.approx(1.0)


def test_hash_embedding_batch_matches_single_calls():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=32, use_model=False))
    texts = ["alpha beta", "gamma", "!!!"]
    assert backend.embed_texts(texts) == [backend.embed_query(text) for text in texts]


def test_mean_pool_ignores_padding():
    tokens = torch.tensor([[[1.0, 1.0], [3.0, 3.0], [100.0, 100.0]]])
    mask = torch.tensor([[1, 1, 0]])
    assert mean_pool(tokens, mask).tolist() == [[2.0, 2.0]]


def test_transformer_backend_batched_equals_single():
    config = EmbeddingConfig(model="tiny", dim=16, batch_size=2)
    backend = TransformerEmbeddingBackend(config, loader=lambda cfg: (_WordTokenizer(), _TinyEncoder(cfg.dim)))
    texts = ["data protection board", "right of way", "a much longer sentence about postal items", "fines"]

    batched = backend.embed_texts(texts)
    singles = [backend.embed_query(text) for text in texts]

    assert len(batched) == len(texts)
    for left, right in zip(batched, singles):
        assert len(left) == 16
        assert _norm(left) == pytest.approx(1.0, abs=1e-5)
        assert left == pytest.approx(right, abs=1e-5)


def test_transformer_backend_loads_once():
    calls: list[str] = []

    def loader(cfg: EmbeddingConfig):
        calls.append(cfg.model)
        return _WordTokenizer(), _TinyEncoder(cfg.dim)

    backend = TransformerEmbeddingBackend(EmbeddingConfig(model="tiny", dim=8), loader=loader)
    backend.embed_texts(["one"])
    backend.embed_texts(["two"])
    assert calls == ["tiny"]
    assert backend.loaded


def test_transformer_load_failure_is_fatal():
    def loader(cfg: EmbeddingConfig):
        raise OSError("model files missing")

    backend = TransformerEmbeddingBackend(EmbeddingConfig(model="missing", dim=8), loader=loader)
    with pytest.raises(EmbeddingModelError):
        backend.embed_query("anything")


def test_dimension_mismatch_is_reported():
    backend = TransformerEmbeddingBackend(
        EmbeddingConfig(model="tiny", dim=8),
        loader=lambda cfg: (_WordTokenizer(), _TinyEncoder(4)),
    )
    with pytest.raises(EmbeddingModelError):
        backend.embed_query("anything")


def test_backend_factory_is_cached_and_honours_flag():
    config = EmbeddingConfig(dim=16, use_model=False)
    backend = get_embedding_backend(config)
    assert isinstance(backend, HashEmbeddingBackend)
    assert get_embedding_backend(config) is backend


def test_engine_runs_backend_off_the_event_loop():
    engine = EmbeddingEngine(HashEmbeddingBackend(EmbeddingConfig(dim=16, use_model=False)), max_workers=1)
    try:
        vectors = asyncio.run(engine.embed(["alpha", "beta"]))
        empty = asyncio.run(engine.embed([]))
        query = asyncio.run(engine.embed_query("alpha"))
    finally:
        engine.close()
    assert len(vectors) == 2
    assert empty == []
    assert query == vectors[0]
