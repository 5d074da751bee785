"""Shared test fixtures for the fact store."""

import sys
import zlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knowledge.store import FactStore  # noqa: E402
from llm.embeddings import EmbeddingProvider  # noqa: E402

DIMENSIONS = 32


class FakeEmbedder(EmbeddingProvider):
    """Deterministic bag-of-words vectors: texts sharing words point the same way."""

    provider_name = "fake"

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self.calls = 0

    def _embed(self, text: str) -> list[float]:
        self.calls += 1
        vec = [0.0] * self.dimensions
        for word in text.lower().replace(",", " ").replace(".", " ").split():
            vec[zlib.crc32(word.encode()) % self.dimensions] += 1.0
        return vec


class FailingEmbedder(EmbeddingProvider):
    provider_name = "failing"

    def _embed(self, text: str) -> list[float]:
        raise RuntimeError("embedding service down")


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def make_embedder():
    """Build a FakeEmbedder with the given vector length."""
    return FakeEmbedder


@pytest.fixture
def store(tmp_path):
    """FactStore without an embedder: every fact is unembedded."""
    return FactStore(tmp_path / "facts.db")


@pytest.fixture
def embedded_store(tmp_path, fake_embedder):
    return FactStore(tmp_path / "facts.db", embedder=fake_embedder)


@pytest.fixture
def provider():
    """LLM provider double; set provider.generate.return_value per test."""
    return MagicMock()


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()
