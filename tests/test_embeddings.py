"""Tests for embedding providers."""

import time
from unittest.mock import MagicMock, patch

import pytest

from llm import LLMError
from llm.embeddings import (
    MAX_TEXT_LENGTH,
    ChromaEmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)


def _openai_client(vector):
    client = MagicMock()
    client.embeddings.create.return_value = MagicMock(data=[MagicMock(embedding=vector)])
    return client


class TestOpenAIEmbeddings:
    def test_embed(self):
        client = _openai_client([0.1, 0.2, 0.3])
        provider = OpenAIEmbeddingProvider(client=client)
        assert provider.embed("We use Slack") == pytest.approx([0.1, 0.2, 0.3])
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["dimensions"] == 1536

    def test_truncates_input(self):
        client = _openai_client([1.0])
        OpenAIEmbeddingProvider(client=client).embed("x" * (MAX_TEXT_LENGTH + 100))
        assert len(client.embeddings.create.call_args.kwargs["input"]) == MAX_TEXT_LENGTH

    def test_failure_returns_none(self):
        client = MagicMock()
        client.embeddings.create.side_effect = RuntimeError("network down")
        assert OpenAIEmbeddingProvider(client=client).embed("text") is None

    def test_non_finite_rejected(self):
        client = _openai_client([0.1, float("nan")])
        assert OpenAIEmbeddingProvider(client=client).embed("text") is None

    def test_empty_text_skips_call(self):
        client = _openai_client([1.0])
        assert OpenAIEmbeddingProvider(client=client).embed("  ") is None
        client.embeddings.create.assert_not_called()


class TestChromaEmbeddings:
    def test_uses_embedding_function(self):
        fn = MagicMock(return_value=[[0.5, 0.5]])
        provider = ChromaEmbeddingProvider(embedding_function=fn)
        assert provider.embed("hello") == [0.5, 0.5]
        fn.assert_called_once_with(["hello"])

    def test_empty_batch_returns_none(self):
        provider = ChromaEmbeddingProvider(embedding_function=MagicMock(return_value=[]))
        assert provider.embed("hello") is None

    def test_lazy_default_function(self):
        with patch("chromadb.utils.embedding_functions.DefaultEmbeddingFunction") as default:
            default.return_value = MagicMock(return_value=[[1.0]])
            provider = ChromaEmbeddingProvider()
            default.assert_not_called()
            assert provider.embed("hello") == [1.0]
            default.assert_called_once()


    def test_slow_model_times_out_to_none(self):
        def slow(texts):
            time.sleep(0.5)
            return [[1.0]]

        provider = ChromaEmbeddingProvider(embedding_function=slow, timeout=0.05)
        started = time.monotonic()
        assert provider.embed("hello") is None
        assert time.monotonic() - started < 0.4


class TestFactory:
    def test_none(self):
        assert create_embedding_provider("none") is None

    def test_auto_without_key_is_chroma(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert isinstance(create_embedding_provider("auto"), ChromaEmbeddingProvider)

    def test_chroma_gets_configured_timeout(self):
        provider = create_embedding_provider("chroma", timeout=2.5)
        assert provider.timeout == 2.5

    def test_auto_with_key_is_openai(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        with patch("openai.OpenAI"):
            provider = create_embedding_provider("auto", timeout=3.0)
        assert isinstance(provider, OpenAIEmbeddingProvider)

    def test_unknown(self):
        with pytest.raises(LLMError):
            create_embedding_provider("word2vec")
