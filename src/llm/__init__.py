"""Model adapters: text generation for the judge and extractor, plus embeddings."""

from .embeddings import (
    ChromaEmbeddingProvider,
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)
from .errors import (
    LLMAuthError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMUnavailableError,
)
from .factory import create_provider
from .providers import LLMProvider

__all__ = [
    "LLMProvider",
    "create_provider",
    "LLMError",
    "LLMUnavailableError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMTimeoutError",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "ChromaEmbeddingProvider",
    "create_embedding_provider",
]
