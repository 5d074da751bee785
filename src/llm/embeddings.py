"""Text embedding providers.

An embedding provider turns text into a fixed-length float vector. Failure is
an expected outcome: ``embed()`` returns None instead of raising, and callers
store or search without a vector.
"""

import concurrent.futures
import math
from abc import ABC, abstractmethod

import structlog

from .errors import LLMError, LLMTimeoutError

logger = structlog.get_logger()

MAX_TEXT_LENGTH = 8000

OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
OPENAI_EMBEDDING_DIMENSIONS = 1536

# Model bundled with ChromaDB's default embedding function
CHROMA_EMBEDDING_MODEL = "all-MiniLM-L6-v2"

# First use downloads the model, so the local call gets a wall-clock bound too
DEFAULT_EMBEDDING_TIMEOUT = 10.0


class EmbeddingProvider(ABC):
    """Abstract embedding provider interface."""

    provider_name: str = "base"

    def embed(self, text: str) -> list[float] | None:
        """Embed text, returning None on empty input or any provider failure."""
        if not text or not text.strip():
            return None
        try:
            vector = self._embed(text[:MAX_TEXT_LENGTH])
        except Exception as e:
            logger.warning("embedding_failed", provider=self.provider_name, error=str(e))
            return None

        if not vector or not all(math.isfinite(x) for x in vector):
            logger.warning("embedding_invalid", provider=self.provider_name)
            return None
        return [float(x) for x in vector]

    @abstractmethod
    def _embed(self, text: str) -> list[float]:
        """Provider-specific call. May raise."""
        ...


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API (text-embedding-3-small by default)."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int = OPENAI_EMBEDDING_DIMENSIONS,
        client=None,
        timeout: float = 10.0,
    ):
        from .providers.openai import build_openai_client

        self.model = model or OPENAI_EMBEDDING_MODEL
        self.dimensions = dimensions
        self.client = client or build_openai_client(api_key, timeout=timeout)

    def _embed(self, text: str) -> list[float]:
        from .providers.openai import handle_openai_error

        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except Exception as e:
            handle_openai_error(e)
        return list(response.data[0].embedding)


class ChromaEmbeddingProvider(EmbeddingProvider):
    """Local embeddings via ChromaDB's bundled ONNX MiniLM model.

    The model is loaded lazily on first use so constructing the provider
    never touches disk or network. That first call fetches the ONNX model, so
    each call runs on a worker thread and is abandoned after ``timeout``
    seconds; ``embed()`` then returns None and callers go on without a vector.
    """

    provider_name = "chroma"
    _executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="chroma-embed")

    def __init__(self, embedding_function=None, timeout: float = DEFAULT_EMBEDDING_TIMEOUT):
        self._fn = embedding_function
        self.timeout = timeout

    @property
    def _function(self):
        if self._fn is None:
            from chromadb.utils import embedding_functions

            self._fn = embedding_functions.DefaultEmbeddingFunction()
        return self._fn

    def _embed(self, text: str) -> list[float]:
        future = self._executor.submit(lambda: self._function([text]))
        try:
            vectors = future.result(timeout=self.timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise LLMTimeoutError(f"local embedding exceeded {self.timeout}s")
        if vectors is None or len(vectors) == 0:
            raise LLMError("empty embedding batch")
        return list(vectors[0])


def create_embedding_provider(
    provider: str = "auto",
    api_key: str | None = None,
    model: str | None = None,
    timeout: float = DEFAULT_EMBEDDING_TIMEOUT,
) -> EmbeddingProvider | None:
    """Create an embedding provider from configuration.

    Args:
        provider: "openai", "chroma", "none", or "auto" (OpenAI when a key is
            available, local ChromaDB model otherwise)
        api_key: Explicit OpenAI key (overrides env var)
        model: Model name (None = provider default)
        timeout: Per-call timeout in seconds, for the local model as well

    Returns:
        EmbeddingProvider, or None when embeddings are disabled
    """
    import os

    resolved = provider or "auto"
    if resolved == "none":
        return None
    if resolved == "auto":
        resolved = "openai" if (api_key or os.getenv("OPENAI_API_KEY")) else "chroma"

    if resolved == "openai":
        return OpenAIEmbeddingProvider(
            api_key=api_key or os.getenv("OPENAI_API_KEY"), model=model, timeout=timeout
        )
    if resolved == "chroma":
        return ChromaEmbeddingProvider(timeout=timeout)
    raise LLMError(f"Unknown embedding provider: {resolved}. Use: openai, chroma, none")
