"""Errors raised by the model adapters (text generation and embeddings).

Adapters translate SDK exceptions into these types so the knowledge layer
only needs to know one hierarchy. Rate limits are retried by the extractor;
everything else degrades to a fallback (heuristic judge, whole-text
candidate, keyword search).
"""


class LLMError(Exception):
    """A model call failed or no model could be configured."""


class LLMUnavailableError(LLMError):
    """No provider is usable: no API key in config or environment."""


class LLMRateLimitError(LLMError):
    """The provider throttled the request; safe to retry after a pause."""


class LLMAuthError(LLMError):
    """The API key was rejected."""


class LLMTimeoutError(LLMError):
    """The call ran past its configured timeout (remote request or local model)."""
