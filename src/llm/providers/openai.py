"""OpenAI LLM provider."""

from ..errors import LLMAuthError, LLMError, LLMRateLimitError, LLMTimeoutError
from . import LLMProvider

DEFAULT_MODEL = "gpt-4o"

# Lazy exception references, set when the package is available
_openai_exceptions = None


def _get_openai_exceptions():
    global _openai_exceptions
    if _openai_exceptions is None:
        try:
            from openai import APIError, APITimeoutError, AuthenticationError, RateLimitError

            _openai_exceptions = (APITimeoutError, AuthenticationError, RateLimitError, APIError)
        except ImportError:
            _openai_exceptions = ()
    return _openai_exceptions


def handle_openai_error(e: Exception):
    """Re-raise an OpenAI SDK exception as the matching LLMError subclass."""
    exc = _get_openai_exceptions()
    if exc:
        TimeoutErr, AuthErr, RateErr, ApiErr = exc
        if isinstance(e, TimeoutErr):
            raise LLMTimeoutError(f"OpenAI request timed out: {e}") from e
        if isinstance(e, AuthErr):
            raise LLMAuthError(f"OpenAI auth failed: {e}") from e
        if isinstance(e, RateErr):
            raise LLMRateLimitError(f"OpenAI rate limit: {e}") from e
        if isinstance(e, ApiErr):
            raise LLMError(f"OpenAI API error: {e}") from e
    raise LLMError(f"OpenAI error: {e}") from e


def build_openai_client(api_key: str | None = None, timeout: float = 20.0):
    """Construct an SDK client with a bounded request timeout and no SDK-level retries."""
    try:
        from openai import OpenAI
    except ImportError:
        raise LLMError("openai package not installed. Run: pip install openai")

    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        timeout: float = 20.0,
    ):
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.client = client or build_openai_client(api_key, timeout=timeout)

    def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        full_messages = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=full_messages,
                temperature=0,
            )
            return response.choices[0].message.content
        except Exception as e:
            handle_openai_error(e)
