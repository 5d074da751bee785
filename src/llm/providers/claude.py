"""Claude (Anthropic) LLM provider."""

from ..errors import LLMAuthError, LLMError, LLMRateLimitError, LLMTimeoutError
from . import LLMProvider

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider."""

    provider_name = "claude"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        timeout: float = 20.0,
    ):
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout

        if client:
            self.client = client
            return

        try:
            from anthropic import Anthropic
        except ImportError:
            raise LLMError("anthropic package not installed. Run: pip install anthropic")

        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _handle_error(self, e: Exception):
        from anthropic import APIError, APITimeoutError, AuthenticationError, RateLimitError

        if isinstance(e, APITimeoutError):
            raise LLMTimeoutError(f"Claude request timed out: {e}") from e
        if isinstance(e, AuthenticationError):
            raise LLMAuthError(f"Claude auth failed: {e}") from e
        if isinstance(e, RateLimitError):
            raise LLMRateLimitError(f"Claude rate limit: {e}") from e
        if isinstance(e, APIError):
            raise LLMError(f"Claude API error: {e}") from e
        raise LLMError(f"Claude error: {e}") from e

    def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        # Anthropic takes the system prompt out-of-band
        api_messages = []
        for msg in messages:
            if msg.get("role") == "system":
                system = f"{system}\n\n{msg['content']}" if system else msg["content"]
            else:
                api_messages.append(msg)

        try:
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "messages": api_messages,
                "temperature": 0,
            }
            if system:
                kwargs["system"] = system

            response = self.client.messages.create(**kwargs)
            return response.content[0].text
        except Exception as e:
            self._handle_error(e)
