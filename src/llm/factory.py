"""Build the text-generation provider from the ``llm`` config section.

The judge and the extractor make short, structured calls, so both run on a
provider's small model unless ``llm.model`` names another one.
"""

import os

import structlog

from .errors import LLMError, LLMUnavailableError
from .providers import LLMProvider

logger = structlog.get_logger()

# backend -> (env var holding the key, small model used for judge/extractor calls)
_BACKENDS = {
    "claude": ("ANTHROPIC_API_KEY", "claude-3-5-haiku-20241022"),
    "openai": ("OPENAI_API_KEY", "gpt-4o-mini"),
}


def backend_for_key(api_key: str) -> str | None:
    """Backend implied by an API key's prefix, if any."""
    if api_key.startswith("sk-ant-"):
        return "claude"
    if api_key.startswith("sk-"):
        return "openai"
    return None


def resolve_backend(provider: str, api_key: str | None = None) -> tuple[str, str | None]:
    """Pick the backend and its key.

    An explicit provider wins. For "auto", the configured key's prefix decides,
    then the first backend whose env var is set (Anthropic before OpenAI).

    Raises:
        LLMUnavailableError: "auto" and no key anywhere.
        LLMError: unknown provider name.
    """
    if provider == "auto":
        backend = backend_for_key(api_key) if api_key else None
        if backend is None:
            backend = next((name for name, (env, _) in _BACKENDS.items() if os.getenv(env)), None)
        if backend is None:
            raise LLMUnavailableError(
                "No LLM API key found. Set llm.api_key, ANTHROPIC_API_KEY or OPENAI_API_KEY"
            )
    elif provider in _BACKENDS:
        backend = provider
    else:
        raise LLMError(f"Unknown provider: {provider}. Use: auto, {', '.join(_BACKENDS)}")

    env_var, _ = _BACKENDS[backend]
    return backend, api_key or os.getenv(env_var)


def create_provider(config=None, client=None) -> LLMProvider:
    """Provider for conflict judgment and fact extraction.

    Args:
        config: ``LLMConfig`` (provider, model, api_key, timeout_seconds).
            None uses the defaults: auto-detect from env, 20s timeout.
        client: Pre-built SDK client; skips key lookup in the SDK.
    """
    if config is None:
        from cli.config_models import LLMConfig

        config = LLMConfig()

    backend, api_key = resolve_backend(config.provider, config.api_key)
    _, small_model = _BACKENDS[backend]
    model = config.model or small_model

    if backend == "claude":
        from .providers.claude import ClaudeProvider

        provider = ClaudeProvider(
            api_key=api_key, model=model, client=client, timeout=config.timeout_seconds
        )
    else:
        from .providers.openai import OpenAIProvider

        provider = OpenAIProvider(
            api_key=api_key, model=model, client=client, timeout=config.timeout_seconds
        )
    logger.debug("llm.provider_ready", provider=backend, model=model, timeout=config.timeout_seconds)
    return provider
