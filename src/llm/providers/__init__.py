"""Text-generation backends for conflict judgment and fact extraction."""

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """One configured model endpoint.

    Both callers send a single user message with a system prompt that asks
    for JSON, and parse the text themselves. Adapters run at temperature 0
    with SDK retries disabled; errors surface as ``llm.errors`` types.
    """

    provider_name: str = "base"
    model: str
    timeout: float

    @abstractmethod
    def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        """Return the model's reply text for ``messages`` ({"role", "content"} dicts)."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r}, timeout={self.timeout})"
