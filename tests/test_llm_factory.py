"""Tests for building the judge/extractor provider from LLMConfig."""

from unittest.mock import MagicMock, patch

import pytest

from cli.config_models import LLMConfig
from llm import LLMError, LLMUnavailableError, create_provider
from llm.factory import backend_for_key, resolve_backend


@pytest.fixture
def no_keys(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


class TestResolveBackend:
    def test_anthropic_env(self, no_keys, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        assert resolve_backend("auto") == ("claude", "sk-ant-test")

    def test_openai_env(self, no_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert resolve_backend("auto") == ("openai", "sk-test")

    def test_prefers_anthropic_when_both_set(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert resolve_backend("auto")[0] == "claude"

    def test_configured_key_prefix_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        assert resolve_backend("auto", "sk-proj-abc") == ("openai", "sk-proj-abc")

    def test_explicit_provider_reads_its_env_var(self, no_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert resolve_backend("openai") == ("openai", "sk-test")

    def test_key_prefixes(self):
        assert backend_for_key("sk-ant-123") == "claude"
        assert backend_for_key("sk-123") == "openai"
        assert backend_for_key("AIza-123") is None

    def test_no_keys_is_unavailable(self, no_keys):
        with pytest.raises(LLMUnavailableError, match="No LLM API key found"):
            resolve_backend("auto")

    def test_unknown_provider(self):
        with pytest.raises(LLMError, match="Unknown provider"):
            resolve_backend("gemini")


class TestCreateProvider:
    def test_small_models_by_default(self):
        client = MagicMock()
        claude = create_provider(LLMConfig(provider="claude"), client=client)
        openai = create_provider(LLMConfig(provider="openai"), client=client)
        assert (claude.provider_name, claude.model) == ("claude", "claude-3-5-haiku-20241022")
        assert (openai.provider_name, openai.model) == ("openai", "gpt-4o-mini")
        assert claude.client is client

    def test_model_override(self):
        p = create_provider(LLMConfig(provider="openai", model="gpt-4.1-nano"), client=MagicMock())
        assert p.model == "gpt-4.1-nano"

    def test_timeout_and_key_from_config(self, no_keys):
        config = LLMConfig(api_key="sk-ant-configured", timeout_seconds=7.5)
        with patch("anthropic.Anthropic") as mock_cls:
            provider = create_provider(config)
        assert provider.provider_name == "claude"
        assert provider.timeout == 7.5
        kwargs = mock_cls.call_args.kwargs
        assert kwargs["timeout"] == 7.5
        assert kwargs["api_key"] == "sk-ant-configured"
        assert kwargs["max_retries"] == 0

    def test_defaults_without_config(self, no_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        p = create_provider(client=MagicMock())
        assert p.provider_name == "openai"
        assert p.model == "gpt-4o-mini"
        assert p.timeout == LLMConfig().timeout_seconds

    def test_no_keys_raises(self, no_keys):
        with pytest.raises(LLMUnavailableError):
            create_provider(LLMConfig())
